"""HTTP transport with retry/backoff shared by every upstream routing call."""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from ...config import settings
from ...errors import UpstreamPermanent, UpstreamTransient
from ...platform.context import RequestContext
from ...platform.obs import LoggingSink, ObservabilitySink

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class RetryingHttpClient:
    """Thin wrapper over ``httpx.Client`` that classifies and retries failures.

    Only 429/500/502/503/504 responses and network-level errors are retried.
    Any other 4xx fails immediately. The wait between attempts doubles each
    time and is interrupted by cancellation or the context deadline.
    """

    def __init__(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
        connect_timeout: float | None = None,
        max_attempts: int | None = None,
        initial_backoff: float | None = None,
        sink: ObservabilitySink | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self.connect_timeout = (
            connect_timeout if connect_timeout is not None else settings.http_connect_timeout_seconds
        )
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_attempts
        self.initial_backoff = (
            initial_backoff if initial_backoff is not None else settings.initial_backoff_seconds
        )
        self.sink = sink or LoggingSink()
        self._client = httpx.Client(
            headers=dict(headers or {}),
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            limits=httpx.Limits(max_connections=settings.max_parallel_requests * 2),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "RetryingHttpClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _timeout_for(self, ctx: RequestContext) -> httpx.Timeout:
        remaining = ctx.remaining()
        if remaining is None or remaining >= self.timeout:
            return httpx.Timeout(self.timeout, connect=self.connect_timeout)
        return httpx.Timeout(remaining, connect=min(self.connect_timeout, remaining))

    def _attempt(self, method: str, url: str, ctx: RequestContext, operation: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, timeout=self._timeout_for(ctx), **kwargs)
        except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as exc:
            raise UpstreamTransient(f"{operation}: network error: {exc}") from exc

        if response.status_code < 400:
            return response

        body = response.text.strip()
        if response.status_code in TRANSIENT_STATUS_CODES:
            raise UpstreamTransient(
                f"{operation}: HTTP {response.status_code}: {body}",
                status_code=response.status_code,
            )
        raise UpstreamPermanent(
            f"{operation}: HTTP {response.status_code}: {body}",
            status_code=response.status_code,
        )

    def request(
        self,
        method: str,
        url: str,
        ctx: RequestContext,
        *,
        operation: str = "upstream request",
        **kwargs: Any,
    ) -> httpx.Response:
        backoff = self.initial_backoff
        attempt = 0
        while True:
            attempt += 1
            ctx.raise_if_done()
            try:
                return self._attempt(method, url, ctx, operation, **kwargs)
            except UpstreamTransient as exc:
                if attempt >= self.max_attempts:
                    raise UpstreamPermanent(
                        f"{operation}: giving up after {attempt} attempts: {exc}",
                        status_code=exc.status_code,
                    ) from exc
                self.sink.upstream_retry(operation, attempt, exc, backoff)
                ctx.sleep(backoff)
                backoff *= 2

    def get(self, url: str, ctx: RequestContext, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, ctx, **kwargs)

    def post(self, url: str, ctx: RequestContext, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, ctx, **kwargs)


def decode_json(response: httpx.Response, operation: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UpstreamPermanent(f"{operation}: invalid JSON response: {exc}") from exc
