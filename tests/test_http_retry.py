import threading

import httpx
import pytest

from delivery_planner.errors import Cancelled, UpstreamPermanent
from delivery_planner.platform.context import RequestContext
from delivery_planner.platform.obs import RecordingSink
from delivery_planner.services.distance.http import RetryingHttpClient, decode_json


def _client(handler, *, max_attempts=4, initial_backoff=0.001, sink=None) -> RetryingHttpClient:
    return RetryingHttpClient(
        max_attempts=max_attempts,
        initial_backoff=initial_backoff,
        sink=sink or RecordingSink(),
        transport=httpx.MockTransport(handler),
    )


def _sequence(*responses):
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        index = min(calls["count"], len(responses) - 1)
        calls["count"] += 1
        item = responses[index]
        if isinstance(item, Exception):
            raise item
        return item

    return handler, calls


def test_succeeds_after_transient_failures():
    handler, calls = _sequence(
        httpx.Response(503, text="busy"),
        httpx.Response(429, text="slow down"),
        httpx.Response(502, text="bad gateway"),
        httpx.Response(200, json={"ok": True}),
    )
    sink = RecordingSink()
    with _client(handler, sink=sink) as client:
        response = client.get("https://upstream.test/x", RequestContext.background(), operation="probe")

    assert response.json() == {"ok": True}
    assert calls["count"] == 4
    assert sink.retries == [("probe", 1), ("probe", 2), ("probe", 3)]


def test_gives_up_after_max_attempts():
    handler, calls = _sequence(httpx.Response(503, text="busy"))
    with _client(handler) as client:
        with pytest.raises(UpstreamPermanent) as excinfo:
            client.get("https://upstream.test/x", RequestContext.background(), operation="probe")

    assert calls["count"] == 4
    assert excinfo.value.status_code == 503
    assert "4 attempts" in str(excinfo.value)


@pytest.mark.parametrize("status_code", [400, 401, 403, 404, 414])
def test_client_errors_fail_immediately(status_code):
    handler, calls = _sequence(httpx.Response(status_code, text="nope"))
    with _client(handler) as client:
        with pytest.raises(UpstreamPermanent) as excinfo:
            client.post("https://upstream.test/x", RequestContext.background(), json={})

    assert calls["count"] == 1
    assert excinfo.value.status_code == status_code
    assert "nope" in str(excinfo.value)


def test_network_errors_are_retried():
    handler, calls = _sequence(
        httpx.ConnectError("refused"),
        httpx.ReadTimeout("slow"),
        httpx.Response(200, json={"ok": True}),
    )
    with _client(handler) as client:
        response = client.get("https://upstream.test/x", RequestContext.background())

    assert response.status_code == 200
    assert calls["count"] == 3


def test_cancellation_interrupts_backoff():
    handler, calls = _sequence(httpx.Response(503, text="busy"))
    ctx = RequestContext.background()
    timer = threading.Timer(0.05, ctx.cancel)
    timer.start()
    try:
        with _client(handler, initial_backoff=5.0) as client:
            with pytest.raises(Cancelled):
                client.get("https://upstream.test/x", ctx)
    finally:
        timer.cancel()

    assert calls["count"] == 1


def test_cancelled_context_makes_no_request():
    handler, calls = _sequence(httpx.Response(200, json={}))
    ctx = RequestContext.background()
    ctx.cancel()
    with _client(handler) as client:
        with pytest.raises(Cancelled):
            client.get("https://upstream.test/x", ctx)
    assert calls["count"] == 0


def test_decode_json_rejects_invalid_body():
    response = httpx.Response(200, text="<html>")
    with pytest.raises(UpstreamPermanent):
        decode_json(response, "probe")
