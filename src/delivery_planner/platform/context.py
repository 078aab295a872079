"""Request-scoped cancellation and deadline propagation.

A ``RequestContext`` is passed explicitly through every call that may block on
upstream I/O. Child contexts inherit their parent's deadline and observe their
parent's cancellation, so cancelling a fan-out scope never cancels the request
that created it, while cancelling the request stops every scope below it.
"""

from __future__ import annotations

import threading
import time
import uuid
from typing import Optional

from ..errors import Cancelled, DeadlineExceeded

_WAIT_SLICE_SECONDS = 0.05


class RequestContext:
    def __init__(
        self,
        *,
        deadline: Optional[float] = None,
        parent: Optional["RequestContext"] = None,
        request_id: Optional[str] = None,
    ) -> None:
        self._event = threading.Event()
        self._parent = parent
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self.deadline = deadline
        if request_id is None:
            request_id = parent.request_id if parent is not None else uuid.uuid4().hex[:12]
        self.request_id = request_id

    @classmethod
    def background(cls) -> "RequestContext":
        return cls()

    @classmethod
    def with_timeout(cls, seconds: float, *, request_id: Optional[str] = None) -> "RequestContext":
        return cls(deadline=time.monotonic() + seconds, request_id=request_id)

    def child(self, timeout: Optional[float] = None) -> "RequestContext":
        deadline = time.monotonic() + timeout if timeout is not None else None
        return RequestContext(deadline=deadline, parent=self)

    def cancel(self) -> None:
        self._event.set()

    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.cancelled()

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def done(self) -> bool:
        return self.cancelled() or self.expired()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def raise_if_done(self) -> None:
        if self.cancelled():
            raise Cancelled(f"req_id={self.request_id} cancelled")
        if self.expired():
            raise DeadlineExceeded(f"req_id={self.request_id} deadline exceeded")

    def sleep(self, seconds: float) -> None:
        """Wait ``seconds`` unless the context is cancelled or expires first."""
        end = time.monotonic() + seconds
        while True:
            self.raise_if_done()
            left = end - time.monotonic()
            if left <= 0:
                return
            budget = self.remaining()
            wait_for = min(left, _WAIT_SLICE_SECONDS)
            if budget is not None:
                wait_for = min(wait_for, budget)
            self._event.wait(wait_for)
