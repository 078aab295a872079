import logging
import threading
import time

import pytest

from delivery_planner.errors import Cancelled, DeadlineExceeded
from delivery_planner.platform.context import RequestContext
from delivery_planner.platform.obs import RecordingSink, Timing
from delivery_planner.platform.pool import fan_out


def test_child_observes_parent_cancellation_but_not_the_reverse():
    parent = RequestContext.background()
    child = parent.child()
    sibling = parent.child()

    child.cancel()
    assert child.cancelled()
    assert not parent.cancelled()
    assert not sibling.cancelled()

    parent.cancel()
    assert sibling.cancelled()
    with pytest.raises(Cancelled):
        sibling.raise_if_done()


def test_child_inherits_earlier_parent_deadline():
    parent = RequestContext.with_timeout(1.0)
    child = parent.child(timeout=60.0)
    assert child.deadline == parent.deadline
    assert child.request_id == parent.request_id


def test_expired_context_raises_deadline_exceeded():
    ctx = RequestContext.with_timeout(0.0)
    assert ctx.done()
    with pytest.raises(DeadlineExceeded):
        ctx.raise_if_done()


def test_sleep_is_interrupted_by_cancellation():
    ctx = RequestContext.background()
    timer = threading.Timer(0.05, ctx.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(Cancelled):
            ctx.sleep(5.0)
    finally:
        timer.cancel()
    assert time.monotonic() - started < 2.0


def test_sleep_stops_at_deadline():
    ctx = RequestContext.with_timeout(0.1)
    with pytest.raises(DeadlineExceeded):
        ctx.sleep(5.0)


def test_timing_logs_operation_and_error(caplog):
    ctx = RequestContext(request_id="abc123")
    caplog.set_level(logging.INFO, logger="delivery_planner.platform.obs")

    with Timing("unit.ok", ctx) as timing:
        pass
    with pytest.raises(RuntimeError):
        with Timing("unit.fail", ctx):
            raise RuntimeError("boom")

    assert timing.elapsed_ms is not None
    messages = [record.getMessage() for record in caplog.records]
    assert any("req_id=abc123 op=unit.ok dur=" in m and "err=" not in m for m in messages)
    assert any("op=unit.fail" in m and "err=boom" in m for m in messages)


def test_recording_sink_keeps_events():
    sink = RecordingSink()
    sink.cache_write_failed("distance", RuntimeError("down"))
    sink.upstream_retry("ors matrix", 1, RuntimeError("503"), 0.2)
    assert sink.cache_failures[0][0] == "distance"
    assert sink.retries == [("ors matrix", 1)]


def test_fan_out_returns_results_in_input_order():
    ctx = RequestContext.background()

    def work(item, scope):
        time.sleep(0.01 * (5 - item))
        return item * 10

    assert fan_out([1, 2, 3, 4], work, ctx, max_workers=4) == [10, 20, 30, 40]
    assert fan_out([], work, ctx) == []


def test_fan_out_bounds_concurrency():
    ctx = RequestContext.background()
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def work(item, scope):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1
        return item

    results = fan_out(list(range(20)), work, ctx, max_workers=5)

    assert results == list(range(20))
    assert state["peak"] <= 5


def test_fan_out_cancels_siblings_on_first_failure():
    ctx = RequestContext.background()
    started: list[int] = []
    lock = threading.Lock()

    def work(item, scope):
        with lock:
            started.append(item)
        if item == 0:
            raise ValueError("bad item")
        scope.sleep(2.0)
        return item

    began = time.monotonic()
    with pytest.raises(ValueError, match="bad item"):
        fan_out(list(range(12)), work, ctx, max_workers=2)

    assert time.monotonic() - began < 1.5
    assert len(started) < 12
    assert not ctx.cancelled()


def test_fan_out_reports_first_failure_in_input_order():
    ctx = RequestContext.background()
    barrier = threading.Barrier(2, timeout=5)

    def work(item, scope):
        barrier.wait()
        if item == 0:
            time.sleep(0.05)
            raise KeyError("first")
        raise ValueError("second")

    with pytest.raises(KeyError):
        fan_out([0, 1], work, ctx, max_workers=2)


def test_fan_out_stops_when_parent_already_cancelled():
    ctx = RequestContext.background()
    ctx.cancel()
    with pytest.raises(Cancelled):
        fan_out([1, 2, 3], lambda item, scope: item, ctx)
