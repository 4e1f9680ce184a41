import time

from hostloop.host.events import PlatformEvent, PlatformEventQueue, QuitEvent, TimerEvent
from hostloop.host.waiting import wait_any


def test_drain_returns_events_in_order_and_clears_readiness():
    queue = PlatformEventQueue()
    try:
        queue.post(PlatformEvent("a"))
        queue.post(PlatformEvent("b", payload=2))
        queue.post_quit(4)
        assert wait_any([queue], timeout=0) == 1
        events = queue.drain()
        assert events == [PlatformEvent("a"), PlatformEvent("b", payload=2), QuitEvent(exit_code=4)]
        assert wait_any([queue], timeout=0) is None
        assert queue.drain() == []
    finally:
        queue.close()


def test_timer_becomes_due():
    queue = PlatformEventQueue()
    try:
        queue.set_timer("tick", 0.02)
        timeout = queue.next_timeout()
        assert timeout is not None and timeout <= 0.02
        assert queue.drain() == []
        time.sleep(0.05)
        assert queue.drain() == [TimerEvent(timer_id="tick")]
        assert queue.next_timeout() is None
    finally:
        queue.close()


def test_periodic_timer_rearms():
    queue = PlatformEventQueue()
    try:
        queue.set_timer("tick", 0.01, periodic=True)
        time.sleep(0.03)
        assert queue.drain() == [TimerEvent(timer_id="tick")]
        assert queue.next_timeout() is not None
        assert queue.kill_timer("tick")
        assert not queue.kill_timer("tick")
    finally:
        queue.close()


def test_dispatch_forwards_to_handlers_by_kind():
    queue = PlatformEventQueue()
    seen = []
    try:
        queue.add_handler("ping", seen.append)
        queue.dispatch(PlatformEvent("ping", payload=1))
        queue.dispatch(PlatformEvent("unknown"))
        assert seen == [PlatformEvent("ping", payload=1)]
    finally:
        queue.close()
