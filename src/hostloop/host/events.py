from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from hostloop.utils.logging import get_logger

from .handles import Event

logger = get_logger(__name__)

EventHandler = Callable[["PlatformEvent"], None]


@dataclass(frozen=True)
class PlatformEvent:
    kind: str
    payload: Any = None


@dataclass(frozen=True)
class QuitEvent(PlatformEvent):
    kind: str = "quit"
    exit_code: int = 0


@dataclass(frozen=True)
class TimerEvent(PlatformEvent):
    kind: str = "timer"
    timer_id: str = ""


class PlatformEventQueue:
    """Host event queue that the dispatcher merges into its wait.

    Producers on any thread ``post()`` events; the dispatcher drains them in
    FIFO order and hands each one to ``dispatch()``. Timers set with
    ``set_timer()`` surface as ``TimerEvent`` once due and also bound how
    long the dispatcher may block (``next_timeout()``).
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: Deque[PlatformEvent] = deque()
        self._timers: Dict[str, Tuple[float, Optional[float]]] = {}
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._ready = Event(manual_reset=True)

    def fileno(self) -> int:
        return self._ready.fileno()

    @property
    def closed(self) -> bool:
        return self._ready.closed

    def post(self, event: PlatformEvent) -> None:
        with self._lock:
            self._events.append(event)
            self._ready.set()

    def post_quit(self, exit_code: int = 0) -> None:
        self.post(QuitEvent(exit_code=exit_code))

    def set_timer(self, timer_id: str, delay: float, periodic: bool = False) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        with self._lock:
            interval = delay if periodic else None
            self._timers[timer_id] = (time.monotonic() + delay, interval)
            # wake the dispatcher so it recomputes its timeout
            self._ready.set()

    def kill_timer(self, timer_id: str) -> bool:
        with self._lock:
            return self._timers.pop(timer_id, None) is not None

    def next_timeout(self) -> Optional[float]:
        with self._lock:
            if not self._timers:
                return None
            due = min(deadline for deadline, _ in self._timers.values())
        return max(0.0, due - time.monotonic())

    def drain(self) -> List[PlatformEvent]:
        with self._lock:
            self._ready.reset()
            events = list(self._events)
            self._events.clear()
            now = time.monotonic()
            fired = sorted(
                (deadline, timer_id)
                for timer_id, (deadline, _) in self._timers.items()
                if deadline <= now
            )
            for _, timer_id in fired:
                _, interval = self._timers[timer_id]
                if interval:
                    self._timers[timer_id] = (now + interval, interval)
                else:
                    del self._timers[timer_id]
                events.append(TimerEvent(timer_id=timer_id))
        return events

    def add_handler(self, kind: str, handler: EventHandler) -> None:
        with self._lock:
            self._handlers.setdefault(kind, []).append(handler)

    def dispatch(self, event: PlatformEvent) -> None:
        with self._lock:
            handlers = list(self._handlers.get(event.kind, ()))
        if not handlers:
            logger.debug("unhandled platform event: %s", event.kind)
            return
        for handler in handlers:
            handler(event)

    def close(self) -> None:
        self._ready.close()
