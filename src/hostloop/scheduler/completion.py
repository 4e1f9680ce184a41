from __future__ import annotations

import threading
from typing import List

from hostloop.host.handles import Event
from hostloop.utils.logging import get_logger

from .models import AsyncTaskResult

logger = get_logger(__name__)


class CompletionQueue:
    """Mailbox of finished work plus the wake signal the dispatcher waits on.

    The wake signal is an auto-reset event: several ``put()`` calls before a
    drain coalesce into one wakeup, so the consumer must always take the whole
    batch. ``consume_wakeup()`` must run before ``drain()`` so that a result
    arriving mid-drain re-arms the signal.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[AsyncTaskResult] = []
        self._closed = False
        self.wake_signal = Event(manual_reset=False)

    def put(self, result: AsyncTaskResult) -> bool:
        with self._lock:
            if self._closed:
                logger.debug(
                    "discarding result after shutdown: continuation=%s",
                    result.continuation_id,
                )
                return False
            self._items.append(result)
            self.wake_signal.set()
        return True

    def wake(self) -> None:
        with self._lock:
            if not self._closed:
                self.wake_signal.set()

    def consume_wakeup(self) -> None:
        self.wake_signal.acquire()

    def drain(self) -> List[AsyncTaskResult]:
        with self._lock:
            items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            dropped = len(self._items)
            self._items = []
        if dropped:
            logger.debug("completion queue closed with %d undelivered results", dropped)
        self.wake_signal.close()
