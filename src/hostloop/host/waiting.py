from __future__ import annotations

import selectors
from typing import Any, List, Optional, Sequence

MAXIMUM_WAIT_OBJECTS = 64


class WaitSet:
    """A fixed snapshot of handles registered with one selector.

    ``wait()`` reports every ready position in ascending order, so callers
    that take the first entry get a lowest-index-wins tie-break.
    """

    def __init__(self, handles: Sequence[Any]) -> None:
        self.handles = tuple(handles)
        self._selector = selectors.DefaultSelector()
        try:
            for index, handle in enumerate(self.handles):
                self._selector.register(handle.fileno(), selectors.EVENT_READ, index)
        except BaseException:
            self._selector.close()
            raise

    def wait(self, timeout: Optional[float] = None) -> List[int]:
        if timeout is not None and timeout < 0:
            timeout = 0
        ready = self._selector.select(timeout)
        return sorted(key.data for key, _ in ready)

    def close(self) -> None:
        self._selector.close()

    def __len__(self) -> int:
        return len(self.handles)

    def __enter__(self) -> "WaitSet":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def wait_any(handles: Sequence[Any], timeout: Optional[float] = None) -> Optional[int]:
    """Block until one handle is ready; return its one-based index.

    Returns ``None`` when the timeout elapses first. The winning handle's
    ``acquire()`` hook runs before returning, which resets auto-reset events.
    """
    if not handles:
        return None
    with WaitSet(handles) as wait_set:
        ready = wait_set.wait(timeout)
    if not ready:
        return None
    winner = handles[ready[0]]
    acquire = getattr(winner, "acquire", None)
    if acquire is not None:
        acquire()
    return ready[0] + 1
