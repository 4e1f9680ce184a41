"""Waitable OS resources.

Every handle owns a connected socket pair whose read end becomes readable
while the handle is signaled. Socket pairs are selectable on every platform
the standard ``selectors`` module supports, which is what lets the
dispatcher block on many handles at once.
"""

from __future__ import annotations

import itertools
import socket
import subprocess
import threading
from typing import Callable, List, Optional, Sequence

from hostloop.utils.logging import get_logger

logger = get_logger(__name__)

_handle_ids = itertools.count(1)


class ResourceClosedError(Exception):
    """The handle was used after ``close()``."""


class _SignalPair:
    def __init__(self) -> None:
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)
        self._writer.setblocking(False)

    def fileno(self) -> int:
        return self._reader.fileno()

    def raise_signal(self) -> None:
        try:
            self._writer.send(b"\x00")
        except BlockingIOError:
            # buffer full means the reader is already readable
            pass

    def clear(self) -> None:
        while True:
            try:
                data = self._reader.recv(4096)
            except BlockingIOError:
                return
            if not data:
                return

    def close(self) -> None:
        self._reader.close()
        self._writer.close()


class Waitable:
    """Base class for anything the dispatcher can block on."""

    kind = "waitable"

    def __init__(self, signaled: bool = False) -> None:
        self.handle_id = next(_handle_ids)
        self._lock = threading.Lock()
        self._signal = _SignalPair()
        self._signaled = False
        self._closed = False
        self._close_callbacks: List[Callable[["Waitable"], None]] = []
        if signaled:
            self._set_signaled()

    @property
    def closed(self) -> bool:
        return self._closed

    def fileno(self) -> int:
        with self._lock:
            if self._closed:
                raise ResourceClosedError(f"{self!r} is closed")
            return self._signal.fileno()

    def is_signaled(self) -> bool:
        return self._signaled

    def add_close_callback(self, callback: Callable[["Waitable"], None]) -> None:
        with self._lock:
            if not self._closed:
                self._close_callbacks.append(callback)
                return
        callback(self)

    def remove_close_callback(self, callback: Callable[["Waitable"], None]) -> None:
        with self._lock:
            try:
                self._close_callbacks.remove(callback)
            except ValueError:
                pass

    def close(self) -> None:
        """Release the handle. Calling it again is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._signaled = False
            self._signal.close()
            callbacks = list(self._close_callbacks)
            self._close_callbacks.clear()
        self._on_close()
        for callback in callbacks:
            try:
                callback(self)
            except Exception:
                logger.error("close callback failed: %r", self, exc_info=True)

    def acquire(self) -> None:
        """Hook run when a wait is satisfied by this handle."""

    def _set_signaled(self) -> None:
        with self._lock:
            if self._closed or self._signaled:
                return
            self._signaled = True
            self._signal.raise_signal()

    def _clear_signaled(self) -> None:
        with self._lock:
            if self._closed or not self._signaled:
                return
            self._signaled = False
            self._signal.clear()

    def _on_close(self) -> None:
        pass

    def __enter__(self) -> "Waitable":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else ("signaled" if self._signaled else "idle")
        return f"<{type(self).__name__} #{self.handle_id} {state}>"


class Event(Waitable):
    """Manual- or auto-reset event.

    An auto-reset event returns to the non-signaled state as soon as one wait
    observes it; several ``set()`` calls before that coalesce into one.
    """

    kind = "event"

    def __init__(self, manual_reset: bool = True, initial_state: bool = False) -> None:
        self.manual_reset = manual_reset
        super().__init__(signaled=initial_state)

    def set(self) -> None:
        self._set_signaled()

    def reset(self) -> None:
        self._clear_signaled()

    def is_set(self) -> bool:
        return self.is_signaled()

    def acquire(self) -> None:
        if not self.manual_reset:
            self._clear_signaled()


class WaitableTimer(Waitable):
    """Becomes signaled once the configured delay elapses."""

    kind = "timer"

    def __init__(self, delay: Optional[float] = None) -> None:
        super().__init__()
        self._timer: Optional[threading.Timer] = None
        if delay is not None:
            self.set(delay)

    def set(self, delay: float) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        if self.closed:
            raise ResourceClosedError(f"{self!r} is closed")
        self.cancel()
        self._clear_signaled()
        timer = threading.Timer(delay, self._set_signaled)
        timer.daemon = True
        self._timer = timer
        timer.start()

    def cancel(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _on_close(self) -> None:
        self.cancel()


class ProcessHandle(Waitable):
    """Signaled when the wrapped child process exits.

    Closing the handle stops nothing; the process keeps running.
    """

    kind = "process"

    def __init__(self, popen: subprocess.Popen) -> None:
        super().__init__()
        self._popen = popen
        self._watcher = threading.Thread(
            target=self._watch, name=f"hostloop-proc-{popen.pid}", daemon=True
        )
        self._watcher.start()

    @classmethod
    def spawn(
        cls, args: Sequence[str], cwd: Optional[str] = None, **popen_kwargs
    ) -> "ProcessHandle":
        return cls(subprocess.Popen(list(args), cwd=cwd, **popen_kwargs))

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def exit_code(self) -> Optional[int]:
        return self._popen.returncode

    def wait(self, timeout: Optional[float] = None) -> int:
        return self._popen.wait(timeout=timeout)

    def _watch(self) -> None:
        try:
            self._popen.wait()
        except Exception:
            logger.error("process watch failed: pid=%s", self._popen.pid, exc_info=True)
        self._set_signaled()
