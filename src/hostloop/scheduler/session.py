from __future__ import annotations

import threading
from typing import Any, Optional

from hostloop.utils.logging import get_logger

from .config import SchedulerConfig
from .dispatcher import Dispatcher
from .protocols import PlatformEventSource
from .tasks import TaskRegistry

logger = get_logger(__name__)


class HostSession:
    """Run a ``Dispatcher`` on its own thread.

    The thread that calls ``start()`` stays free; scripts are handed over with
    ``spawn()`` and the loop ends with ``stop()``, which posts a quit event and
    joins the dispatcher thread.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        event_source: Optional[PlatformEventSource] = None,
        task_registry: Optional[TaskRegistry] = None,
    ) -> None:
        self.dispatcher = Dispatcher(
            config=config, event_source=event_source, task_registry=task_registry
        )
        self._runtime_thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None

    def start(self) -> None:
        if self._runtime_thread and self._runtime_thread.is_alive():
            logger.info("dispatcher already running")
            return

        def _run() -> None:
            try:
                self.dispatcher.run()
            except BaseException as exc:
                self._error = exc
                logger.error("dispatcher thread failed", exc_info=True)

        self._runtime_thread = threading.Thread(
            target=_run, name="hostloop-dispatcher", daemon=True
        )
        self._runtime_thread.start()

    def spawn(self, script: Any, name: Optional[str] = None) -> int:
        return self.dispatcher.spawn(script, name=name)

    def stop(self, exit_code: int = 0, timeout: Optional[float] = None) -> Optional[int]:
        if not self._runtime_thread:
            return self.dispatcher.exit_code
        if self._runtime_thread.is_alive():
            self.dispatcher.post_quit(exit_code)
        return self.join(timeout)

    def join(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the loop to end on its own, e.g. after a script posts quit."""
        if not self._runtime_thread:
            return self.dispatcher.exit_code
        if timeout is None:
            timeout = self.dispatcher.config.shutdown_timeout
        self._runtime_thread.join(timeout=timeout)
        if self._runtime_thread.is_alive():
            logger.error("dispatcher did not stop within %.1fs", timeout)
            return None
        self._runtime_thread = None
        if self._error is not None:
            raise RuntimeError("dispatcher thread failed") from self._error
        return self.dispatcher.exit_code

    def __enter__(self) -> "HostSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
