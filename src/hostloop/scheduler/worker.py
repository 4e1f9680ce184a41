from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from hostloop.utils.logging import get_logger

from .completion import CompletionQueue
from .errors import DispatchFailure
from .models import AsyncTaskResult

logger = get_logger(__name__)

WorkUnit = Callable[[], Any]


class WorkerPool:
    """Bounded set of threads running blocking units of work.

    Workers never touch continuations; each accepted submission posts exactly
    one ``AsyncTaskResult`` to the completion queue and nothing else.
    """

    def __init__(
        self,
        completions: CompletionQueue,
        worker_count: Optional[int] = None,
        thread_name_prefix: str = "hostloop-worker",
    ) -> None:
        self.worker_count = worker_count or os.cpu_count() or 1
        self._completions = completions
        self._executor = ThreadPoolExecutor(
            max_workers=self.worker_count, thread_name_prefix=thread_name_prefix
        )
        self._shutdown = False

    def submit(self, unit: WorkUnit, continuation_id: int) -> None:
        if self._shutdown:
            raise DispatchFailure("worker pool is shut down")
        try:
            self._executor.submit(self._run, unit, continuation_id)
        except RuntimeError as exc:
            raise DispatchFailure(str(exc)) from exc

    def shutdown(self, wait: bool = True) -> None:
        if self._shutdown:
            return
        self._shutdown = True
        self._executor.shutdown(wait=wait)

    def _run(self, unit: WorkUnit, continuation_id: int) -> None:
        try:
            payload = unit()
        except Exception as exc:
            logger.debug("work unit failed: continuation=%s", continuation_id, exc_info=True)
            result = AsyncTaskResult(
                continuation_id=continuation_id,
                success=False,
                error=str(exc) or type(exc).__name__,
            )
        else:
            result = AsyncTaskResult(
                continuation_id=continuation_id, success=True, payload=payload
            )
        self._completions.put(result)
