"""The dispatch loop: the only place continuations are resumed.

One thread calls ``Dispatcher.run()`` and becomes the dispatcher thread. It
blocks on "any of" a snapshot laid out as::

    (completion wake signal, *registered resources, platform event source)

and services whatever fired in ascending snapshot order. That order is the
tie-break when several handles are ready in the same wait: completions are
delivered first, then resources in registration order, then platform events,
so a quit posted alongside other work is seen last.
"""

from __future__ import annotations

import inspect
import itertools
import threading
from collections import deque
from typing import Any, Deque, Dict, Iterable, List, Optional, Sequence, Tuple

from hostloop.host.events import PlatformEventQueue, QuitEvent
from hostloop.host.handles import ResourceClosedError, Waitable
from hostloop.host.waiting import WaitSet, wait_any
from hostloop.utils.logging import get_logger

from .completion import CompletionQueue
from .config import SchedulerConfig
from .continuation import GeneratorContinuation
from .errors import CapacityError, DispatchFailure, SchedulerError, StaleResumption
from .models import (
    NO_VALID_RESOURCES,
    RESOURCE_CLOSED,
    ContinuationRecord,
    ContinuationState,
    Dispatch,
    Terminated,
    WaitAny,
    WaitOperation,
)
from .protocols import Continuation, PlatformEventSource
from .tasks import TaskRegistry
from .wait_table import WaitTable
from .worker import WorkerPool

logger = get_logger(__name__)

Outcome = Tuple[bool, Any]


class Dispatcher:
    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        event_source: Optional[PlatformEventSource] = None,
        task_registry: Optional[TaskRegistry] = None,
        completions: Optional[CompletionQueue] = None,
        worker_pool: Optional[WorkerPool] = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self._owns_event_source = event_source is None
        self.event_source = event_source or PlatformEventQueue()
        self.tasks = task_registry or TaskRegistry()
        self._completions = completions or CompletionQueue()
        self._wait_table = WaitTable(
            self.config.max_wait_objects, on_close=self._on_resource_closed
        )
        self._pool = worker_pool or WorkerPool(
            self._completions,
            worker_count=self.config.worker_count,
            thread_name_prefix=self.config.thread_name_prefix,
        )
        self._ids = itertools.count(1)
        self._records: Dict[int, ContinuationRecord] = {}
        self._outcomes: Dict[int, Terminated] = {}
        self._ready: Deque[Tuple[ContinuationRecord, Outcome]] = deque()
        self._spawn_lock = threading.Lock()
        self._pending_spawns: List[ContinuationRecord] = []
        self._snapshot: Optional[WaitSet] = None
        self._snapshot_operations: Dict[int, WaitOperation] = {}
        self._thread_id: Optional[int] = None
        self._started = False
        self._finished = False
        self.exit_code: Optional[int] = None

    @property
    def wait_table(self) -> WaitTable:
        return self._wait_table

    @property
    def completions(self) -> CompletionQueue:
        return self._completions

    @property
    def running(self) -> bool:
        return self._started and not self._finished

    # -- scripting-runtime facing operations -------------------------------

    def spawn(self, script: Any, name: Optional[str] = None) -> int:
        """Queue a continuation to start on the dispatcher thread.

        ``script`` is either a ``Continuation`` or a generator, which is wrapped
        in ``GeneratorContinuation``. Safe to call from any thread.
        """
        if inspect.isgenerator(script):
            continuation = GeneratorContinuation(script)
        elif isinstance(script, Continuation):
            continuation = script
        else:
            raise TypeError(f"cannot run {type(script).__name__} as a continuation")
        continuation_id = next(self._ids)
        record = ContinuationRecord(
            continuation_id=continuation_id,
            continuation=continuation,
            name=name or f"continuation-{continuation_id}",
        )
        with self._spawn_lock:
            if self._finished:
                raise DispatchFailure("dispatcher has shut down")
            self._pending_spawns.append(record)
        self._completions.wake()
        return continuation_id

    def dispatch_task(
        self, continuation_id: int, task_name: str, *args: Any, **kwargs: Any
    ) -> None:
        """Suspend a running continuation on a named unit of work."""
        record = self._suspendable(continuation_id)
        unit = self.tasks.resolve(task_name, *args, **kwargs)
        record.state = ContinuationState.SUSPENDED_ON_IO
        try:
            self._pool.submit(unit, continuation_id)
        except DispatchFailure:
            record.state = ContinuationState.RUNNING
            raise
        logger.debug("dispatched %s for %s", task_name, record.name)

    def register_wait(self, continuation_id: int, resources: Iterable[Waitable]) -> None:
        """Suspend a running continuation until any of ``resources`` is ready.

        An empty set resumes the continuation at once with
        ``(False, "no valid resources")`` instead of suspending it forever.
        """
        record = self._suspendable(continuation_id)
        resources = tuple(resources)
        if not resources:
            record.state = ContinuationState.SUSPENDED_ON_WAIT
            self._ready.append((record, (False, NO_VALID_RESOURCES)))
            return
        operation = WaitOperation(continuation_id=continuation_id, resources=resources)
        record.wait = operation
        record.state = ContinuationState.SUSPENDED_ON_WAIT
        try:
            self._wait_table.register(operation)
        except Exception:
            record.wait = None
            record.state = ContinuationState.RUNNING
            raise
        logger.debug("%s waiting on %d resources", record.name, len(resources))

    def wait_for_any(
        self, resources: Sequence[Waitable], timeout: Optional[float] = None
    ) -> Optional[int]:
        """Blocking "wait for any" for callers outside the cooperative model.

        Returns the one-based index of the first ready resource (lowest index
        wins ties), or ``None`` on timeout or for an empty set.
        """
        resources = tuple(resources)
        for resource in resources:
            if not isinstance(resource, Waitable):
                raise TypeError(
                    f"cannot wait on {type(resource).__name__}; expected a Waitable"
                )
            if resource.closed:
                raise ResourceClosedError(f"{resource!r} is closed")
        if len(resources) > self.config.max_wait_objects:
            raise CapacityError(len(resources), self.config.max_wait_objects)
        return wait_any(resources, timeout)

    def post_quit(self, exit_code: int = 0) -> None:
        self.event_source.post_quit(exit_code)

    def state_of(self, continuation_id: int) -> Optional[ContinuationState]:
        if continuation_id in self._outcomes:
            return ContinuationState.TERMINATED
        record = self._records.get(continuation_id)
        return record.state if record else None

    def outcome(self, continuation_id: int) -> Optional[Terminated]:
        return self._outcomes.get(continuation_id)

    # -- loop ---------------------------------------------------------------

    def run(self) -> int:
        if self._started:
            raise RuntimeError("dispatcher can only run once")
        self._started = True
        self._thread_id = threading.get_ident()
        logger.info(
            "dispatcher started: workers=%d capacity=%d",
            self._pool.worker_count,
            self._wait_table.capacity,
        )
        try:
            exit_code = self._loop()
        finally:
            self._shutdown()
        self.exit_code = exit_code
        logger.info("dispatcher stopped: exit_code=%s", exit_code)
        return exit_code

    def _loop(self) -> int:
        snapshot: Optional[WaitSet] = None
        while True:
            self._run_ready()
            if snapshot is None or self._wait_table.dirty:
                if self._reap_closed():
                    continue
                rebuilt = self._rebuild_snapshot()
                if rebuilt is None:
                    continue
                snapshot = rebuilt
            try:
                fired = snapshot.wait(self.event_source.next_timeout())
            except (OSError, ValueError):
                logger.warning("wait failed; rebuilding snapshot", exc_info=True)
                self._wait_table.mark_dirty()
                continue
            exit_code = self._handle_fired(snapshot, fired)
            if exit_code is not None:
                return exit_code

    def _handle_fired(self, snapshot: WaitSet, fired: List[int]) -> Optional[int]:
        handles = snapshot.handles
        last = len(handles) - 1
        # a timeout means a platform timer is due
        pump_platform = not fired
        for index in fired:
            if index == 0:
                self._on_wake()
            elif index == last:
                pump_platform = True
            else:
                self._on_resource_ready(handles[index])
        if pump_platform:
            return self._pump_platform()
        return None

    def _rebuild_snapshot(self) -> Optional[WaitSet]:
        handles = self._wait_table.rebuild_snapshot(
            self._completions.wake_signal, self.event_source
        )
        try:
            snapshot = WaitSet(handles)
        except (ResourceClosedError, OSError, ValueError):
            if not self._wait_table.closed_operations():
                raise
            logger.debug("resource closed during rebuild", exc_info=True)
            self._wait_table.mark_dirty()
            return None
        if self._snapshot is not None:
            self._snapshot.close()
        self._snapshot = snapshot
        # keyed by identity; holding the objects keeps the ids from being reused
        self._snapshot_operations = {
            id(operation): operation for operation in self._wait_table.operations()
        }
        return snapshot

    def _on_wake(self) -> None:
        self._completions.consume_wakeup()
        self._start_spawned()
        for result in self._completions.drain():
            record = self._records.get(result.continuation_id)
            if record is None or record.state is not ContinuationState.SUSPENDED_ON_IO:
                logger.warning(
                    "%s",
                    StaleResumption(
                        f"dropping result for continuation {result.continuation_id}"
                    ),
                )
                continue
            self._advance(record, result.outcome)

    def _on_resource_ready(self, resource: Waitable) -> None:
        operation = self._wait_table.lookup(resource)
        if operation is None:
            # torn down earlier in this batch
            return
        if self._snapshot_operations.get(id(operation)) is not operation:
            # registered after the snapshot was taken; the next wait decides
            return
        if not resource.closed and not resource.is_signaled():
            # reset since the wait reported it
            return
        if not self._wait_table.unregister_all(operation):
            return
        if resource.closed:
            outcome: Outcome = (False, RESOURCE_CLOSED)
        else:
            resource.acquire()
            outcome = (True, operation.index_of(resource))
        self._resume_waiter(operation, outcome)

    def _reap_closed(self) -> bool:
        operations = self._wait_table.closed_operations()
        for operation in operations:
            if self._wait_table.unregister_all(operation):
                logger.warning(
                    "awaited resource closed: continuation=%s", operation.continuation_id
                )
                self._resume_waiter(operation, (False, RESOURCE_CLOSED), deferred=True)
        return bool(operations)

    def _resume_waiter(
        self, operation: WaitOperation, outcome: Outcome, deferred: bool = False
    ) -> None:
        record = self._records.get(operation.continuation_id)
        if (
            record is None
            or record.state is not ContinuationState.SUSPENDED_ON_WAIT
            or record.wait is not operation
        ):
            logger.warning(
                "%s",
                StaleResumption(
                    f"dropping readiness for continuation {operation.continuation_id}"
                ),
            )
            return
        record.wait = None
        if deferred:
            self._ready.append((record, outcome))
        else:
            self._advance(record, outcome)

    def _run_ready(self) -> None:
        while self._ready:
            record, outcome = self._ready.popleft()
            if self._records.get(record.continuation_id) is not record:
                continue
            if record.state is not ContinuationState.SUSPENDED_ON_WAIT:
                continue
            self._advance(record, outcome)

    def _start_spawned(self) -> None:
        with self._spawn_lock:
            pending, self._pending_spawns = self._pending_spawns, []
        for record in pending:
            self._records[record.continuation_id] = record
            logger.debug("starting %s", record.name)
            self._advance(record, None)

    def _pump_platform(self) -> Optional[int]:
        for event in self.event_source.drain():
            if isinstance(event, QuitEvent):
                logger.info("quit event received: exit_code=%s", event.exit_code)
                return event.exit_code
            try:
                self.event_source.dispatch(event)
            except Exception:
                logger.error("platform event handler failed: %s", event.kind, exc_info=True)
        return None

    # -- resumption ---------------------------------------------------------

    def _advance(self, record: ContinuationRecord, value: Any) -> None:
        """Run a continuation until it suspends again or terminates."""
        error: Optional[BaseException] = None
        while True:
            record.state = ContinuationState.RUNNING
            try:
                if error is not None:
                    step = record.continuation.throw(error)
                else:
                    step = record.continuation.resume(value)
            except Exception as exc:
                logger.error("%s raised; terminating it", record.name, exc_info=True)
                self._terminate(record, Terminated(error=exc))
                return
            error = None
            if isinstance(step, Terminated):
                self._terminate(record, step)
                return
            try:
                if isinstance(step, Dispatch):
                    self.dispatch_task(
                        record.continuation_id, step.task_name, *step.args, **step.kwargs
                    )
                elif isinstance(step, WaitAny):
                    self.register_wait(record.continuation_id, step.resources)
                else:
                    raise TypeError(
                        f"unsupported suspension request: {type(step).__name__}"
                    )
            except (SchedulerError, ResourceClosedError, TypeError) as exc:
                logger.warning("%s: suspension rejected: %s", record.name, exc)
                error = exc
                continue
            return

    def _terminate(self, record: ContinuationRecord, step: Terminated) -> None:
        record.state = ContinuationState.TERMINATED
        if record.wait is not None:
            self._wait_table.unregister_all(record.wait)
            record.wait = None
        self._records.pop(record.continuation_id, None)
        self._outcomes[record.continuation_id] = step
        logger.debug("%s terminated", record.name)

    def _suspendable(self, continuation_id: int) -> ContinuationRecord:
        if self._thread_id is not None and threading.get_ident() != self._thread_id:
            raise RuntimeError("continuations can only suspend on the dispatcher thread")
        record = self._records.get(continuation_id)
        if record is None or record.state is not ContinuationState.RUNNING:
            raise StaleResumption(f"continuation {continuation_id} is not running")
        return record

    def _on_resource_closed(self, resource: Waitable) -> None:
        self._wait_table.mark_dirty()
        self._completions.wake()

    def _shutdown(self) -> None:
        with self._spawn_lock:
            self._finished = True
            unstarted = len(self._pending_spawns)
            self._pending_spawns = []
        self._completions.close()
        self._pool.shutdown(wait=True)
        for record in list(self._records.values()):
            if record.wait is not None:
                self._wait_table.unregister_all(record.wait)
                record.wait = None
        if self._snapshot is not None:
            self._snapshot.close()
            self._snapshot = None
        self._snapshot_operations = {}
        if self._owns_event_source and isinstance(self.event_source, PlatformEventQueue):
            self.event_source.close()
        if self._records or unstarted:
            logger.info(
                "shutdown with %d suspended and %d unstarted continuations",
                len(self._records),
                unstarted,
            )
