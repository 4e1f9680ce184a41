"""Asynchronous task scheduler: worker pool, wait table and dispatch loop."""

from .completion import CompletionQueue
from .config import SchedulerConfig, load_scheduler_config
from .continuation import GeneratorContinuation
from .dispatcher import Dispatcher
from .errors import (
    CapacityError,
    DispatchFailure,
    RegistrationConflict,
    SchedulerError,
    StaleResumption,
    WorkerFailure,
)
from .models import (
    AsyncTaskResult,
    ContinuationState,
    Dispatch,
    Terminated,
    WaitAny,
    WaitOperation,
)
from .session import HostSession
from .tasks import TaskRegistry
from .wait_table import WaitTable
from .worker import WorkerPool

__all__ = [
    "CompletionQueue",
    "SchedulerConfig",
    "load_scheduler_config",
    "GeneratorContinuation",
    "Dispatcher",
    "CapacityError",
    "DispatchFailure",
    "RegistrationConflict",
    "SchedulerError",
    "StaleResumption",
    "WorkerFailure",
    "AsyncTaskResult",
    "ContinuationState",
    "Dispatch",
    "Terminated",
    "WaitAny",
    "WaitOperation",
    "HostSession",
    "TaskRegistry",
    "WaitTable",
    "WorkerPool",
]
