from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from hostloop.host.handles import Waitable

NO_VALID_RESOURCES = "no valid resources"
RESOURCE_CLOSED = "resource closed"


class ContinuationState(str, Enum):
    RUNNING = "running"
    SUSPENDED_ON_IO = "suspended_on_io"
    SUSPENDED_ON_WAIT = "suspended_on_wait"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Dispatch:
    """Suspend until the named unit of work finishes on the worker pool."""

    task_name: str
    args: Tuple[Any, ...] = ()
    kwargs: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def call(cls, task_name: str, *args: Any, **kwargs: Any) -> "Dispatch":
        return cls(task_name=task_name, args=tuple(args), kwargs=dict(kwargs))


@dataclass(frozen=True)
class WaitAny:
    """Suspend until any one of ``resources`` becomes ready."""

    resources: Tuple[Waitable, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "resources", tuple(self.resources))


@dataclass(frozen=True)
class Terminated:
    result: Any = None
    error: Optional[BaseException] = None


Step = Union[Dispatch, WaitAny, Terminated]


@dataclass(frozen=True)
class AsyncTaskResult:
    continuation_id: int
    success: bool
    payload: Any = None
    error: Optional[str] = None

    @property
    def outcome(self) -> Tuple[bool, Any]:
        if self.success:
            return True, self.payload
        return False, self.error


@dataclass(frozen=True)
class WaitOperation:
    continuation_id: int
    resources: Tuple[Waitable, ...]

    def index_of(self, resource: Waitable) -> int:
        """One-based position of ``resource`` in the awaited list."""
        for index, candidate in enumerate(self.resources, start=1):
            if candidate is resource:
                return index
        raise KeyError(resource.handle_id)


@dataclass
class ContinuationRecord:
    continuation_id: int
    continuation: Any
    name: str
    state: ContinuationState = ContinuationState.RUNNING
    wait: Optional[WaitOperation] = None
