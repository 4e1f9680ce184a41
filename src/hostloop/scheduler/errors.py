from __future__ import annotations

from typing import Optional


class SchedulerError(Exception):
    """Base class for scheduler infrastructure errors."""


class CapacityError(SchedulerError):
    """A resource set does not fit the bound of the wait primitive."""

    def __init__(self, requested: int, capacity: int) -> None:
        super().__init__(
            f"wait set of {requested} resources exceeds capacity of {capacity}"
        )
        self.requested = requested
        self.capacity = capacity


class RegistrationConflict(SchedulerError):
    """A resource is already owned by another wait operation."""

    def __init__(self, handle_id: int, owner_id: Optional[int] = None) -> None:
        if owner_id is None:
            message = f"resource {handle_id} listed more than once"
        else:
            message = f"resource {handle_id} already awaited by continuation {owner_id}"
        super().__init__(message)
        self.handle_id = handle_id
        self.owner_id = owner_id


class DispatchFailure(SchedulerError):
    """A unit of work could not be handed to the worker pool."""


class WorkerFailure(SchedulerError):
    """Raised by a unit of work to report a failure with a message."""


class StaleResumption(SchedulerError):
    """A result or signal targets a continuation that is no longer suspended."""
