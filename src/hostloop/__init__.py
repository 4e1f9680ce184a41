"""Script host with an asynchronous task scheduler."""

from .host.events import PlatformEventQueue, QuitEvent
from .host.handles import Event, ProcessHandle, ResourceClosedError, Waitable, WaitableTimer
from .scheduler.dispatcher import Dispatcher
from .scheduler.errors import CapacityError, DispatchFailure, RegistrationConflict
from .scheduler.models import Dispatch, Terminated, WaitAny
from .scheduler.session import HostSession

__all__ = [
    "PlatformEventQueue",
    "QuitEvent",
    "Event",
    "ProcessHandle",
    "ResourceClosedError",
    "Waitable",
    "WaitableTimer",
    "Dispatcher",
    "CapacityError",
    "DispatchFailure",
    "RegistrationConflict",
    "Dispatch",
    "Terminated",
    "WaitAny",
    "HostSession",
]
