"""OS-facing collaborators: waitable handles, the bounded wait and platform events."""

from .events import PlatformEvent, PlatformEventQueue, QuitEvent, TimerEvent
from .handles import Event, ProcessHandle, ResourceClosedError, Waitable, WaitableTimer
from .waiting import MAXIMUM_WAIT_OBJECTS, WaitSet, wait_any

__all__ = [
    "PlatformEvent",
    "PlatformEventQueue",
    "QuitEvent",
    "TimerEvent",
    "Event",
    "ProcessHandle",
    "ResourceClosedError",
    "Waitable",
    "WaitableTimer",
    "MAXIMUM_WAIT_OBJECTS",
    "WaitSet",
    "wait_any",
]
