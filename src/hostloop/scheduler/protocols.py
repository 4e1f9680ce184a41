from __future__ import annotations

from typing import Any, List, Optional, Protocol, runtime_checkable

from hostloop.host.events import PlatformEvent

from .models import Step


@runtime_checkable
class Continuation(Protocol):
    def resume(self, value: Any) -> Step: ...

    def throw(self, exc: BaseException) -> Step: ...


@runtime_checkable
class PlatformEventSource(Protocol):
    def fileno(self) -> int: ...

    def drain(self) -> List[PlatformEvent]: ...

    def dispatch(self, event: PlatformEvent) -> None: ...

    def next_timeout(self) -> Optional[float]: ...

    def post_quit(self, exit_code: int = 0) -> None: ...
