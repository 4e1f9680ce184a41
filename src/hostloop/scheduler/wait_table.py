from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from hostloop.host.handles import ResourceClosedError, Waitable
from hostloop.host.waiting import MAXIMUM_WAIT_OBJECTS

from .errors import CapacityError, RegistrationConflict
from .models import WaitOperation


class WaitTable:
    """Maps each awaited resource to the one wait operation that owns it.

    The wait primitive holds at most ``max_wait_objects`` handles. The completion
    wake signal takes one slot and the platform event source another, so at most
    ``max_wait_objects - 2`` distinct resources may be registered at once.
    """

    def __init__(
        self,
        max_wait_objects: int = MAXIMUM_WAIT_OBJECTS,
        on_close: Optional[Callable[[Waitable], None]] = None,
    ) -> None:
        if max_wait_objects < 3:
            raise ValueError(
                "max_wait_objects must leave room for the wake signal and event source"
            )
        self.capacity = max_wait_objects - 2
        self._lock = threading.Lock()
        self._entries: Dict[int, Tuple[Waitable, WaitOperation]] = {}
        self._dirty = True
        self._on_close = on_close or self._mark_dirty_on_close

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    def register(self, operation: WaitOperation) -> None:
        seen = set()
        for resource in operation.resources:
            if not isinstance(resource, Waitable):
                raise TypeError(
                    f"cannot wait on {type(resource).__name__}; expected a Waitable"
                )
            if resource.closed:
                raise ResourceClosedError(f"{resource!r} is closed")
            if resource.handle_id in seen:
                raise RegistrationConflict(resource.handle_id)
            seen.add(resource.handle_id)
        with self._lock:
            for handle_id in seen:
                existing = self._entries.get(handle_id)
                if existing is not None:
                    raise RegistrationConflict(handle_id, existing[1].continuation_id)
            requested = len(self._entries) + len(seen)
            if requested > self.capacity:
                raise CapacityError(requested, self.capacity)
            for resource in operation.resources:
                self._entries[resource.handle_id] = (resource, operation)
            self._dirty = True
        for resource in operation.resources:
            resource.add_close_callback(self._on_close)

    def unregister_all(self, operation: WaitOperation) -> bool:
        """Remove every member of ``operation`` in one step.

        Returns ``False`` when the operation was no longer registered.
        """
        removed = False
        with self._lock:
            for resource in operation.resources:
                entry = self._entries.get(resource.handle_id)
                if entry is not None and entry[1] is operation:
                    del self._entries[resource.handle_id]
                    removed = True
            if removed:
                self._dirty = True
        if removed:
            for resource in operation.resources:
                resource.remove_close_callback(self._on_close)
        return removed

    def lookup(self, resource: Waitable) -> Optional[WaitOperation]:
        with self._lock:
            entry = self._entries.get(resource.handle_id)
        if entry is None or entry[0] is not resource:
            return None
        return entry[1]

    def operations(self) -> List[WaitOperation]:
        """Distinct registered operations, in registration order."""
        with self._lock:
            operations = [op for _, op in self._entries.values()]
        unique: List[WaitOperation] = []
        for operation in operations:
            if not any(operation is seen for seen in unique):
                unique.append(operation)
        return unique

    def closed_operations(self) -> List[WaitOperation]:
        with self._lock:
            operations = [op for resource, op in self._entries.values() if resource.closed]
        unique: List[WaitOperation] = []
        for operation in operations:
            if not any(operation is seen for seen in unique):
                unique.append(operation)
        return unique

    def rebuild_snapshot(self, wake_signal: Any, event_source: Any) -> Tuple[Any, ...]:
        """Flat handle list for the wait primitive, in tie-break order."""
        with self._lock:
            resources = [resource for resource, _ in self._entries.values()]
            self._dirty = False
        return (wake_signal, *resources, event_source)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, resource: Waitable) -> bool:
        return self.lookup(resource) is not None

    def _mark_dirty_on_close(self, resource: Waitable) -> None:
        self._dirty = True
