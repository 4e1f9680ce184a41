import pytest

from hostloop.host.handles import Event, ResourceClosedError
from hostloop.scheduler.errors import CapacityError, RegistrationConflict
from hostloop.scheduler.models import WaitOperation
from hostloop.scheduler.wait_table import WaitTable


@pytest.fixture
def events():
    created = [Event() for _ in range(5)]
    yield created
    for event in created:
        event.close()


def test_register_maps_every_resource(events):
    table = WaitTable()
    operation = WaitOperation(continuation_id=1, resources=tuple(events[:3]))
    table.register(operation)
    assert len(table) == 3
    for resource in events[:3]:
        assert table.lookup(resource) is operation
    assert table.lookup(events[3]) is None
    assert operation.index_of(events[1]) == 2


def test_register_conflict_fails_loudly(events):
    table = WaitTable()
    first = WaitOperation(continuation_id=1, resources=(events[0], events[1]))
    table.register(first)
    with pytest.raises(RegistrationConflict) as info:
        table.register(WaitOperation(continuation_id=2, resources=(events[2], events[1])))
    assert info.value.owner_id == 1
    assert table.lookup(events[1]) is first
    assert table.lookup(events[2]) is None
    assert len(table) == 2


def test_duplicate_resource_in_one_operation_is_a_conflict(events):
    table = WaitTable()
    with pytest.raises(RegistrationConflict):
        table.register(WaitOperation(continuation_id=1, resources=(events[0], events[0])))
    assert len(table) == 0


def test_one_beyond_capacity_leaves_no_partial_registration(events):
    # four wait slots: wake signal, event source, two resources
    table = WaitTable(max_wait_objects=4)
    assert table.capacity == 2
    with pytest.raises(CapacityError) as info:
        table.register(WaitOperation(continuation_id=1, resources=tuple(events[:3])))
    assert info.value.capacity == 2
    assert len(table) == 0
    for resource in events[:3]:
        assert table.lookup(resource) is None


def test_capacity_counts_existing_registrations(events):
    table = WaitTable(max_wait_objects=4)
    table.register(WaitOperation(continuation_id=1, resources=(events[0],)))
    with pytest.raises(CapacityError):
        table.register(WaitOperation(continuation_id=2, resources=(events[1], events[2])))
    table.register(WaitOperation(continuation_id=2, resources=(events[1],)))
    assert len(table) == 2


def test_table_needs_room_for_wake_signal_and_event_source():
    with pytest.raises(ValueError):
        WaitTable(max_wait_objects=2)
    assert WaitTable().capacity == 62


def test_register_rejects_non_waitables_and_closed_handles(events):
    table = WaitTable()
    with pytest.raises(TypeError):
        table.register(WaitOperation(continuation_id=1, resources=(events[0], "R2")))
    events[4].close()
    with pytest.raises(ResourceClosedError):
        table.register(WaitOperation(continuation_id=1, resources=(events[4],)))
    assert len(table) == 0


def test_unregister_all_removes_whole_operation(events):
    table = WaitTable()
    operation = WaitOperation(continuation_id=1, resources=tuple(events[:3]))
    other = WaitOperation(continuation_id=2, resources=(events[3],))
    table.register(operation)
    table.register(other)
    table.rebuild_snapshot("wake", "platform")
    assert not table.dirty
    assert table.unregister_all(operation)
    assert table.dirty
    assert len(table) == 1
    assert table.lookup(events[3]) is other
    assert not table.unregister_all(operation)


def test_snapshot_order_is_wake_resources_platform(events):
    table = WaitTable()
    assert table.dirty
    table.register(WaitOperation(continuation_id=1, resources=(events[2], events[0])))
    table.register(WaitOperation(continuation_id=2, resources=(events[1],)))
    snapshot = table.rebuild_snapshot("wake", "platform")
    assert snapshot == ("wake", events[2], events[0], events[1], "platform")
    assert not table.dirty


def test_closing_a_registered_resource_marks_dirty(events):
    table = WaitTable()
    operation = WaitOperation(continuation_id=1, resources=(events[0], events[1]))
    table.register(operation)
    table.rebuild_snapshot("wake", "platform")
    events[1].close()
    assert table.dirty
    assert table.closed_operations() == [operation]


def test_operations_lists_each_registration_once(events):
    table = WaitTable()
    first = WaitOperation(continuation_id=1, resources=(events[0], events[1]))
    second = WaitOperation(continuation_id=2, resources=(events[2],))
    table.register(first)
    table.register(second)
    assert table.operations() == [first, second]
    table.unregister_all(first)
    assert table.operations() == [second]
