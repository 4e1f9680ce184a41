import pytest

from hostloop.scheduler.config import SchedulerConfig, load_scheduler_config
from hostloop.scheduler.tasks import TaskRegistry
from hostloop.scheduler.errors import DispatchFailure


def test_defaults_follow_wait_primitive_bound():
    config = SchedulerConfig()
    assert config.max_wait_objects == 64
    assert config.worker_count >= 1


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HOSTLOOP_WORKER_COUNT", "3")
    monkeypatch.setenv("HOSTLOOP_MAX_WAIT_OBJECTS", "16")
    monkeypatch.setenv("HOSTLOOP_THREAD_PREFIX", "io")
    config = load_scheduler_config()
    assert config.worker_count == 3
    assert config.max_wait_objects == 16
    assert config.thread_name_prefix == "io"


def test_invalid_env_value(monkeypatch):
    monkeypatch.setenv("HOSTLOOP_WORKER_COUNT", "many")
    with pytest.raises(ValueError):
        load_scheduler_config()


def test_config_rejects_zero_workers():
    with pytest.raises(ValueError):
        SchedulerConfig(worker_count=0)


def test_config_reserves_wake_and_event_source_slots():
    with pytest.raises(ValueError):
        SchedulerConfig(max_wait_objects=2)
    assert SchedulerConfig(max_wait_objects=3).max_wait_objects == 3


def test_registry_resolves_named_units(tmp_path):
    registry = TaskRegistry()
    assert {"read_file", "write_file", "sleep", "run_process", "process_wait"} <= set(
        registry.names()
    )
    target = tmp_path / "f.bin"
    target.write_bytes(b"abc")
    assert registry.resolve("read_file", str(target))() == b"abc"
    with pytest.raises(DispatchFailure):
        registry.resolve("missing")
