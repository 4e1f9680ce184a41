from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from hostloop.host.waiting import MAXIMUM_WAIT_OBJECTS


def _default_worker_count() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class SchedulerConfig:
    worker_count: int = field(default_factory=_default_worker_count)
    max_wait_objects: int = MAXIMUM_WAIT_OBJECTS
    thread_name_prefix: str = "hostloop-worker"
    shutdown_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if self.max_wait_objects < 3:
            raise ValueError("max_wait_objects must be at least 3")


def load_scheduler_config() -> SchedulerConfig:
    load_dotenv()
    return SchedulerConfig(
        worker_count=_int_env("HOSTLOOP_WORKER_COUNT", _default_worker_count()),
        max_wait_objects=_int_env("HOSTLOOP_MAX_WAIT_OBJECTS", MAXIMUM_WAIT_OBJECTS),
        thread_name_prefix=os.environ.get("HOSTLOOP_THREAD_PREFIX", "hostloop-worker"),
    )


def _int_env(name: str, default: int) -> int:
    raw: Optional[str] = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
