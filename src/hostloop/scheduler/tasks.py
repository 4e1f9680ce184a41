from __future__ import annotations

import functools
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from hostloop.host.handles import ProcessHandle

from .errors import DispatchFailure, WorkerFailure
from .worker import WorkUnit

TaskFunction = Callable[..., Any]


class TaskRegistry:
    """Named blocking operations that scripts can dispatch to the worker pool."""

    def __init__(self, include_builtins: bool = True) -> None:
        self._tasks: Dict[str, TaskFunction] = {}
        if include_builtins:
            for name, function in builtin_tasks().items():
                self.register(name, function)

    def register(self, name: str, function: TaskFunction) -> None:
        if not name:
            raise ValueError("task name must not be empty")
        self._tasks[name] = function

    def unregister(self, name: str) -> None:
        self._tasks.pop(name, None)

    def names(self) -> List[str]:
        return sorted(self._tasks)

    def resolve(self, name: str, *args: Any, **kwargs: Any) -> WorkUnit:
        function = self._tasks.get(name)
        if function is None:
            raise DispatchFailure(f"unknown task: {name}")
        return functools.partial(function, *args, **kwargs)

    def __contains__(self, name: str) -> bool:
        return name in self._tasks


def read_file(path: Union[str, Path], encoding: Optional[str] = None) -> Union[bytes, str]:
    data = Path(path).read_bytes()
    if encoding:
        return data.decode(encoding)
    return data


def write_file(path: Union[str, Path], data: Union[bytes, str], append: bool = False) -> int:
    if isinstance(data, str):
        data = data.encode("utf-8")
    mode = "ab" if append else "wb"
    with open(path, mode) as handle:
        return handle.write(data)


def sleep(seconds: float) -> None:
    time.sleep(max(0.0, float(seconds)))


def run_process(args: Sequence[str], cwd: Optional[str] = None) -> int:
    completed = subprocess.run(list(args), cwd=cwd, check=False)
    return completed.returncode


def process_wait(handle: ProcessHandle, timeout: Optional[float] = None) -> int:
    try:
        return handle.wait(timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise WorkerFailure(f"process {handle.pid} still running after {timeout}s") from exc


def builtin_tasks() -> Dict[str, TaskFunction]:
    return {
        "read_file": read_file,
        "write_file": write_file,
        "sleep": sleep,
        "run_process": run_process,
        "process_wait": process_wait,
    }
