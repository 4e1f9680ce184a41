from __future__ import annotations

from typing import Any, Generator

from .models import Step, Terminated

ScriptGenerator = Generator[Step, Any, Any]


class GeneratorContinuation:
    """Drive a generator-based script through ``resume``/``throw``.

    The script yields ``Dispatch`` or ``WaitAny`` to suspend and receives the
    ``(ok, value)`` pair it is resumed with as the value of the ``yield``.
    Returning ends the script; the return value becomes ``Terminated.result``.
    """

    def __init__(self, generator: ScriptGenerator) -> None:
        self._generator = generator
        self._started = False

    def resume(self, value: Any) -> Step:
        try:
            if not self._started:
                self._started = True
                step = next(self._generator)
            else:
                step = self._generator.send(value)
        except StopIteration as stop:
            return Terminated(result=stop.value)
        return step

    def throw(self, exc: BaseException) -> Step:
        self._started = True
        try:
            step = self._generator.throw(exc)
        except StopIteration as stop:
            return Terminated(result=stop.value)
        return step

    def close(self) -> None:
        self._generator.close()
