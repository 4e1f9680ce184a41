from hostloop.scheduler.continuation import GeneratorContinuation
from hostloop.scheduler.models import Dispatch, Terminated, WaitAny
from hostloop.scheduler.protocols import Continuation


def _script():
    ok, data = yield Dispatch.call("read_file", "a.txt")
    try:
        yield WaitAny([])
    except RuntimeError as exc:
        return ("recovered", data, str(exc))
    return ("done", ok, data)


def test_generator_continuation_steps_through_script():
    continuation = GeneratorContinuation(_script())
    assert isinstance(continuation, Continuation)
    assert continuation.resume(None) == Dispatch("read_file", ("a.txt",), {})
    assert continuation.resume((True, b"x")) == WaitAny(())
    assert continuation.resume((False, "no valid resources")) == Terminated(
        result=("done", True, b"x")
    )


def test_throw_delivers_error_at_suspension_point():
    continuation = GeneratorContinuation(_script())
    continuation.resume(None)
    continuation.resume((True, b"x"))
    step = continuation.throw(RuntimeError("boom"))
    assert step == Terminated(result=("recovered", b"x", "boom"))


def test_wait_any_accepts_any_iterable():
    assert WaitAny(iter([])).resources == ()
