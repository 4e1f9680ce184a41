import sys

from hostloop.host.handles import ProcessHandle, WaitableTimer
from hostloop.scheduler.dispatcher import Dispatcher
from hostloop.scheduler.models import Dispatch, WaitAny
from hostloop.utils.logging import setup_logging


def watch_child(dispatcher: Dispatcher):
    ok, data = yield Dispatch.call("read_file", __file__)
    print(f"read {len(data)} bytes" if ok else f"read failed: {data}")

    child = ProcessHandle.spawn([sys.executable, "-c", "import time; time.sleep(0.5)"])
    deadline = WaitableTimer(2.0)
    with child, deadline:
        ok, index = yield WaitAny([child, deadline])
        if index == 1:
            print(f"child exited with {child.exit_code}")
        else:
            print("child still running after 2s")
    dispatcher.post_quit(0)


if __name__ == "__main__":
    setup_logging()
    dispatcher = Dispatcher()
    dispatcher.spawn(watch_child(dispatcher), name="watch-child")
    raise SystemExit(dispatcher.run())
