import os
import tempfile

os.environ.setdefault(
    "HOSTLOOP_LOG_DIR", os.path.join(tempfile.gettempdir(), "hostloop-tests")
)
