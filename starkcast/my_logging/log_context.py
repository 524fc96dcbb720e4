import contextlib
import threading
from typing import List


_local = threading.local()


def get_log_context() -> List[str]:
    """Return the context stack of the calling thread."""
    if not hasattr(_local, 'stack'):
        _local.stack = []
    return _local.stack


@contextlib.contextmanager
def log_context(key: str):
    stack = get_log_context()
    stack.append(key)
    try:
        yield
    finally:
        stack.pop()
