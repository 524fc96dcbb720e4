import contextlib
import time

from starkcast import my_logging
from starkcast.config import sc_print


@contextlib.contextmanager
def time_measure(key, should_print=False, skip=False):
    start = time.time()
    yield
    end = time.time()
    elapsed = end - start

    if not skip:
        if should_print:
            sc_print(f"Took {elapsed} s")
        my_logging.data("time_" + key, elapsed)

