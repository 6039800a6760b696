import threading
from collections.abc import Callable, Hashable
from concurrent.futures import Future
from typing import Any


class SingleFlight:
    """
    Collapses concurrent calls sharing a key within this process: the first caller runs
    the function and later callers wait for and share its outcome, exception included.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: dict[Hashable, Future] = {}

    def run(self, key: Hashable, fn: Callable[[], Any]) -> Any:
        with self._lock:
            future = self._calls.get(key)
            is_leader = future is None
            if is_leader:
                future = Future()
                self._calls[key] = future

        if not is_leader:
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._calls.pop(key, None)
