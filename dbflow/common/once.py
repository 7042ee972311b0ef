"""One-time execution guard shared by the registry and the connection manager."""

import threading
from typing import Callable


class Once:
    """Run a callable exactly once, whatever the number of concurrent callers.

    The first caller executes the body while holding the lock; every concurrent
    caller blocks until it returns, then skips it. The guard is marked done even
    when the body raises, so a failed body is never re-executed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    def do(self, fn: Callable[[], None]) -> bool:
        """Execute `fn` if no caller has yet; return True only for that caller."""

        if self._done:
            return False
        with self._lock:
            if self._done:
                return False
            try:
                fn()
            finally:
                self._done = True
        return True
