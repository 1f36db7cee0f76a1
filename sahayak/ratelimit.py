"""Per-client request limiter for the HTTP API."""

from collections import OrderedDict
import threading
import time
from typing import Callable


class RateLimiter:
    """
    Allow at most `limit` requests per `window` seconds for each client key.

    Every allowed request restarts the key's window, so a client is only
    reset after `window` seconds with no allowed requests.

    At most `max_clients` keys are tracked; the least recently seen key is
    dropped when a new one arrives.
    """

    def __init__(self,
                 limit: int = 10,
                 window: float = 60.0,
                 max_clients: int = 500,
                 clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self.max_clients = max_clients
        self._clock = clock
        # key -> (last allowed request, request count)
        self._counts: OrderedDict[str, tuple[float, int]] = OrderedDict()
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Count one request for key. Returns False when over the limit."""
        now = self._clock()
        with self._lock:
            last, count = self._counts.get(key, (now, 0))
            if now - last >= self.window:
                count = 0

            if count >= self.limit:
                if key in self._counts:
                    self._counts.move_to_end(key)
                return False

            self._counts[key] = (now, count + 1)
            self._counts.move_to_end(key)
            while len(self._counts) > self.max_clients:
                self._counts.popitem(last=False)
            return True

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()


def client_key(headers: dict[str, str] | None) -> str:
    """Client identity from X-Forwarded-For, "unknown" when absent."""
    if not headers:
        return "unknown"
    forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
    return forwarded or "unknown"
