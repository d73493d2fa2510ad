"""Fixed-window per-identity admission control."""

import time


class RateLimiter:
    """
    Allow at most ``limit`` requests per ``window`` seconds for each identity.

    The window opens at an identity's first request and resets once it has
    elapsed. Single event loop only; no locking.
    """

    def __init__(self, limit: int = 3, window: float = 60.0, clock=time.monotonic):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}

    def allow(self, identity: str, now: float | None = None) -> bool:
        now = self._clock() if now is None else now
        started, count = self._windows.get(identity, (now, 0))
        if now - started >= self.window:
            started, count = now, 0
        if count >= self.limit:
            self._windows[identity] = (started, count)
            return False
        self._windows[identity] = (started, count + 1)
        self._prune(now)
        return True

    def retry_after(self, identity: str, now: float | None = None) -> float:
        now = self._clock() if now is None else now
        started, _ = self._windows.get(identity, (now, 0))
        return max(0.0, self.window - (now - started))

    def _prune(self, now: float):
        if len(self._windows) < 10_000:
            return
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for key in expired:
            del self._windows[key]
