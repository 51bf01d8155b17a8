"""Per-sender sliding window rate limiting."""

from __future__ import annotations

import time


class RateLimiter:
    """
    Sliding window admission control keyed by sender id.

    Timestamps are epoch seconds. ``admit`` never awaits, so on a single
    event loop each call is an atomic read-modify-write of that sender's
    window.
    """

    def __init__(self, max_requests: int = 10, window_hours: float = 1.0):
        self.max_requests = max_requests
        self.window_seconds = window_hours * 3600.0
        self._requests: dict[str, list[float]] = {}

    def _live(self, sender_id: str, now: float) -> list[float]:
        timestamps = self._requests.get(sender_id, [])
        return [ts for ts in timestamps if now - ts < self.window_seconds]

    def admit(self, sender_id: str, now: float | None = None) -> bool:
        """Record and allow a request, or refuse it without mutating state."""
        current = time.time() if now is None else now
        valid = self._live(sender_id, current)
        if len(valid) >= self.max_requests:
            return False
        valid.append(current)
        self._requests[sender_id] = valid
        return True

    def remaining(self, sender_id: str, now: float | None = None) -> int:
        current = time.time() if now is None else now
        return max(0, self.max_requests - len(self._live(sender_id, current)))

    def reset(self, sender_id: str | None = None) -> None:
        if sender_id is None:
            self._requests.clear()
        else:
            self._requests.pop(sender_id, None)
