# vending_service/rate_limiter.py

"""
Cool-down rate limiter for purchases.
Remembers when the last successful purchase happened for each lock key and
rejects new attempts until the cool-down window has elapsed.
"""
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class CooldownRateLimiter:
    """
    Tracks the last successful purchase time per lock key.

    One instance is created per application and shared by every request.
    All access to the timestamp map goes through a lock, so concurrent
    requests never see a half-written entry. The latest success time is
    kept when two commits race.
    """

    def __init__(self, cooldown_seconds: float = 5.0, clock: Clock = utc_now):
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.clock = clock
        self._last_success: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def retry_after(self, key: str, now: Optional[datetime] = None) -> float:
        """
        Returns how many seconds the caller must still wait, or 0.0 when a
        purchase on `key` is allowed right now. Elapsed time equal to the
        cool-down counts as allowed.
        """
        now = now or self.clock()
        with self._lock:
            last = self._last_success.get(key)
        if last is None:
            return 0.0
        elapsed = now - last
        if elapsed >= self.cooldown:
            return 0.0
        return (self.cooldown - elapsed).total_seconds()

    def is_allowed(self, key: str, now: Optional[datetime] = None) -> bool:
        return self.retry_after(key, now) == 0.0

    def record_success(self, key: str, at: Optional[datetime] = None) -> datetime:
        """Stores the time of a committed purchase for `key`."""
        at = at or self.clock()
        with self._lock:
            previous = self._last_success.get(key)
            # Out-of-order commits must not move the window backwards.
            if previous is None or at > previous:
                self._last_success[key] = at
            stored = self._last_success[key]
        logger.debug(f"Rate limiter: last success for '{key}' is now {stored.isoformat()}")
        return stored

    def last_success(self, key: str) -> Optional[datetime]:
        with self._lock:
            return self._last_success.get(key)

    def reset(self, key: Optional[str] = None) -> None:
        """Forgets one key, or every key when none is given."""
        with self._lock:
            if key is None:
                self._last_success.clear()
            else:
                self._last_success.pop(key, None)
