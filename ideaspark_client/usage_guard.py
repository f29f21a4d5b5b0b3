"""
Local usage guard: an advisory sliding-window counter kept on the device.

It only spares the server obviously over-limit requests; the server-side
limiter is the actual boundary. Every storage problem fails open.
"""

import json
import math
import time
from dataclasses import dataclass
from typing import List, Optional

from shared.errors import LocalStorageUnavailable
from shared.logging import get_logger
from .storage import LocalStore

STORAGE_KEY = "ideaspark_rate"
LIMIT = 20
WINDOW_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000

logger = get_logger("ideaspark_client.usage_guard")


@dataclass(frozen=True)
class UsageCheck:
    allowed: bool
    remaining_minutes: int


def now_ms() -> int:
    return int(time.time() * 1000)


class LocalUsageGuard:
    """Counts generate requests in the trailing window."""

    def __init__(self, store: Optional[LocalStore] = None, limit: int = LIMIT, window_ms: int = WINDOW_MS):
        self.store = store or LocalStore()
        self.limit = limit
        self.window_ms = window_ms

    def _load(self, now: int) -> List[int]:
        """Timestamps inside the window, oldest first."""
        try:
            raw = self.store.get_item(STORAGE_KEY)
        except LocalStorageUnavailable as exc:
            logger.warning("Failed to load rate limit data", error=exc.message)
            return []
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable rate limit data")
            return []
        if not isinstance(parsed, list):
            return []

        cutoff = now - self.window_ms
        timestamps = []
        for value in parsed:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            if math.isfinite(value) and value >= cutoff:
                timestamps.append(int(value))
        return sorted(timestamps)

    def minutes_until_reset(self, timestamps: List[int], now: int) -> int:
        if len(timestamps) < self.limit:
            return 0
        remaining_ms = self.window_ms - (now - timestamps[0])
        if remaining_ms <= 0:
            return 0
        return math.ceil(remaining_ms / MINUTE_MS)

    def check(self, now: Optional[int] = None) -> UsageCheck:
        now = now_ms() if now is None else now
        timestamps = self._load(now)
        allowed = len(timestamps) < self.limit
        remaining = 0 if allowed else self.minutes_until_reset(timestamps, now)
        return UsageCheck(allowed=allowed, remaining_minutes=remaining)

    def record(self, now: Optional[int] = None) -> None:
        """Log one attempted generation. Never call this speculatively."""
        now = now_ms() if now is None else now
        updated = sorted(self._load(now) + [now])
        try:
            self.store.set_item(STORAGE_KEY, json.dumps(updated))
        except LocalStorageUnavailable as exc:
            logger.warning("Failed to save rate limit data", error=exc.message)
