"""
Fixed-window rate limiter backed by an external counter store.

The store is the single source of truth: counts are never cached here, and
concurrent callers rely on the store's atomic INCR. Each window starts at
the request that created the key and lasts ``ttl_seconds``.
"""

import math
from dataclasses import dataclass
from typing import Any

from shared.errors import StorageUnavailable
from shared.logging import get_logger
from ..adapters.counter_store import CounterStore
from .identity import RateContext


@dataclass(frozen=True)
class RateResult:
    allowed: bool
    remaining_minutes: int
    count: int
    limit: int


def _as_int(value: Any, field: str) -> int:
    """Coerce a store reply to int; anything else is a malformed reply."""
    if isinstance(value, bool):
        raise StorageUnavailable("Malformed counter store reply", details={"field": field})
    if isinstance(value, bytes):
        value = value.decode("utf-8", "replace")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise StorageUnavailable(
        "Malformed counter store reply",
        details={"field": field, "value": repr(value)[:50]}
    )


class FixedWindowRateLimiter:
    """Per-key fixed-window counter with atomic increment-and-inspect."""

    def __init__(self, store: CounterStore):
        self.store = store
        self.logger = get_logger("idea.rate_limiter")

    async def enforce(self, context: RateContext) -> RateResult:
        """Charge one request to ``context.key`` and report whether it fits the limit."""
        results = await self.store.pipeline([
            ["INCR", context.key],
            ["TTL", context.key],
        ])
        if len(results) != 2:
            raise StorageUnavailable("Malformed counter store reply", details={"results": len(results)})

        count = _as_int(results[0], "count")
        ttl = _as_int(results[1], "ttl")

        effective_ttl = ttl
        # A negative TTL means the key has no expiry; never leave a window open
        if count == 1 or ttl < 0:
            await self.store.pipeline([["EXPIRE", context.key, context.ttl_seconds]])
            effective_ttl = context.ttl_seconds

        allowed = count <= context.limit
        remaining_minutes = max(0, math.ceil(effective_ttl / 60))

        if not allowed:
            self.logger.warning(
                "Rate limit exceeded",
                key=context.key,
                count=count,
                limit=context.limit,
                remaining_minutes=remaining_minutes
            )

        return RateResult(
            allowed=allowed,
            remaining_minutes=remaining_minutes,
            count=count,
            limit=context.limit,
        )
