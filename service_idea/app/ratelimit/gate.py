"""
Request gate: classifier + limiter + first-contact cookie issuance.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from fastapi import Request

from shared.errors import StorageUnavailable
from shared.logging import get_logger, set_rate_tier
from .fixed_window import FixedWindowRateLimiter
from .identity import IdentityClassifier, Tier

if TYPE_CHECKING:
    from shared.metrics import MetricsCollector


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ERROR = "error"


@dataclass(frozen=True)
class GateDecision:
    decision: Decision
    retry_after_minutes: Optional[int] = None
    set_cookie: Optional[str] = None
    tier: Optional[Tier] = None

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW


class RequestGate:
    """Produces allow / deny / error for an inbound request.

    Errors fail closed: the caller must not reach the protected resource.
    The pending cookie is returned with every outcome so a denied or failed
    first contact still gets its identity.
    """

    def __init__(
        self,
        classifier: IdentityClassifier,
        limiter: FixedWindowRateLimiter,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.classifier = classifier
        self.limiter = limiter
        self.metrics = metrics
        self.logger = get_logger("idea.gate")

    async def evaluate(self, request: Request, device_id: Any = None) -> GateDecision:
        set_cookie = None
        try:
            set_cookie = self.classifier.issue_cookie(request)
        except Exception as exc:
            self.logger.warning("Failed to generate cookie id", error=str(exc))
        if set_cookie and self.metrics:
            self.metrics.increment_counter("cookies_issued_total")

        tier = None
        try:
            tier, context = self.classifier.resolve(request, device_id)
            set_rate_tier(tier.value)
            result = await self.limiter.enforce(context)
        except StorageUnavailable as exc:
            self.logger.error("Rate limit store unavailable", error=exc.message, details=exc.details)
            return self._record(GateDecision(Decision.ERROR, set_cookie=set_cookie, tier=tier))
        except Exception as exc:
            self.logger.error("Rate limit error", error=str(exc), exc_info=True)
            return self._record(GateDecision(Decision.ERROR, set_cookie=set_cookie, tier=tier))

        if not result.allowed:
            return self._record(GateDecision(
                Decision.DENY,
                retry_after_minutes=result.remaining_minutes,
                set_cookie=set_cookie,
                tier=tier,
            ))
        return self._record(GateDecision(Decision.ALLOW, set_cookie=set_cookie, tier=tier))

    def _record(self, decision: GateDecision) -> GateDecision:
        if self.metrics:
            tier = decision.tier.value if decision.tier else "unknown"
            self.metrics.record_rate_decision(tier, decision.decision.value)
        return decision
