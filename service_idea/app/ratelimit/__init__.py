"""
Rate limiting package for the Idea Service.

Holds the identity classifier, the fixed-window limiter and the request
gate that combines them into an allow / deny / error decision.
"""

from .identity import Tier, RateContext, Classification, IdentityClassifier, normalize_device_id
from .fixed_window import FixedWindowRateLimiter, RateResult
from .gate import Decision, GateDecision, RequestGate

__all__ = [
    "Tier",
    "RateContext",
    "Classification",
    "IdentityClassifier",
    "normalize_device_id",
    "FixedWindowRateLimiter",
    "RateResult",
    "Decision",
    "GateDecision",
    "RequestGate",
]
