"""
Identity classification for rate limiting.

Every request is charged against exactly one tier, picked in strict
priority order: a well-formed device id, then an existing session cookie,
then the client IP. A malformed device id is not an error for the caller;
it only drops the request to the next tier.
"""

import random
import re
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from fastapi import Request

from shared.errors import InvalidIdentity
from shared.logging import get_logger

HOUR_SECONDS = 60 * 60
COOKIE_NAME = "ideaspark_id"
COOKIE_MAX_AGE = 365 * 24 * HOUR_SECONDS

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
HEX64_PATTERN = re.compile(r"^[0-9a-f]{64}$", re.IGNORECASE)


class Tier(str, Enum):
    """Identity granularity of a rate-limit key, highest priority first."""
    COMBINED = "combined"
    COOKIE = "cookie"
    IP = "ip"

    @property
    def priority(self) -> int:
        return _TIER_PRIORITY[self]


_TIER_PRIORITY = {Tier.COMBINED: 0, Tier.COOKIE: 1, Tier.IP: 2}


@dataclass(frozen=True)
class RateContext:
    """Counter key, limit and window length for one request."""
    key: str
    limit: int
    ttl_seconds: int


@dataclass(frozen=True)
class Classification:
    tier: Tier
    context: RateContext
    set_cookie: Optional[str] = None


DEFAULT_LIMITS: Dict[Tier, int] = {
    Tier.COMBINED: 50,
    Tier.COOKIE: 30,
    Tier.IP: 20,
}


def normalize_device_id(value: Any) -> str:
    """Return the lowercased id, or raise InvalidIdentity if it is not 64-hex or UUID shaped."""
    if not isinstance(value, str):
        raise InvalidIdentity(details={"type": type(value).__name__})
    trimmed = value.strip()
    if HEX64_PATTERN.match(trimmed) or UUID_PATTERN.match(trimmed):
        return trimmed.lower()
    raise InvalidIdentity(details={"length": len(trimmed)})


def select_tier(device_id: Optional[str], cookie_value: Optional[str]) -> Tier:
    """Explicit priority function over the available identities."""
    candidates = [Tier.IP]
    if device_id:
        candidates.append(Tier.COMBINED)
    if cookie_value:
        candidates.append(Tier.COOKIE)
    return min(candidates, key=lambda tier: tier.priority)


def get_client_ip(request: Request) -> str:
    """Extract the caller IP from standard headers."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def generate_cookie_value() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        # no os.urandom on this platform
        return f"{int(time.time() * 1000)}-{random.getrandbits(48):x}"


def build_set_cookie(value: str, name: str = COOKIE_NAME, max_age: int = COOKIE_MAX_AGE) -> str:
    return f"{name}={value}; Path=/; Max-Age={max_age}; HttpOnly; Secure; SameSite=Lax"


class IdentityClassifier:
    """Maps a request onto a tier and its counter context."""

    def __init__(
        self,
        limits: Optional[Dict[Tier, int]] = None,
        ttl_seconds: int = HOUR_SECONDS,
        cookie_name: str = COOKIE_NAME,
        cookie_max_age: int = COOKIE_MAX_AGE,
    ):
        self.limits = {**DEFAULT_LIMITS, **(limits or {})}
        self.ttl_seconds = ttl_seconds
        self.cookie_name = cookie_name
        self.cookie_max_age = cookie_max_age
        self.logger = get_logger("idea.identity")

    def classify(self, request: Request, device_id: Any = None) -> Classification:
        """Pick the governing tier and, on first contact, a cookie to issue.

        RequestGate calls issue_cookie and resolve separately so that a
        failure while resolving the tier still returns the cookie.
        """
        set_cookie = self.issue_cookie(request)
        tier, context = self.resolve(request, device_id)
        return Classification(tier=tier, context=context, set_cookie=set_cookie)

    def issue_cookie(self, request: Request) -> Optional[str]:
        """Set-Cookie value for a browser that has no session cookie yet."""
        if request.cookies.get(self.cookie_name):
            return None
        return build_set_cookie(generate_cookie_value(), self.cookie_name, self.cookie_max_age)

    def resolve(self, request: Request, device_id: Any = None) -> Tuple[Tier, RateContext]:
        """Tier and counter context; only a cookie sent with the request counts."""
        existing_cookie = request.cookies.get(self.cookie_name) or None

        normalized = None
        if device_id is not None and device_id != "":
            try:
                normalized = normalize_device_id(device_id)
            except InvalidIdentity as exc:
                self.logger.info("Ignoring malformed device id", **exc.details)

        tier = select_tier(normalized, existing_cookie)
        if tier is Tier.COMBINED:
            identifier = normalized
        elif tier is Tier.COOKIE:
            identifier = existing_cookie
        else:
            identifier = get_client_ip(request)

        context = RateContext(
            key=f"rl:{tier.value}:{identifier}",
            limit=self.limits[tier],
            ttl_seconds=self.ttl_seconds,
        )
        return tier, context
