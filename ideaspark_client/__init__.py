"""
Client SDK for the IdeaSpark idea service.

- storage: JSON-file key/value store standing in for browser localStorage
- fingerprint: host/runtime fingerprint
- device_id: Device Identity Resolver
- usage_guard: advisory Local Usage Guard
- api: HTTP client combining the above
"""

from .api import IdeaSparkClient
from .device_id import DeviceIdentityResolver
from .storage import LocalStore
from .usage_guard import LocalUsageGuard, UsageCheck

__all__ = [
    "IdeaSparkClient",
    "DeviceIdentityResolver",
    "LocalStore",
    "LocalUsageGuard",
    "UsageCheck",
]
