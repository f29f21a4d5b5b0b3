"""
Anonymous device identity for rate-limited requests.

The unique device id is ``sha256(device_identifier + "|" + fingerprint)``.
The device identifier is a random UUID persisted once in the local store;
the fingerprint is computed at most once per resolver and shared by every
caller, including callers that arrive while it is still being computed.
"""

import asyncio
import hashlib
import random
import re
import uuid
from typing import Callable, Optional

from shared.errors import LocalStorageUnavailable
from shared.logging import get_logger
from .fingerprint import compute_fingerprint
from .storage import LocalStore

STORAGE_KEY = "ideaspark_device_id"

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)

logger = get_logger("ideaspark_client.device_id")


def is_valid_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and UUID_PATTERN.match(value) is not None


def new_device_identifier() -> str:
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        return str(uuid.UUID(int=random.getrandbits(128), version=4))


def sha256_hex(value: str) -> str:
    """Hex digest, or "" when the runtime has no SHA-256."""
    try:
        return hashlib.new("sha256", value.encode("utf-8")).hexdigest()
    except ValueError:
        return ""


class DeviceIdentityResolver:
    """Resolves the unique device id sent with every generate request."""

    def __init__(
        self,
        store: Optional[LocalStore] = None,
        fingerprint_source: Callable[[], str] = compute_fingerprint,
    ):
        self.store = store or LocalStore()
        self.fingerprint_source = fingerprint_source
        self._fingerprint_task: Optional[asyncio.Future] = None

    def get_device_id(self) -> str:
        """Stored identifier, created on first use. Returns "" if storage is unusable."""
        try:
            existing = self.store.get_item(STORAGE_KEY)
            if is_valid_uuid(existing):
                return existing

            fresh = new_device_identifier()
            self.store.set_item(STORAGE_KEY, fresh)
            return fresh
        except LocalStorageUnavailable as exc:
            logger.warning("Failed to access deviceId storage", error=exc.message, **exc.details)
            return ""

    async def _load_fingerprint(self) -> str:
        loop = asyncio.get_running_loop()
        try:
            visitor_id = await loop.run_in_executor(None, self.fingerprint_source)
        except Exception as exc:
            logger.warning("Failed to get fingerprint", error=str(exc))
            return ""
        return visitor_id or ""

    def fingerprint(self) -> asyncio.Future:
        """The single shared fingerprint computation."""
        if self._fingerprint_task is None:
            self._fingerprint_task = asyncio.ensure_future(self._load_fingerprint())
        return self._fingerprint_task

    async def resolve(self) -> str:
        """Unique device id; the bare identifier if hashing fails, "" if there is none."""
        base_id = self.get_device_id()
        if not base_id:
            return ""

        # shield: one caller being cancelled must not cancel the shared computation
        fingerprint_id = await asyncio.shield(self.fingerprint())
        digest = sha256_hex(f"{base_id}|{fingerprint_id}")
        return digest or base_id
