"""
HTTP client for the idea service.
"""

from typing import Any, Dict, Optional

import httpx

from shared.config import BaseConfig
from shared.errors import DownstreamFailure, RateLimitError
from shared.logging import get_logger
from .device_id import DeviceIdentityResolver
from .storage import LocalStore
from .usage_guard import LocalUsageGuard

DEFAULT_RETRY_MINUTES = 60


class IdeaSparkClient:
    """Calls ``/api/idea`` with the device id, behind the local usage guard.

    The session cookie issued by the service lives in the httpx cookie jar
    for the lifetime of the client.
    """

    def __init__(
        self,
        base_url: str,
        *,
        store: Optional[LocalStore] = None,
        resolver: Optional[DeviceIdentityResolver] = None,
        guard: Optional[LocalUsageGuard] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        store = store or LocalStore()
        self.resolver = resolver or DeviceIdentityResolver(store)
        self.guard = guard or LocalUsageGuard(store)
        self.logger = get_logger("ideaspark_client.api")
        self._client = http_client or httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_config(cls, base_url: str, config: Optional[BaseConfig] = None) -> "IdeaSparkClient":
        """Client whose local store lives at IDEASPARK_CLIENT_STORAGE_PATH."""
        config = config or BaseConfig()
        return cls(base_url, store=LocalStore(config.client_storage_path))

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "IdeaSparkClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def generate_idea(self, category: str, lang: str = "ja") -> str:
        """Generate one idea; raises RateLimitError or DownstreamFailure."""
        check = self.guard.check()
        if not check.allowed:
            raise RateLimitError(check.remaining_minutes, "Local usage limit reached")

        device_id = await self.resolver.resolve()
        try:
            data = await self._post({"category": category, "deviceId": device_id, "lang": lang})
        finally:
            self.guard.record()
        return data

    async def translate_idea(self, text: str, from_lang: str, to_lang: str) -> str:
        device_id = await self.resolver.resolve()
        return await self._post({"text": text, "translateFrom": from_lang, "lang": to_lang, "deviceId": device_id})

    async def _post(self, payload: Dict[str, Any]) -> str:
        try:
            response = await self._client.post("/api/idea", json=payload)
        except httpx.HTTPError as exc:
            self.logger.error("Idea request failed", error=str(exc))
            raise DownstreamFailure("ideaspark", "request failed", {"error": str(exc)}) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code == 429 and data.get("error") == "rate_limit":
            remaining = data.get("remaining")
            if isinstance(remaining, bool) or not isinstance(remaining, int):
                remaining = DEFAULT_RETRY_MINUTES
            raise RateLimitError(remaining)

        if not response.is_success:
            raise DownstreamFailure(
                "ideaspark",
                str(data.get("error") or f"Unexpected status {response.status_code}"),
                {"status_code": response.status_code},
            )

        idea = data.get("idea")
        idea = idea.strip() if isinstance(idea, str) else ""
        if not idea:
            raise DownstreamFailure("ideaspark", "Failed to extract idea.")
        return idea
