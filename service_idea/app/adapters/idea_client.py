"""
Generation service client for the idea endpoint.
"""

from typing import Any, Dict, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, get_circuit_breaker
from shared.errors import DownstreamFailure
from shared.logging import get_logger

EMPTY_REPLY = "empty_reply"


class GeminiIdeaClient:
    """Client for the Gemini ``generateContent`` API."""

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = "gemini-2.0-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1",
        timeout: float = 20.0,
        client: Optional[httpx.AsyncClient] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("idea.gemini_client")
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(
            "gemini",
            failure_threshold=5,
            recovery_timeout=30.0
        )
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def generate(self, prompt: str) -> str:
        """Send one prompt and return the first candidate's text."""
        if not self.api_key:
            raise DownstreamFailure("gemini", "API key is not configured")

        async def _request() -> str:
            url = f"{self.base_url}/models/{self.model}:generateContent"
            try:
                response = await self._get_client().post(
                    url,
                    params={"key": self.api_key},
                    json={"contents": [{"parts": [{"text": prompt}]}]},
                )
            except httpx.HTTPError as exc:
                self.logger.error("Gemini request failed", error=str(exc))
                raise DownstreamFailure("gemini", "request failed", {"error": str(exc)}) from exc

            if response.status_code != 200:
                self.logger.error(
                    "Gemini request rejected",
                    status_code=response.status_code,
                    response=response.text[:500]
                )
                raise DownstreamFailure(
                    "gemini",
                    f"Unexpected status {response.status_code}",
                    {"status_code": response.status_code}
                )

            try:
                data = response.json()
            except ValueError as exc:
                raise DownstreamFailure("gemini", "non-JSON response") from exc

            self.logger.debug("Gemini raw response", body=data)
            return extract_text(data)

        return await self.circuit_breaker.call(_request)


def extract_text(data: Dict[str, Any]) -> str:
    """Pull ``candidates[0].content.parts[0].text``; empty text is a failure."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None
    if not isinstance(text, str) or not text.strip():
        raise DownstreamFailure("gemini", "Failed to extract idea.", {"reason": EMPTY_REPLY})
    return text.strip()
