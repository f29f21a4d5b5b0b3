"""
Counter store clients used by the fixed-window rate limiter.

Both backends expose the same pipelined command interface: a list of
commands goes out in one round trip and the raw results come back in
request order. Any transport failure or malformed reply is raised as
StorageUnavailable; nothing here retries.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

import httpx
import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.errors import StorageUnavailable
from shared.logging import get_logger

Command = Sequence[Union[str, int]]


class CounterStore:
    """Interface shared by the counter store backends."""

    async def pipeline(self, commands: Sequence[Command]) -> List[Any]:
        raise NotImplementedError

    async def ping(self) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        return None


class UpstashRestStore(CounterStore):
    """Redis-compatible store reached through the Upstash REST pipeline endpoint."""

    def __init__(
        self,
        rest_url: Optional[str],
        token: Optional[str],
        *,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.rest_url = rest_url.rstrip("/") if rest_url else None
        self.token = token
        self.timeout = timeout
        self.logger = get_logger("idea.upstash")
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def pipeline(self, commands: Sequence[Command]) -> List[Any]:
        if not self.rest_url or not self.token:
            raise StorageUnavailable("Counter store is not configured")

        try:
            response = await self._get_client().post(
                f"{self.rest_url}/pipeline",
                headers={"Authorization": f"Bearer {self.token}"},
                json=[list(command) for command in commands],
            )
        except httpx.HTTPError as exc:
            self.logger.error("Upstash pipeline request failed", error=str(exc))
            raise StorageUnavailable("Counter store unreachable", details={"error": str(exc)}) from exc

        if response.status_code != 200:
            self.logger.error("Upstash pipeline rejected", status_code=response.status_code)
            raise StorageUnavailable(
                f"Upstash pipeline failed with status {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise StorageUnavailable("Unexpected Upstash response") from exc

        if not isinstance(data, list) or len(data) != len(commands):
            raise StorageUnavailable("Unexpected Upstash response", details={"body": response.text[:200]})

        results = []
        for entry in data:
            if isinstance(entry, dict):
                if "error" in entry:
                    raise StorageUnavailable("Upstash command failed", details={"error": entry["error"]})
                results.append(entry.get("result"))
            else:
                results.append(entry)
        return results

    async def ping(self) -> bool:
        """Return True when the REST endpoint answers PING."""
        try:
            return (await self.pipeline([["PING"]]))[0] == "PONG"
        except StorageUnavailable:
            return False


class RedisCounterStore(CounterStore):
    """Native Redis backend; commands run inside one MULTI/EXEC transaction."""

    def __init__(self, redis_url: str, *, timeout: float = 5.0) -> None:
        self.redis_url = redis_url
        self.timeout = timeout
        self.logger = get_logger("idea.redis_store")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                socket_timeout=self.timeout,
                socket_connect_timeout=self.timeout,
            )
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def pipeline(self, commands: Sequence[Command]) -> List[Any]:
        try:
            client = await self._get_redis()
            async with client.pipeline(transaction=True) as pipe:
                for command in commands:
                    pipe.execute_command(*command)
                return list(await pipe.execute())
        except RedisError as exc:
            self.logger.error("Redis pipeline failed", error=str(exc))
            raise StorageUnavailable("Counter store unreachable", details={"error": str(exc)}) from exc

    async def ping(self) -> bool:
        try:
            client = await self._get_redis()
            return bool(await client.ping())
        except RedisError:
            return False


def build_counter_store(config) -> CounterStore:
    """Pick the backend named by ``config.store_backend``."""
    if config.store_backend == "redis":
        return RedisCounterStore(config.redis_url, timeout=config.store_timeout_seconds)
    return UpstashRestStore(
        config.upstash_rest_url,
        config.upstash_rest_token,
        timeout=config.store_timeout_seconds,
    )
