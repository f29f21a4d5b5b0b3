"""
Tests for the IdeaSpark HTTP client.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from ideaspark_client.api import DEFAULT_RETRY_MINUTES, IdeaSparkClient
from ideaspark_client.device_id import DeviceIdentityResolver
from ideaspark_client.storage import LocalStore
from ideaspark_client.usage_guard import STORAGE_KEY, LocalUsageGuard, UsageCheck
from shared.config import get_config
from shared.errors import DownstreamFailure, RateLimitError

DEVICE_ID = "a" * 64


@pytest.fixture
def store(tmp_path):
    return LocalStore(tmp_path / "storage.json")


@pytest.fixture
def resolver():
    resolver = MagicMock(spec=DeviceIdentityResolver)
    resolver.resolve = AsyncMock(return_value=DEVICE_ID)
    return resolver


def make_client(handler, store, resolver, guard=None):
    http_client = httpx.AsyncClient(base_url="https://ideaspark.test", transport=httpx.MockTransport(handler))
    return IdeaSparkClient(
        "https://ideaspark.test",
        store=store,
        resolver=resolver,
        guard=guard or LocalUsageGuard(store),
        http_client=http_client,
    )


def recorded_attempts(store):
    raw = store.get_item(STORAGE_KEY)
    return len(json.loads(raw)) if raw else 0


class TestGenerateIdea:

    @pytest.mark.asyncio
    async def test_sends_device_id_and_records_attempt(self, store, resolver):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"idea": " Try a new recipe. "})

        async with make_client(handler, store, resolver) as client:
            idea = await client.generate_idea("料理")

        assert idea == "Try a new recipe."
        assert seen["path"] == "/api/idea"
        assert seen["body"] == {"category": "料理", "deviceId": DEVICE_ID, "lang": "ja"}
        assert recorded_attempts(store) == 1

    @pytest.mark.asyncio
    async def test_server_rate_limit(self, store, resolver):
        client = make_client(lambda request: httpx.Response(429, json={"error": "rate_limit", "remaining": 17}), store, resolver)

        with pytest.raises(RateLimitError) as exc_info:
            await client.generate_idea("旅行")

        assert exc_info.value.details["remaining"] == 17
        assert recorded_attempts(store) == 1

    @pytest.mark.asyncio
    async def test_server_rate_limit_without_remaining(self, store, resolver):
        client = make_client(lambda request: httpx.Response(429, json={"error": "rate_limit"}), store, resolver)

        with pytest.raises(RateLimitError) as exc_info:
            await client.generate_idea("旅行")

        assert exc_info.value.details["remaining"] == DEFAULT_RETRY_MINUTES

    @pytest.mark.asyncio
    async def test_local_denial_skips_request(self, store, resolver):
        guard = MagicMock(spec=LocalUsageGuard)
        guard.check.return_value = UsageCheck(allowed=False, remaining_minutes=12)
        handler = MagicMock()
        client = make_client(handler, store, resolver, guard=guard)

        with pytest.raises(RateLimitError) as exc_info:
            await client.generate_idea("料理")

        assert exc_info.value.details["remaining"] == 12
        handler.assert_not_called()
        resolver.resolve.assert_not_awaited()
        guard.record.assert_not_called()

    @pytest.mark.asyncio
    async def test_server_error_is_downstream_failure(self, store, resolver):
        client = make_client(
            lambda request: httpx.Response(500, json={"error": "Failed to extract idea."}), store, resolver
        )

        with pytest.raises(DownstreamFailure) as exc_info:
            await client.generate_idea("料理")

        assert "Failed to extract idea." in exc_info.value.message
        assert exc_info.value.details["status_code"] == 500
        assert recorded_attempts(store) == 1

    @pytest.mark.asyncio
    async def test_empty_idea_is_downstream_failure(self, store, resolver):
        client = make_client(lambda request: httpx.Response(200, json={"idea": "  "}), store, resolver)

        with pytest.raises(DownstreamFailure):
            await client.generate_idea("料理")

    @pytest.mark.asyncio
    async def test_transport_error_still_records_attempt(self, store, resolver):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler, store, resolver)

        with pytest.raises(DownstreamFailure):
            await client.generate_idea("料理")

        assert recorded_attempts(store) == 1


class TestTranslateIdea:

    @pytest.mark.asyncio
    async def test_translate_does_not_touch_usage_guard(self, store, resolver):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"idea": "Go for a walk."})

        client = make_client(handler, store, resolver)
        result = await client.translate_idea("散歩に出かける", "ja", "en")

        assert result == "Go for a walk."
        assert seen["body"] == {
            "text": "散歩に出かける",
            "translateFrom": "ja",
            "lang": "en",
            "deviceId": DEVICE_ID,
        }
        assert recorded_attempts(store) == 0


def test_from_config_uses_configured_storage_path(tmp_path):
    path = tmp_path / "client.json"
    client = IdeaSparkClient.from_config("https://ideaspark.test", get_config("idea", 8000, client_storage_path=str(path)))

    assert client.guard.store.path == path
    assert client.resolver.store.path == path
