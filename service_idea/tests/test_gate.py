"""
Unit tests for the request gate.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from service_idea.app.ratelimit.fixed_window import FixedWindowRateLimiter
from service_idea.app.ratelimit.gate import Decision, RequestGate
from service_idea.app.ratelimit.identity import IdentityClassifier, Tier
from shared.errors import StorageUnavailable
from shared.metrics import MetricsCollector
from shared.test_helpers import InMemoryCounterStore, make_device_hash, make_request, unavailable_store


class TestRequestGate:

    @pytest.fixture
    def store(self):
        return InMemoryCounterStore()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("idea")

    @pytest.fixture
    def gate(self, store, metrics):
        return RequestGate(IdentityClassifier(), FixedWindowRateLimiter(store), metrics=metrics)

    @pytest.mark.asyncio
    async def test_allow_carries_pending_cookie(self, gate):
        decision = await gate.evaluate(make_request())

        assert decision.decision is Decision.ALLOW
        assert decision.allowed is True
        assert decision.tier is Tier.IP
        assert decision.set_cookie.startswith("ideaspark_id=")

    @pytest.mark.asyncio
    async def test_deny_reports_retry_after_and_cookie(self, store):
        gate = RequestGate(IdentityClassifier(limits={Tier.IP: 1}), FixedWindowRateLimiter(store))
        await gate.evaluate(make_request())

        decision = await gate.evaluate(make_request())

        assert decision.decision is Decision.DENY
        assert decision.retry_after_minutes == 60
        assert decision.set_cookie is not None

    @pytest.mark.asyncio
    async def test_store_unavailable_fails_closed_with_cookie(self):
        gate = RequestGate(IdentityClassifier(), FixedWindowRateLimiter(unavailable_store()))

        decision = await gate.evaluate(make_request())

        assert decision.decision is Decision.ERROR
        assert decision.allowed is False
        assert decision.set_cookie is not None

    @pytest.mark.asyncio
    async def test_unexpected_limiter_error_fails_closed(self):
        limiter = MagicMock()
        limiter.enforce = AsyncMock(side_effect=RuntimeError("boom"))
        gate = RequestGate(IdentityClassifier(), limiter)

        decision = await gate.evaluate(make_request(cookies={"ideaspark_id": "abc"}))

        assert decision.decision is Decision.ERROR
        assert decision.set_cookie is None

    @pytest.mark.asyncio
    async def test_classifier_failure_fails_closed_but_keeps_cookie(self, store):
        classifier = IdentityClassifier()
        gate = RequestGate(classifier, FixedWindowRateLimiter(store))

        with patch.object(classifier, "resolve", side_effect=RuntimeError("bad request")):
            decision = await gate.evaluate(make_request())

        assert decision.decision is Decision.ERROR
        assert decision.set_cookie is not None
        assert store.commands == []

    @pytest.mark.asyncio
    async def test_storage_error_is_not_retried(self):
        store = AsyncMock()
        store.pipeline.side_effect = StorageUnavailable()
        gate = RequestGate(IdentityClassifier(), FixedWindowRateLimiter(store))

        await gate.evaluate(make_request())

        assert store.pipeline.await_count == 1

    @pytest.mark.asyncio
    async def test_decisions_are_counted_per_tier(self, gate, metrics):
        await gate.evaluate(make_request(), make_device_hash("metrics"))

        sample = metrics.registry.get_sample_value(
            "rate_limit_decisions_total", {"tier": "combined", "decision": "allow"}
        )
        assert sample == 1.0
        assert metrics.registry.get_sample_value("cookies_issued_total") == 1.0
