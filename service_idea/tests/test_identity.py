"""
Unit tests for identity classification.
"""

import pytest

from service_idea.app.ratelimit.identity import (
    IdentityClassifier,
    Tier,
    get_client_ip,
    normalize_device_id,
    select_tier,
)
from shared.errors import InvalidIdentity
from shared.test_helpers import make_device_hash, make_request


class TestNormalizeDeviceId:

    def test_accepts_hex_digest_and_lowercases(self):
        digest = make_device_hash("a").upper()
        assert normalize_device_id(digest) == digest.lower()

    def test_accepts_uuid_with_whitespace(self):
        value = "  3F2504E0-4F89-41D3-9A0C-0305E82C3301 "
        assert normalize_device_id(value) == "3f2504e0-4f89-41d3-9a0c-0305e82c3301"

    @pytest.mark.parametrize("value", ["not-a-uuid", "", "abc", "g" * 64, "a" * 63, 12345, None])
    def test_rejects_malformed_values(self, value):
        with pytest.raises(InvalidIdentity):
            normalize_device_id(value)


class TestSelectTier:

    def test_device_id_wins_over_cookie(self):
        assert select_tier("id", "cookie") is Tier.COMBINED

    def test_cookie_without_device_id(self):
        assert select_tier(None, "cookie") is Tier.COOKIE

    def test_ip_when_nothing_else(self):
        assert select_tier(None, None) is Tier.IP


class TestClientIp:

    def test_first_forwarded_for_entry(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.2", "X-Real-IP": "198.51.100.1"})
        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip_fallback(self):
        request = make_request({"X-Real-IP": "198.51.100.1"})
        assert get_client_ip(request) == "198.51.100.1"

    def test_transport_peer_fallback(self):
        assert get_client_ip(make_request()) == "10.0.0.1"

    def test_unknown_without_peer(self):
        assert get_client_ip(make_request(client=None)) == "unknown"


class TestIdentityClassifier:

    @pytest.fixture
    def classifier(self):
        return IdentityClassifier()

    def test_combined_tier_regardless_of_cookie(self, classifier):
        device_id = make_device_hash("combined")
        result = classifier.classify(make_request(cookies={"ideaspark_id": "abc"}), device_id)

        assert result.tier is Tier.COMBINED
        assert result.context.key == f"rl:combined:{device_id}"
        assert result.context.limit == 50
        assert result.context.ttl_seconds == 3600
        assert result.set_cookie is None

    def test_cookie_tier_when_device_id_missing(self, classifier):
        result = classifier.classify(make_request(cookies={"ideaspark_id": "session-1"}))

        assert result.tier is Tier.COOKIE
        assert result.context.key == "rl:cookie:session-1"
        assert result.context.limit == 30

    def test_malformed_device_id_never_selects_combined(self, classifier):
        result = classifier.classify(make_request(cookies={"ideaspark_id": "session-1"}), "not-a-uuid")
        assert result.tier is Tier.COOKIE

        result = classifier.classify(make_request(), "not-a-uuid")
        assert result.tier is Tier.IP

    def test_ip_tier_on_first_contact_issues_cookie(self, classifier):
        request = make_request({"X-Forwarded-For": "203.0.113.7"})
        result = classifier.classify(request)

        assert result.tier is Tier.IP
        assert result.context.key == "rl:ip:203.0.113.7"
        assert result.context.limit == 20
        assert result.set_cookie.startswith("ideaspark_id=")
        for attribute in ("Path=/", "Max-Age=31536000", "HttpOnly", "Secure", "SameSite=Lax"):
            assert attribute in result.set_cookie

    def test_combined_tier_still_issues_cookie_on_first_contact(self, classifier):
        result = classifier.classify(make_request(), make_device_hash("first"))

        assert result.tier is Tier.COMBINED
        assert result.set_cookie is not None

    def test_each_first_contact_gets_a_distinct_cookie(self, classifier):
        first = classifier.issue_cookie(make_request())
        second = classifier.issue_cookie(make_request())
        assert first != second

    def test_configured_limits_override_defaults(self):
        classifier = IdentityClassifier(limits={Tier.IP: 5}, ttl_seconds=60)
        result = classifier.classify(make_request())

        assert result.context.limit == 5
        assert result.context.ttl_seconds == 60
