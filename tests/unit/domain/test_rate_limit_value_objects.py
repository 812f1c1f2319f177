"""Unit tests for rate limiting value objects."""

import pytest

from verigate.domain.rate_limiting.value_objects import (
    OperationType,
    RateLimitDecision,
    RateLimitPolicy,
)

NOW = 1_700_000_000_000


@pytest.fixture
def policy():
    return RateLimitPolicy(window_ms=60_000, max_requests=10, key_namespace="ip:initiate")


class TestRateLimitPolicy:
    def test_key_for_prefixes_namespace(self, policy):
        assert policy.key_for("ip:1.2.3.4") == "ip:initiate:ip:1.2.3.4"

    @pytest.mark.parametrize("window_ms, expected", [(60_000, 60), (1_500, 2), (1, 1)])
    def test_ttl_rounds_up_to_seconds(self, window_ms, expected):
        policy = RateLimitPolicy(window_ms=window_ms, max_requests=1, key_namespace="ns")

        assert policy.ttl_seconds == expected

    @pytest.mark.parametrize(
        "window_ms, max_requests, namespace",
        [(0, 10, "ns"), (-1, 10, "ns"), (1000, 0, "ns"), (1000, 10, "")],
    )
    def test_rejects_invalid_values(self, window_ms, max_requests, namespace):
        with pytest.raises(ValueError):
            RateLimitPolicy(window_ms=window_ms, max_requests=max_requests, key_namespace=namespace)


class TestOperationType:
    def test_from_name_known(self):
        assert OperationType.from_name("unlink") is OperationType.UNLINK
        assert OperationType.from_name(" OAUTH_INITIATE ") is OperationType.OAUTH_INITIATE

    @pytest.mark.parametrize("name", ["delete_everything", "", None])
    def test_from_name_unknown_falls_back_to_general(self, name):
        assert OperationType.from_name(name) is OperationType.GENERAL

    def test_is_linking(self):
        assert OperationType.LINK_INITIATE.is_linking
        assert OperationType.LINK_CALLBACK.is_linking
        assert not OperationType.UNLINK.is_linking


class TestRateLimitDecision:
    def test_allowed_headers(self, policy):
        decision = RateLimitDecision(
            allowed=True, remaining=9, reset_time=NOW + 60_000, total_hits=1, policy=policy
        )

        headers = decision.to_http_headers(NOW, OperationType.OAUTH_INITIATE)

        assert headers == {
            "X-RateLimit-Remaining": "9",
            "X-RateLimit-Reset": str((NOW + 60_000) // 1000),
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Operation": "oauth_initiate",
        }

    def test_blocked_headers_include_retry_after(self, policy):
        decision = RateLimitDecision(
            allowed=False, remaining=0, reset_time=NOW + 60_000, total_hits=10, policy=policy
        )

        headers = decision.to_http_headers(NOW + 500)

        assert headers["Retry-After"] == "60"
        assert headers["X-RateLimit-Remaining"] == "0"
        assert "X-RateLimit-Operation" not in headers

    def test_reset_header_rounds_up(self, policy):
        decision = RateLimitDecision(allowed=True, remaining=1, reset_time=1_001, total_hits=1)

        assert decision.to_http_headers(0)["X-RateLimit-Reset"] == "2"

    def test_retry_after_is_zero_when_allowed(self, policy):
        decision = RateLimitDecision(allowed=True, remaining=1, reset_time=NOW + 5_000, total_hits=1)

        assert decision.retry_after_seconds(NOW) == 0

    def test_retry_after_never_negative(self):
        decision = RateLimitDecision(allowed=False, remaining=0, reset_time=NOW, total_hits=3)

        assert decision.retry_after_seconds(NOW + 10_000) == 0

    def test_fail_open(self, policy):
        decision = RateLimitDecision.fail_open(policy, NOW)

        assert decision.allowed is True
        assert decision.fallback_used is True
        assert decision.remaining == 9
        assert decision.total_hits == 1
        assert decision.reset_time == NOW + 60_000

    def test_unlimited(self, policy):
        decision = RateLimitDecision.unlimited(policy, NOW)

        assert decision.allowed is True
        assert decision.remaining == 10
        assert decision.total_hits == 0
        assert decision.fallback_used is False

    def test_most_restrictive_prefers_denial(self, policy):
        allowed = RateLimitDecision(allowed=True, remaining=5, reset_time=NOW + 1_000, total_hits=5)
        denied = RateLimitDecision(
            allowed=False, remaining=0, reset_time=NOW + 2_000, total_hits=50, policy=policy
        )

        combined = RateLimitDecision.most_restrictive(allowed, denied)

        assert combined.allowed is False
        assert combined.remaining == 0
        assert combined.reset_time == NOW + 2_000
        assert combined.total_hits == 50
        assert combined.policy is policy

    def test_most_restrictive_uses_latest_reset(self):
        first = RateLimitDecision(allowed=False, remaining=0, reset_time=NOW + 9_000, total_hits=3)
        second = RateLimitDecision(allowed=False, remaining=0, reset_time=NOW + 4_000, total_hits=7)

        combined = RateLimitDecision.most_restrictive(first, second)

        assert combined.reset_time == NOW + 9_000
        assert combined.total_hits == 7

    def test_most_restrictive_both_allowed_picks_fewer_remaining(self):
        ip = RateLimitDecision(allowed=True, remaining=8, reset_time=NOW, total_hits=2)
        tenant = RateLimitDecision(allowed=True, remaining=3, reset_time=NOW, total_hits=47)

        assert RateLimitDecision.most_restrictive(ip, tenant) is tenant
        assert RateLimitDecision.most_restrictive(tenant, ip) is tenant
