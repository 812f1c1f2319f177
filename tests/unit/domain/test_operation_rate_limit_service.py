"""Unit tests for OperationRateLimitService."""

import pytest

from verigate.core.config.rate_limiting import OperationRateLimitConfig
from verigate.domain.rate_limiting.policy import OperationPolicyResolver
from verigate.domain.rate_limiting.services import OperationRateLimitService
from verigate.domain.rate_limiting.value_objects import LimitScope, OperationType


def make_service(limiter, generation_policy, **config_overrides):
    config = OperationRateLimitConfig(_env_file=None, **config_overrides)
    return OperationRateLimitService(limiter, OperationPolicyResolver(config, generation_policy))


@pytest.fixture
def service(limiter, generation_policy):
    return make_service(limiter, generation_policy)


@pytest.mark.asyncio
async def test_ip_initiate_quota(service, store, clock):
    decisions = [
        await service.check_ip("203.0.113.7", OperationType.OAUTH_INITIATE) for _ in range(11)
    ]

    assert [d.remaining for d in decisions[:10]] == [9, 8, 7, 6, 5, 4, 3, 2, 1, 0]
    assert all(d.allowed for d in decisions[:10])
    assert decisions[10].allowed is False
    assert decisions[10].reset_time == clock.now_ms() + 60_000
    assert await store.count_hits(
        "google_oauth_ip_rate_limit:initiate:ip:203.0.113.7", clock.now_ms() - 60_000
    ) == 10


@pytest.mark.asyncio
async def test_linking_operations_share_a_window(service):
    for _ in range(3):
        await service.check_ip("198.51.100.1", OperationType.LINK_INITIATE)
    for _ in range(2):
        await service.check_ip("198.51.100.1", OperationType.LINK_CALLBACK)

    decision = await service.check_ip("198.51.100.1", OperationType.LINK_INITIATE)

    assert decision.allowed is False


@pytest.mark.asyncio
async def test_user_unlink_quota(service):
    first = await service.check_user("user-1", OperationType.UNLINK)
    second = await service.check_user("user-1", OperationType.UNLINK)
    third = await service.check_user("user-1", OperationType.UNLINK)

    assert (first.allowed, second.allowed, third.allowed) == (True, True, False)
    assert third.policy.window_ms == 3_600_000


@pytest.mark.asyncio
async def test_check_request_combines_most_restrictive(limiter, generation_policy):
    service = make_service(limiter, generation_policy, tenant_auth_max_requests=2)

    await service.check_request(OperationType.OAUTH_INITIATE, "10.0.0.1", tenant_id="acme")
    second = await service.check_request(OperationType.OAUTH_INITIATE, "10.0.0.2", tenant_id="acme")
    third = await service.check_request(OperationType.OAUTH_INITIATE, "10.0.0.3", tenant_id="acme")

    assert second.allowed is True
    assert second.remaining == 0
    assert third.allowed is False
    assert third.policy.key_namespace == "google_oauth_tenant_rate_limit:auth"


@pytest.mark.asyncio
async def test_check_request_without_tenant_only_checks_ip(service):
    decision = await service.check_request(OperationType.OAUTH_CALLBACK, "10.0.0.1")

    assert decision.remaining == 14
    assert decision.policy.key_namespace == "google_oauth_ip_rate_limit:callback"


@pytest.mark.asyncio
async def test_bypassed_ip_is_not_recorded(limiter, generation_policy, store, clock):
    service = make_service(limiter, generation_policy, disable_for_ips_raw="127.0.0.1")

    for _ in range(20):
        decision = await service.check_ip("127.0.0.1", OperationType.OAUTH_INITIATE)
        assert decision.allowed is True

    assert decision.remaining == 10
    assert await store.count_hits(
        "google_oauth_ip_rate_limit:initiate:ip:127.0.0.1", clock.now_ms() - 60_000
    ) == 0


@pytest.mark.asyncio
async def test_globally_disabled(limiter, generation_policy):
    service = make_service(limiter, generation_policy, enable_rate_limiting=False)

    for _ in range(5):
        decision = await service.check_user("user-1", OperationType.UNLINK)

    assert decision.allowed is True


@pytest.mark.asyncio
async def test_status_and_reset(service):
    await service.check(LimitScope.USER, "user-1", OperationType.UNLINK)
    await service.check(LimitScope.USER, "user-1", OperationType.UNLINK)

    status = await service.status(LimitScope.USER, "user-1", OperationType.UNLINK)
    assert status.allowed is False
    assert status.total_hits == 2

    assert await service.reset(LimitScope.USER, "user-1", OperationType.UNLINK) is True
    status = await service.status(LimitScope.USER, "user-1", OperationType.UNLINK)
    assert status.allowed is True
    assert status.remaining == 2


def test_now_ms_follows_limiter_clock(service, clock):
    assert service.now_ms() == clock.now_ms()
