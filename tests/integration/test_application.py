"""End-to-end tests through the FastAPI application and its dependency graph.

The store backend is the in-memory one (STORE_BACKEND=memory in conftest),
so the full wiring runs without an external Redis.
"""

import pytest
from fastapi import APIRouter, Depends
from fastapi.testclient import TestClient

from verigate.adapters.api.rate_limit_guard import OperationRateLimitGuard
from verigate.core.application import create_application
from verigate.domain.verification.services import VerificationCodeService
from verigate.infrastructure.dependency_injection import verification_dependencies as deps
from verigate.infrastructure.services.code_delivery import LoggingCodeDelivery
from tests.factories import FakeSubjectRepository, create_fake_subject

pytestmark = pytest.mark.integration


@pytest.fixture
def subject_repository():
    repo = FakeSubjectRepository()
    repo.add(create_fake_subject(subject_id="user-1", contact_address="jane@example.com"))
    return repo


@pytest.fixture
def delivery():
    return LoggingCodeDelivery(test_mode=True)


@pytest.fixture
def app(subject_repository, delivery):
    for cached in (deps.get_shared_store, deps.get_policy_resolver, deps.get_metrics_publisher, deps.get_event_publisher):
        cached.cache_clear()

    app = create_application()
    router = APIRouter()

    @router.post("/subjects/{subject_id}/code")
    async def send_code(
        subject_id: str, service: VerificationCodeService = Depends(deps.get_verification_service)
    ):
        result = await service.resend(subject_id)
        return {"success": result.success, "retry_after": result.retry_after}

    @router.post("/subjects/{subject_id}/verify/{code}")
    async def verify_code(
        subject_id: str, code: str, service: VerificationCodeService = Depends(deps.get_verification_service)
    ):
        result = await service.verify(subject_id, code)
        return {
            "success": result.success,
            "remaining_attempts": result.remaining_attempts,
            "error_code": result.error_code,
        }

    @router.get("/auth/google", dependencies=[Depends(OperationRateLimitGuard())])
    async def google_sign_in():
        return {"redirect": "https://accounts.google.com/o/oauth2/auth"}

    app.include_router(router)
    app.dependency_overrides[deps.get_subject_repository] = lambda: subject_repository
    app.dependency_overrides[deps.get_code_delivery] = lambda: delivery
    yield app
    app.dependency_overrides.clear()


def test_health_reports_store(app):
    with TestClient(app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["store"] == "ok"


def test_code_round_trip(app, delivery, subject_repository):
    with TestClient(app) as client:
        assert client.post("/subjects/user-1/code").json()["success"] is True
        code = delivery.sent_codes["user-1"]

        wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)
        miss = client.post(f"/subjects/user-1/verify/{wrong}").json()
        hit = client.post(f"/subjects/user-1/verify/{code}").json()
        again = client.post(f"/subjects/user-1/verify/{code}").json()

    assert miss == {"success": False, "remaining_attempts": 4, "error_code": "INVALID_OTP"}
    assert hit["success"] is True
    assert again["error_code"] == "OTP_NOT_FOUND"
    assert subject_repository.subjects["user-1"].is_verified is True


def test_resend_quota(app):
    with TestClient(app) as client:
        responses = [client.post("/subjects/user-1/code").json() for _ in range(4)]

    assert [r["success"] for r in responses] == [True, True, True, False]
    assert responses[-1]["retry_after"] > 0


def test_unknown_subject_is_404(app):
    with TestClient(app) as client:
        response = client.post("/subjects/ghost/code")

    assert response.status_code == 404


def test_sign_in_is_rate_limited_per_ip(app):
    with TestClient(app) as client:
        responses = [
            client.get("/auth/google", headers={"X-Forwarded-For": "203.0.113.7"}) for _ in range(11)
        ]
        other_ip = client.get("/auth/google", headers={"X-Forwarded-For": "203.0.113.8"})

    assert [r.status_code for r in responses[:10]] == [200] * 10
    assert [r.headers["X-RateLimit-Remaining"] for r in responses[:10]] == [str(n) for n in range(9, -1, -1)]
    assert responses[10].status_code == 429
    assert 0 < int(responses[10].headers["Retry-After"]) <= 60
    assert other_ip.status_code == 200
