"""Operation rate limit guard for FastAPI routes.

A route dependency that maps the request to an operation type, checks the
client IP and (when known) the tenant against their policies, and publishes
the combined decision as `X-RateLimit-*` headers. Denied requests raise
`RateLimitExceededError`, which the exception handlers turn into a 429.

The guard fails open: if anything goes wrong while evaluating the limits
the request proceeds and the failure is logged.

Usage:
    @router.get("/auth/google", dependencies=[Depends(OperationRateLimitGuard())])
    @router.post("/auth/google/unlink",
                 dependencies=[Depends(OperationRateLimitGuard(OperationType.UNLINK))])
"""

from typing import Optional

import structlog
from fastapi import Depends, Request, Response

from verigate.core.exceptions import RateLimitExceededError
from verigate.domain.rate_limiting.services import OperationRateLimitService
from verigate.domain.rate_limiting.value_objects import OperationType, RateLimitDecision
from verigate.infrastructure.dependency_injection.verification_dependencies import (
    get_operation_rate_limit_service,
)

logger = structlog.get_logger(__name__)


def operation_for_request(path: str, method: str) -> OperationType:
    """Map a request path and method to the operation it performs."""
    method = method.upper()
    path = path.rstrip("/") or "/"

    if path.endswith("/auth/google/link/callback") and method == "POST":
        return OperationType.LINK_CALLBACK
    if path.endswith("/auth/google/callback") and method == "POST":
        return OperationType.OAUTH_CALLBACK
    if path.endswith("/auth/google/link") and method == "GET":
        return OperationType.LINK_INITIATE
    if path.endswith("/auth/google/unlink") and method == "POST":
        return OperationType.UNLINK
    if path.endswith("/auth/google") and method == "GET":
        return OperationType.OAUTH_INITIATE
    if "/tenants/" in path and path.endswith("/settings/google"):
        return OperationType.ADMIN_SETTINGS
    return OperationType.GENERAL


def client_ip_from_request(request: Request) -> str:
    """Client address, preferring proxy headers over the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def tenant_id_from_request(request: Request) -> Optional[str]:
    """Tenant identifier from header, query string or path, if present."""
    return (
        request.headers.get("x-tenant-id")
        or request.query_params.get("tenantId")
        or request.path_params.get("tenantId")
        or None
    )


class OperationRateLimitGuard:
    """FastAPI dependency enforcing operation rate limits.

    Args:
        operation: Fixed operation type; derived from the path when omitted.
    """

    def __init__(self, operation: Optional[OperationType] = None):
        self.operation = operation

    async def __call__(
        self,
        request: Request,
        response: Response,
        service: OperationRateLimitService = Depends(get_operation_rate_limit_service),
    ) -> Optional[RateLimitDecision]:
        operation = self.operation or operation_for_request(request.url.path, request.method)
        client_ip = client_ip_from_request(request)
        tenant_id = tenant_id_from_request(request)

        try:
            decision = await service.check_request(operation, client_ip, tenant_id=tenant_id)
            headers = decision.to_http_headers(service.now_ms(), operation)
        except Exception as exc:
            logger.error(
                "Rate limit guard failed, allowing request",
                operation=operation.value,
                path=request.url.path,
                error=str(exc),
            )
            return None

        response.headers.update(headers)
        if decision.allowed:
            return decision

        retry_after = int(headers.get("Retry-After", "0"))
        logger.warning(
            "Operation rate limit exceeded",
            operation=operation.value,
            client_ip=client_ip,
            tenant_id=tenant_id,
            retry_after=retry_after,
        )
        raise RateLimitExceededError(
            message=f"Too many {operation.value} requests. Please try again in {retry_after} seconds.",
            retry_after=retry_after,
            headers=headers,
        )
