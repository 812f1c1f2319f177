from .verification_dependencies import (
    build_policy_resolver,
    build_shared_store,
    build_verification_service,
    get_code_delivery,
    get_code_repository,
    get_event_publisher,
    get_metrics_publisher,
    get_operation_rate_limit_service,
    get_policy_resolver,
    get_rate_limiter,
    get_shared_store,
    get_subject_repository,
    get_verification_service,
)

__all__ = [
    "build_policy_resolver",
    "build_shared_store",
    "build_verification_service",
    "get_code_delivery",
    "get_code_repository",
    "get_event_publisher",
    "get_metrics_publisher",
    "get_operation_rate_limit_service",
    "get_policy_resolver",
    "get_rate_limiter",
    "get_shared_store",
    "get_subject_repository",
    "get_verification_service",
]
