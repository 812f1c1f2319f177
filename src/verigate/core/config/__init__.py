from .rate_limiting import OperationRateLimitConfig
from .settings import Settings, create_settings, get_settings, settings

__all__ = [
    "OperationRateLimitConfig",
    "Settings",
    "create_settings",
    "get_settings",
    "settings",
]
