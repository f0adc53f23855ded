"""Shared utilities and common code."""

from src.shared.config import Settings, get_settings
from src.shared.database import (
    check_redis_health,
    close_redis,
    get_redis,
    shutdown,
    startup,
)
from src.shared.models import BaseSchema, SuccessResponse

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Redis
    "get_redis",
    "close_redis",
    "check_redis_health",
    "startup",
    "shutdown",
    # Models
    "BaseSchema",
    "SuccessResponse",
]
