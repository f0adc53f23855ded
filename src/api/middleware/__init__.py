"""API middleware package."""

from src.api.middleware.error_handler import APIError, BadRequestError, setup_exception_handlers
from src.api.middleware.logging import RequestLoggingMiddleware, setup_logging

__all__ = [
    "APIError",
    "BadRequestError",
    "RequestLoggingMiddleware",
    "setup_exception_handlers",
    "setup_logging",
]
