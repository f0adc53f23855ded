"""Request logging for the assessment API.

Every response carries an ``X-Request-ID`` header. Each request is logged
once when it finishes, tagged with the session it was made for, so the
turns of one assessment can be followed through the logs.
"""

import logging
import re
import time
from typing import Any
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.shared.config import get_settings
from src.shared.constants import REQUEST_ID_PATTERN, SESSION_ID_PATTERN

settings = get_settings()
logger = logging.getLogger(__name__)

# Polled by load balancers; logged at DEBUG only
QUIET_PATHS = ("/health", "/health/ready")


def _request_id(request: Request) -> str:
    """Client-supplied request id when well-formed, otherwise a new one."""
    request_id = request.headers.get("X-Request-ID")
    if request_id and re.match(REQUEST_ID_PATTERN, request_id):
        return request_id
    return str(uuid4())


def _session_id(request: Request) -> str | None:
    """Session header, dropped when it does not look like a session id."""
    session_id = request.headers.get("session-id")
    if session_id and re.match(SESSION_ID_PATTERN, session_id):
        return session_id
    return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id and logs its outcome per session."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = _request_id(request)
        request.state.request_id = request_id
        context: dict[str, Any] = {
            "request_id": request_id,
            "session_id": _session_id(request),
            "method": request.method,
            "path": request.url.path,
        }
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            context["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(
                f"{request.method} {request.url.path} failed for session {context['session_id']}: {exc}",
                extra=context,
            )
            raise

        context["status_code"] = response.status_code
        context["duration_ms"] = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id

        if request.url.path in QUIET_PATHS:
            log_level = logging.DEBUG
        elif response.status_code >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO
        logger.log(
            log_level,
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"(session {context['session_id']}, {context['duration_ms']}ms)",
            extra=context,
        )
        return response


def setup_logging() -> None:
    """Configure application logging.

    JSON lines in production, plain text otherwise.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.is_production:
        log_format = (
            '{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}'
        )
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(
        logging.INFO if settings.is_development else logging.WARNING
    )
