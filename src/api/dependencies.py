"""FastAPI dependency injection for the assessment services.

Services come from the service registry so the API, the CLI and the tests
share one set of feature-flag-aware singletons.
"""

import re
from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.error_handler import BadRequestError
from src.modules.assessment.coordinator import TurnCoordinator
from src.modules.assessment.engine import ProgressionEngine
from src.modules.assessment.gateway import SessionGateway
from src.shared.constants import SESSION_ID_PATTERN
from src.shared.service_registry import get_service_registry


# ===================
# Session Identity
# ===================

async def get_session_id(
    session_id: Annotated[str, Header(alias="session-id")],
) -> str:
    """Read and validate the ``session-id`` header.

    Raises:
        BadRequestError: If the id contains characters not allowed in keys
    """
    if not re.match(SESSION_ID_PATTERN, session_id):
        raise BadRequestError(
            "Invalid session-id header",
            {"pattern": SESSION_ID_PATTERN},
        )
    return session_id


# ===================
# Service Dependencies
# ===================

async def get_turn_coordinator() -> TurnCoordinator:
    """Get the turn coordinator instance."""
    return get_service_registry().get_turn_coordinator()


async def get_engine() -> ProgressionEngine:
    """Get the progression engine instance."""
    return get_service_registry().get_engine()


async def get_session_gateway() -> SessionGateway:
    """Get the session gateway instance."""
    return get_service_registry().get_session_gateway()


# ===================
# Type Aliases for Dependencies
# ===================

SessionId = Annotated[str, Depends(get_session_id)]
CoordinatorDep = Annotated[TurnCoordinator, Depends(get_turn_coordinator)]
EngineDep = Annotated[ProgressionEngine, Depends(get_engine)]
GatewayDep = Annotated[SessionGateway, Depends(get_session_gateway)]
