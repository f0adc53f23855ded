"""Assessment Module - Section catalog, progression engine and turn coordination.

Usage:
    # Recommended: Use service registry (respects feature flags)
    from src.modules.assessment import get_turn_coordinator
    coordinator = get_turn_coordinator()
    result = await coordinator.process_turn(session_id, message)

    # Pure progression logic
    from src.modules.assessment import ProgressionEngine
    engine = ProgressionEngine()
    state = engine.apply(engine.initial_state(), Answer(AnswerType.TEXT))
"""

from src.modules.assessment.interface import (
    COMPLETE,
    Answer,
    AnswerType,
    AssessmentState,
    Completion,
    ISessionGateway,
    ITurnGenerator,
    NextQuestion,
    Progress,
    RequiredType,
    Section,
    SectionProgress,
    TurnRequest,
    TurnResult,
    ValidationResult,
)
from src.modules.assessment.catalog import DEFAULT_SECTIONS, SectionCatalog, get_section_catalog
from src.modules.assessment.engine import ProgressionEngine
from src.modules.assessment.generator import (
    FallbackTurnGenerator,
    GeneratedTurn,
    LLMTurnGenerator,
    MultipleChoiceTurn,
    RankingTurn,
    TextTurn,
    parse_turn,
)
from src.modules.assessment.gateway import SessionGateway
from src.modules.assessment.coordinator import TurnCoordinator

# Registry-based getters (recommended)
from src.shared.service_registry import get_session_gateway, get_turn_coordinator

__all__ = [
    # Interface types
    "COMPLETE",
    "Answer",
    "AnswerType",
    "AssessmentState",
    "Completion",
    "ISessionGateway",
    "ITurnGenerator",
    "NextQuestion",
    "Progress",
    "RequiredType",
    "Section",
    "SectionProgress",
    "TurnRequest",
    "TurnResult",
    "ValidationResult",
    # Catalog and engine
    "DEFAULT_SECTIONS",
    "SectionCatalog",
    "get_section_catalog",
    "ProgressionEngine",
    # Turn generation
    "FallbackTurnGenerator",
    "GeneratedTurn",
    "LLMTurnGenerator",
    "MultipleChoiceTurn",
    "RankingTurn",
    "TextTurn",
    "parse_turn",
    # Storage and orchestration
    "SessionGateway",
    "TurnCoordinator",
    # Factory functions
    "get_session_gateway",
    "get_turn_coordinator",
]
