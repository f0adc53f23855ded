"""Assessment API routes.

Every route except the catalog identifies the session through the
``session-id`` header.
"""

from fastapi import APIRouter, status

from src.api.dependencies import CoordinatorDep, EngineDep, SessionId
from src.api.schemas.assessments import (
    AssessmentProgressResponse,
    CatalogResponse,
    CatalogSectionResponse,
    NextQuestionResponse,
    ProgressResponse,
    ResetResponse,
    SectionProgressResponse,
    SubmitMessageRequest,
    TurnResponse,
    ValidationResponse,
)
from src.shared.models import SuccessResponse

router = APIRouter()


@router.post(
    "/message",
    response_model=TurnResponse,
    summary="Submit message",
    description="Record the user's reply and generate the next question of the required type.",
)
async def submit_message(
    request: SubmitMessageRequest,
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> TurnResponse:
    """Run one assessment turn.

    Args:
        request: User message and optional expected answered count
        session_id: Session identifier from the session-id header
        coordinator: Turn coordinator instance

    Returns:
        Generated turn with the next required type and progress
    """
    result = await coordinator.process_turn(
        session_id=session_id,
        message=request.message,
        expected_answered=request.expected_answered,
    )

    return TurnResponse(
        turn=result.turn.model_dump(by_alias=True) if result.turn is not None else None,
        next_type=result.next_required.value,
        section=result.state.current_section,
        is_complete=result.is_complete,
        already_complete=result.already_complete,
        progress=ProgressResponse.from_domain(result.progress),
        section_progress=SectionProgressResponse.from_domain(result.section_progress),
        persisted=result.persisted,
    )


@router.get(
    "/next",
    response_model=NextQuestionResponse,
    summary="Next question type",
    description="Get the type the next question must have without generating it.",
)
async def get_next_question(
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> NextQuestionResponse:
    """Look up the next required question type."""
    next_question = await coordinator.next_question(session_id)

    return NextQuestionResponse(
        next_type=next_question.required.value,
        section=next_question.section,
        is_complete=next_question.is_complete,
        progress=ProgressResponse.from_domain(next_question.progress),
        section_progress=SectionProgressResponse.from_domain(next_question.section_progress),
    )


@router.get(
    "/progress",
    response_model=AssessmentProgressResponse,
    summary="Assessment progress",
    description="Get overall and per-section progress for the session.",
)
async def get_progress(
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> AssessmentProgressResponse:
    """Get progress for the session."""
    state, progress = await coordinator.progress(session_id)
    engine = coordinator.engine

    return AssessmentProgressResponse(
        current_section=state.current_section,
        is_complete=engine.is_complete(state),
        progress=ProgressResponse.from_domain(progress),
        sections=[
            SectionProgressResponse.from_domain(section)
            for section in engine.all_section_progress(state)
        ],
        open_ended_sections=engine.open_ended_sections(state),
    )


@router.post(
    "/reset",
    response_model=ResetResponse,
    summary="Reset assessment",
    description="Start the assessment over. Persona and anchors are kept.",
)
async def reset_assessment(
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> ResetResponse:
    """Reset the session's assessment."""
    state = await coordinator.reset(session_id)

    return ResetResponse(
        current_section=state.current_section,
        progress=ProgressResponse.from_domain(coordinator.engine.progress(state)),
    )


@router.delete(
    "/session",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete session",
    description="Remove the session and all its data.",
)
async def delete_session(
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> SuccessResponse:
    """Delete the session."""
    await coordinator.delete(session_id)
    return SuccessResponse(message="Session deleted")


@router.get(
    "/validate",
    response_model=ValidationResponse,
    summary="Validate session state",
    description="Check the stored assessment state for inconsistencies.",
)
async def validate_session(
    session_id: SessionId,
    coordinator: CoordinatorDep,
) -> ValidationResponse:
    """Run consistency checks on the stored state."""
    result = await coordinator.validate(session_id)

    return ValidationResponse(
        is_valid=result.is_valid,
        violations=result.violations,
        current_section=result.current_section,
    )


@router.get(
    "/catalog",
    response_model=CatalogResponse,
    summary="Section catalog",
    description="The fixed, ordered list of assessment sections.",
)
async def get_catalog(engine: EngineDep) -> CatalogResponse:
    """Describe the section catalog."""
    catalog = engine.catalog

    return CatalogResponse(
        total_questions=catalog.total_questions,
        sections=[CatalogSectionResponse.from_domain(section) for section in catalog],
    )
