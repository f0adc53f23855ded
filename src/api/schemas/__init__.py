"""API schemas package."""

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

__all__ = [
    "AssessmentProgressResponse",
    "CatalogResponse",
    "CatalogSectionResponse",
    "NextQuestionResponse",
    "ProgressResponse",
    "ResetResponse",
    "SectionProgressResponse",
    "SubmitMessageRequest",
    "TurnResponse",
    "ValidationResponse",
]
