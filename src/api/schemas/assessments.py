"""Assessment API schemas."""

from typing import Any

from pydantic import BaseModel, Field

from src.modules.assessment.interface import Progress, SectionProgress, Section
from src.shared.constants import TOTAL_ASSESSMENT_QUESTIONS


# Request Schemas
class SubmitMessageRequest(BaseModel):
    """User message for one assessment turn."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=4000,
        description="The user's reply to the previous question",
    )
    expected_answered: int | None = Field(
        default=None,
        ge=0,
        le=TOTAL_ASSESSMENT_QUESTIONS,
        description="Answered count the client last saw; rejects stale or duplicate submissions",
    )


# Progress Schemas
class ProgressResponse(BaseModel):
    """Assessment-wide progress."""

    questions_completed: int = Field(..., description="Questions answered so far")
    total_questions: int = Field(..., description="Questions in the whole assessment")
    percent_complete: int = Field(..., ge=0, le=100, description="Rounded percentage")
    type_counts: dict[str, int] = Field(..., description="Answers recorded per question type")

    @classmethod
    def from_domain(cls, progress: Progress) -> "ProgressResponse":
        return cls(
            questions_completed=progress.questions_completed,
            total_questions=progress.total_questions,
            percent_complete=progress.percent_complete,
            type_counts=dict(progress.type_counts),
        )


class SectionProgressResponse(BaseModel):
    """Progress within one section."""

    section: str = Field(..., description="Section key")
    questions_completed: int = Field(..., description="Questions answered in this section")
    total_questions: int = Field(..., description="Questions this section requires")
    percent_complete: int = Field(..., ge=0, le=100, description="Rounded percentage")
    is_complete: bool = Field(..., description="Whether the section is finished")

    @classmethod
    def from_domain(cls, progress: SectionProgress | None) -> "SectionProgressResponse | None":
        if progress is None:
            return None
        return cls(
            section=progress.section,
            questions_completed=progress.questions_completed,
            total_questions=progress.total_questions,
            percent_complete=progress.percent_complete,
            is_complete=progress.is_complete,
        )


# Turn Schemas
class TurnResponse(BaseModel):
    """Result of one assessment turn."""

    turn: dict[str, Any] | None = Field(
        default=None,
        description="Generated assistant turn (text, multiple_choice or ranking)",
    )
    next_type: str = Field(
        ...,
        description="Type the next turn must have, or 'complete'",
    )
    section: str = Field(..., description="Current section key, 'summary' once finished")
    is_complete: bool = Field(..., description="Whether the assessment is finished")
    already_complete: bool = Field(
        default=False,
        description="The assessment was finished before this message arrived",
    )
    progress: ProgressResponse
    section_progress: SectionProgressResponse | None = None
    persisted: bool = Field(
        default=False,
        description="False when the session is only held in memory",
    )


class NextQuestionResponse(BaseModel):
    """What the next turn must produce."""

    next_type: str = Field(..., description="Required type, or 'complete'")
    section: str = Field(..., description="Current section key")
    is_complete: bool
    progress: ProgressResponse
    section_progress: SectionProgressResponse | None = None


class AssessmentProgressResponse(BaseModel):
    """Full progress view for a session."""

    current_section: str
    is_complete: bool
    progress: ProgressResponse
    sections: list[SectionProgressResponse]
    open_ended_sections: list[str] = Field(
        default_factory=list,
        description="Sections in which a free-text answer was recorded",
    )


class ResetResponse(BaseModel):
    """Reset confirmation."""

    success: bool = True
    message: str = "Assessment reset"
    current_section: str
    progress: ProgressResponse


class ValidationResponse(BaseModel):
    """Consistency check of a stored session."""

    is_valid: bool
    violations: list[str] = Field(default_factory=list)
    current_section: str | None = None


# Catalog Schemas
class CatalogSectionResponse(BaseModel):
    """One catalog section."""

    key: str
    title: str
    required_count: int
    type_sequence: list[str]

    @classmethod
    def from_domain(cls, section: Section) -> "CatalogSectionResponse":
        return cls(
            key=section.key,
            title=section.title,
            required_count=section.required_count,
            type_sequence=[answer_type.value for answer_type in section.type_sequence],
        )


class CatalogResponse(BaseModel):
    """The fixed section catalog."""

    total_questions: int
    sections: list[CatalogSectionResponse]
