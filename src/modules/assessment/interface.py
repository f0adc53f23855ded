"""Assessment Module - Section catalog, progression state and turn contracts."""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncContextManager, Protocol

from src.shared.constants import SUMMARY_SECTION
from src.shared.exceptions import StateCorruptionError

if TYPE_CHECKING:
    from src.modules.assessment.generator import GeneratedTurn


class AnswerType(str, Enum):
    """Structural shape a turn must take."""

    TEXT = "text"
    MULTIPLE_CHOICE = "multiple_choice"
    RANKING = "ranking"


class Completion(str, Enum):
    """Marker returned instead of an AnswerType once the assessment is finished."""

    COMPLETE = "complete"


COMPLETE = Completion.COMPLETE

# What the engine can ask for next
RequiredType = AnswerType | Completion


@dataclass(frozen=True)
class Section:
    """A catalog entry: a named phase with a fixed sequence of answer types."""

    key: str
    title: str
    required_count: int
    type_sequence: tuple[AnswerType, ...]


@dataclass(frozen=True)
class Answer:
    """One recorded turn. Only ``type`` matters to the progression engine."""

    type: AnswerType
    payload: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, AnswerType):
            object.__setattr__(self, "type", AnswerType(self.type))


@dataclass
class AssessmentState:
    """Per-session progression record.

    Treated as a value: the engine never mutates a state it was handed,
    it returns a new one.
    """

    current_section: str
    section_counts: dict[str, int]
    type_counts: dict[AnswerType, int]
    total_answered: int = 0
    last_answer_type: AnswerType | None = None

    def copy(self) -> "AssessmentState":
        """Return a deep copy that shares no containers with this state."""
        return copy.deepcopy(self)

    @property
    def is_summary(self) -> bool:
        return self.current_section == SUMMARY_SECTION

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted layout."""
        return {
            "currentSection": self.current_section,
            "sectionCounts": dict(self.section_counts),
            "typeCounts": {t.value: count for t, count in self.type_counts.items()},
            "totalAnswered": self.total_answered,
            "lastAnswerType": self.last_answer_type.value if self.last_answer_type else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AssessmentState":
        """Build a state from the persisted layout.

        Values are checked, not coerced: a count stored as ``"3"`` or
        ``3.0`` is reported as corruption rather than silently fixed.

        Raises:
            StateCorruptionError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise StateCorruptionError("Assessment state must be an object")

        missing = [
            name for name in ("currentSection", "sectionCounts", "typeCounts", "totalAnswered")
            if name not in data
        ]
        if missing:
            raise StateCorruptionError(
                f"Assessment state is missing fields: {', '.join(missing)}",
                [f"missing field {name}" for name in missing],
            )

        current_section = data["currentSection"]
        if not isinstance(current_section, str):
            raise StateCorruptionError("currentSection must be a string")

        section_counts = _decode_counts("sectionCounts", data["sectionCounts"])

        raw_types = _decode_counts("typeCounts", data["typeCounts"])
        type_counts: dict[AnswerType, int] = {}
        for name, count in raw_types.items():
            try:
                type_counts[AnswerType(name)] = count
            except ValueError:
                raise StateCorruptionError(f"Unknown answer type in typeCounts: {name}") from None

        total = data["totalAnswered"]
        if not _is_count(total):
            raise StateCorruptionError("totalAnswered must be an integer")

        last = data.get("lastAnswerType")
        if last is not None:
            try:
                last = AnswerType(last)
            except ValueError:
                raise StateCorruptionError(f"Unknown lastAnswerType: {last}") from None

        return cls(
            current_section=current_section,
            section_counts=section_counts,
            type_counts=type_counts,
            total_answered=total,
            last_answer_type=last,
        )


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _decode_counts(name: str, value: Any) -> dict[str, int]:
    if not isinstance(value, dict):
        raise StateCorruptionError(f"{name} must be an object")
    counts: dict[str, int] = {}
    for key, count in value.items():
        if not _is_count(count):
            raise StateCorruptionError(f"{name}.{key} must be an integer")
        counts[key] = count
    return counts


@dataclass
class ValidationResult:
    """Outcome of re-checking a state's cross-invariants."""

    violations: list[str] = field(default_factory=list)
    current_section: str | None = None

    @property
    def is_valid(self) -> bool:
        return not self.violations


@dataclass(frozen=True)
class Progress:
    """Assessment-wide progress, always derived from the canonical counts."""

    questions_completed: int
    total_questions: int
    percent_complete: int
    type_counts: dict[str, int]


@dataclass(frozen=True)
class SectionProgress:
    """Progress within a single section."""

    section: str
    questions_completed: int
    total_questions: int
    percent_complete: int
    is_complete: bool


@dataclass(frozen=True)
class NextQuestion:
    """What the next turn must produce, plus progress for display."""

    required: RequiredType
    section: str
    progress: Progress
    section_progress: SectionProgress | None
    is_complete: bool


@dataclass(frozen=True)
class TurnRequest:
    """Everything a turn generator is told about the turn it must produce."""

    session_id: str
    required_type: AnswerType
    section: str
    question_index: int
    questions_completed: int
    total_questions: int
    message: str
    attempt: int = 1
    previous_error: str | None = None
    # Most recent conversation messages, oldest first
    history: tuple[dict[str, Any], ...] = ()


@dataclass
class TurnResult:
    """Result of one coordinated turn."""

    state: AssessmentState
    next_required: RequiredType
    progress: Progress
    section_progress: SectionProgress | None
    is_complete: bool
    turn: "GeneratedTurn | None" = None
    persisted: bool = False
    already_complete: bool = False


class ITurnGenerator(Protocol):
    """Produces the next assistant turn of a requested type.

    Implementations should honor ``request.required_type``; the coordinator
    still checks the produced type and never records a mismatch.
    """

    async def generate(self, request: TurnRequest) -> "GeneratedTurn | None":
        """Generate a turn.

        Args:
            request: Turn constraints and conversation input

        Returns:
            The generated turn, or None if the output could not be parsed
        """
        ...


class ISessionGateway(Protocol):
    """Storage contract for assessment state keyed by session id."""

    async def load(self, session_id: str) -> AssessmentState:
        """Return the stored state, or a fresh empty one when none exists."""
        ...

    async def load_with_history(
        self, session_id: str, limit: int
    ) -> tuple[AssessmentState, list[dict[str, Any]]]:
        """Return the stored state and its last ``limit`` conversation messages."""
        ...

    async def save(
        self,
        session_id: str,
        state: AssessmentState,
        history: list[dict[str, Any]] | None = None,
    ) -> bool:
        """Persist the full state, appending ``history`` in the same write.

        Returns True when the write was durable.
        """
        ...

    async def reset(self, session_id: str) -> AssessmentState:
        """Replace the assessment fields with the empty state."""
        ...

    async def delete(self, session_id: str) -> None:
        """Remove the session entirely."""
        ...

    def acquire_lock(self, session_id: str) -> AsyncContextManager[bool]:
        """Hold the per-session lock; yields whether it was acquired."""
        ...
