"""Progression engine - the assessment state machine.

States are the catalog sections plus the terminal ``summary``. The only
transition is ``apply`` with an answer of the required type; a section
advances to the next one in catalog order exactly when its count reaches
the section's required count. There is no skipping and no going back.

The engine is pure and synchronous. It never mutates the state it is
given: every successful ``apply`` returns a new state and every failed
one leaves the input untouched.
"""

import logging

from src.modules.assessment.catalog import SectionCatalog, get_section_catalog
from src.modules.assessment.interface import (
    COMPLETE,
    Answer,
    AnswerType,
    AssessmentState,
    NextQuestion,
    Progress,
    RequiredType,
    SectionProgress,
    ValidationResult,
)
from src.shared.constants import SUMMARY_SECTION
from src.shared.exceptions import (
    AlreadyCompleteError,
    StateCorruptionError,
    TypeMismatchError,
)

logger = logging.getLogger(__name__)


def _percent(done: int, total: int) -> int:
    return round(done / total * 100) if total else 0


class ProgressionEngine:
    """Computes required types and state transitions from the section catalog."""

    def __init__(self, catalog: SectionCatalog | None = None) -> None:
        self._catalog = catalog or get_section_catalog()

    @property
    def catalog(self) -> SectionCatalog:
        return self._catalog

    def initial_state(self) -> AssessmentState:
        """Empty state positioned at the first section."""
        return AssessmentState(
            current_section=self._catalog.first.key,
            section_counts={key: 0 for key in self._catalog.keys},
            type_counts={answer_type: 0 for answer_type in AnswerType},
            total_answered=0,
            last_answer_type=None,
        )

    # --- Core transitions ---

    def required_type(self, state: AssessmentState) -> RequiredType:
        """Type the next answer must have, or COMPLETE.

        Raises:
            StateCorruptionError: If the current section is not in the catalog
            OutOfRangeError: If the current section's count is already at its
                maximum without having advanced
        """
        if state.current_section == SUMMARY_SECTION:
            return COMPLETE
        if state.current_section not in self._catalog:
            raise StateCorruptionError(
                f"Unknown current section '{state.current_section}'",
                [f"unknown current section {state.current_section}"],
            )
        index = state.section_counts.get(state.current_section, 0)
        return self._catalog.required_type(state.current_section, index)

    def apply(self, state: AssessmentState, answer: Answer) -> AssessmentState:
        """Record one answer and return the resulting state.

        Raises:
            AlreadyCompleteError: If the assessment has finished
            TypeMismatchError: If the answer's type is not the required one
        """
        required = self.required_type(state)
        if required is COMPLETE:
            raise AlreadyCompleteError()
        if answer.type != required:
            raise TypeMismatchError(required.value, answer.type.value)

        section = self._catalog.get(state.current_section)
        new_state = state.copy()
        new_state.section_counts[section.key] = new_state.section_counts.get(section.key, 0) + 1
        new_state.type_counts[answer.type] = new_state.type_counts.get(answer.type, 0) + 1
        new_state.total_answered += 1
        new_state.last_answer_type = answer.type

        if new_state.section_counts[section.key] == section.required_count:
            new_state.current_section = self._catalog.next_section(section)
            logger.info(
                f"Section '{section.key}' complete, advancing to '{new_state.current_section}' "
                f"({new_state.total_answered}/{self._catalog.total_questions})"
            )

        return new_state

    def is_complete(self, state: AssessmentState) -> bool:
        return state.current_section == SUMMARY_SECTION

    # --- Diagnostics ---

    def validate(self, state: AssessmentState) -> ValidationResult:
        """Re-check every invariant a reachable state satisfies.

        Used on states loaded from storage, where a partial write, a manual
        edit or an old layout may have left them inconsistent.
        """
        violations: list[str] = []
        catalog = self._catalog

        section_total = sum(state.section_counts.values())
        if section_total != state.total_answered:
            violations.append(
                f"Section totals ({section_total}) do not match total answered ({state.total_answered})"
            )

        type_total = sum(state.type_counts.values())
        if type_total != state.total_answered:
            violations.append(
                f"Question type totals ({type_total}) do not match total answered ({state.total_answered})"
            )

        if state.total_answered > catalog.total_questions:
            violations.append(
                f"Total answered ({state.total_answered}) exceeds maximum ({catalog.total_questions})"
            )

        for key, count in state.section_counts.items():
            if key not in catalog:
                violations.append(f"Unknown section in counts: {key}")
            elif count < 0:
                violations.append(f"Section {key} has a negative count ({count})")
            elif count > catalog.get(key).required_count:
                violations.append(
                    f"Section {key} exceeds maximum questions ({catalog.get(key).required_count})"
                )

        for answer_type, count in state.type_counts.items():
            if count < 0:
                violations.append(f"Question type {answer_type.value} has a negative count ({count})")

        if state.current_section != SUMMARY_SECTION and state.current_section not in catalog:
            violations.append(f"Unknown current section: {state.current_section}")
        else:
            violations.extend(self._ordering_violations(state))

        if not violations:
            violations.extend(self._type_distribution_violations(state))

        if violations:
            logger.warning(f"Assessment state failed validation: {violations}")

        return ValidationResult(violations=violations, current_section=state.current_section)

    def _ordering_violations(self, state: AssessmentState) -> list[str]:
        """Sections before the current one are full, the current one is not, later ones are empty."""
        violations: list[str] = []
        if state.current_section == SUMMARY_SECTION:
            current_position = len(self._catalog)
        else:
            current_position = self._catalog.position(state.current_section)

        for position, section in enumerate(self._catalog):
            count = state.section_counts.get(section.key, 0)
            if position < current_position and count != section.required_count:
                violations.append(
                    f"Section {section.key} is behind the current section but has "
                    f"{count}/{section.required_count} answers"
                )
            elif position == current_position and count >= section.required_count:
                violations.append(f"Current section {section.key} is full but was not advanced")
            elif position > current_position and count != 0:
                violations.append(f"Section {section.key} has answers before it was reached")
        return violations

    def _type_distribution_violations(self, state: AssessmentState) -> list[str]:
        """Type counts and last type agree with the catalog positions already answered."""
        expected: dict[AnswerType, int] = {answer_type: 0 for answer_type in AnswerType}
        last: AnswerType | None = None
        for section in self._catalog:
            for answer_type in section.type_sequence[:state.section_counts.get(section.key, 0)]:
                expected[answer_type] += 1
                last = answer_type

        violations: list[str] = []
        for answer_type, count in expected.items():
            actual = state.type_counts.get(answer_type, 0)
            if actual != count:
                violations.append(
                    f"Question type {answer_type.value} count is {actual}, catalog positions imply {count}"
                )
        if state.last_answer_type != last:
            violations.append(
                f"Last answer type is {state.last_answer_type.value if state.last_answer_type else None}, "
                f"catalog positions imply {last.value if last else None}"
            )
        return violations

    # --- Derived views ---

    def progress(self, state: AssessmentState) -> Progress:
        total = self._catalog.total_questions
        return Progress(
            questions_completed=state.total_answered,
            total_questions=total,
            percent_complete=_percent(state.total_answered, total),
            type_counts={t.value: state.type_counts.get(t, 0) for t in AnswerType},
        )

    def section_progress(self, state: AssessmentState, key: str | None = None) -> SectionProgress | None:
        """Progress within ``key`` (default: the current section); None for summary or unknown keys."""
        key = key or state.current_section
        if key not in self._catalog:
            return None
        section = self._catalog.get(key)
        done = state.section_counts.get(key, 0)
        return SectionProgress(
            section=key,
            questions_completed=done,
            total_questions=section.required_count,
            percent_complete=_percent(done, section.required_count),
            is_complete=done >= section.required_count,
        )

    def all_section_progress(self, state: AssessmentState) -> list[SectionProgress]:
        return [self.section_progress(state, key) for key in self._catalog.keys]

    def open_ended_sections(self, state: AssessmentState) -> list[str]:
        """Sections in which a free-text answer has already been recorded."""
        return [
            section.key
            for section in self._catalog
            if AnswerType.TEXT in section.type_sequence[:state.section_counts.get(section.key, 0)]
        ]

    def next_question(self, state: AssessmentState) -> NextQuestion:
        required = self.required_type(state)
        return NextQuestion(
            required=required,
            section=state.current_section,
            progress=self.progress(state),
            section_progress=self.section_progress(state),
            is_complete=required is COMPLETE,
        )
