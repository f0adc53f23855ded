"""Unit tests for the progression engine."""

import json

import pytest

from src.modules.assessment.interface import (
    COMPLETE,
    Answer,
    AnswerType,
    AssessmentState,
)
from src.shared.exceptions import (
    AlreadyCompleteError,
    InvalidStateError,
    ProgressionError,
    StateCorruptionError,
    TypeMismatchError,
)

TEXT = AnswerType.TEXT
MC = AnswerType.MULTIPLE_CHOICE
RANKING = AnswerType.RANKING

EXPECTED_SEQUENCE = [TEXT, MC, MC, MC, RANKING, MC, RANKING, MC, MC, TEXT]


def wrong_type(required: AnswerType) -> AnswerType:
    return MC if required != MC else TEXT


class TestInitialState:
    """Tests for the empty state."""

    def test_initial_state(self, engine):
        """Test that a new assessment starts at the introduction with zero counts."""
        state = engine.initial_state()

        assert state.current_section == "introduction"
        assert state.total_answered == 0
        assert state.last_answer_type is None
        assert set(state.section_counts.values()) == {0}
        assert state.type_counts == {TEXT: 0, MC: 0, RANKING: 0}

    def test_initial_required_type_is_text(self, engine):
        """Test that the first question is open-ended."""
        assert engine.required_type(engine.initial_state()) == TEXT


class TestApply:
    """Tests for recording answers."""

    def test_first_answer_completes_introduction(self, engine):
        """Test that one text answer moves the session to interestExploration."""
        state = engine.apply(engine.initial_state(), Answer(TEXT))

        assert state.current_section == "interestExploration"
        assert state.section_counts["introduction"] == 1
        assert state.total_answered == 1
        assert state.last_answer_type == TEXT
        assert engine.required_type(state) == MC

    def test_apply_does_not_mutate_input(self, engine):
        """Test that apply returns a new state and leaves the input alone."""
        state = engine.initial_state()
        before = state.to_dict()

        new_state = engine.apply(state, Answer(TEXT))

        assert state.to_dict() == before
        assert new_state is not state
        assert new_state.section_counts is not state.section_counts

    def test_section_does_not_advance_early(self, engine, advance):
        """Test that a section stays current until its count is reached."""
        state = advance(2)

        assert state.current_section == "interestExploration"
        assert state.section_counts["interestExploration"] == 1

    def test_answer_accepts_string_type(self, engine):
        """Test that Answer normalizes a plain type string."""
        state = engine.apply(engine.initial_state(), Answer("text"))
        assert state.type_counts[TEXT] == 1

    @pytest.mark.parametrize("answered", range(10))
    def test_wrong_type_rejected_without_change(self, engine, advance, answered):
        """Test that a mismatched answer raises and leaves the state unchanged."""
        state = advance(answered)
        required = engine.required_type(state)
        before = json.dumps(state.to_dict(), sort_keys=True)

        with pytest.raises(TypeMismatchError) as exc_info:
            engine.apply(state, Answer(wrong_type(required)))

        assert json.dumps(state.to_dict(), sort_keys=True) == before
        assert exc_info.value.details["expected"] == required.value

    def test_type_mismatch_message(self, engine):
        """Test the mismatch message names both types."""
        with pytest.raises(TypeMismatchError, match="Expected: text, got: ranking"):
            engine.apply(engine.initial_state(), Answer(RANKING))

    def test_type_mismatch_is_progression_error(self):
        """Test the error taxonomy."""
        assert issubclass(TypeMismatchError, ProgressionError)
        assert issubclass(AlreadyCompleteError, InvalidStateError)


class TestFullRun:
    """Tests over a complete assessment."""

    def test_sequence_fidelity(self, engine):
        """Test the required types over a full run, then complete."""
        state = engine.initial_state()
        seen = []
        for _ in range(10):
            required = engine.required_type(state)
            seen.append(required)
            state = engine.apply(state, Answer(required))

        assert seen == EXPECTED_SEQUENCE
        assert engine.required_type(state) is COMPLETE

    def test_termination(self, engine, advance):
        """Test that ten correct answers reach summary."""
        state = advance(10)

        assert state.current_section == "summary"
        assert state.is_summary
        assert engine.is_complete(state)
        assert state.total_answered == 10

    @pytest.mark.parametrize("answer_type", list(AnswerType))
    def test_apply_after_complete_raises(self, engine, advance, answer_type):
        """Test that any answer after completion raises AlreadyCompleteError."""
        state = advance(10)

        with pytest.raises(AlreadyCompleteError):
            engine.apply(state, Answer(answer_type))

    def test_invariants_hold_at_every_step(self, engine):
        """Test count sums, section maxima and monotonicity along a run."""
        state = engine.initial_state()
        previous_total = 0
        for _ in range(10):
            state = engine.apply(state, Answer(engine.required_type(state)))

            assert sum(state.section_counts.values()) == state.total_answered
            assert sum(state.type_counts.values()) == state.total_answered
            for section in engine.catalog:
                assert state.section_counts[section.key] <= section.required_count
            assert state.total_answered == previous_total + 1
            assert engine.validate(state).is_valid
            previous_total = state.total_answered

    def test_final_type_distribution(self, engine, advance):
        """Test type counts after a full run."""
        state = advance(10)
        assert state.type_counts == {TEXT: 2, MC: 6, RANKING: 2}

    def test_ninth_position_requires_text(self, engine, advance):
        """Test the last question: MC rejected, text completes the assessment."""
        state = advance(9)
        assert engine.required_type(state) == TEXT

        with pytest.raises(TypeMismatchError):
            engine.apply(state, Answer(MC))

        final = engine.apply(state, Answer(TEXT))
        assert engine.is_complete(final)
        assert engine.next_question(final).is_complete

    def test_reset_from_seven(self, engine, advance):
        """Test that a fresh initial state replaces a state with seven answers."""
        state = advance(7)
        assert state.total_answered == 7

        reset = engine.initial_state()

        assert reset.total_answered == 0
        assert reset.current_section == "introduction"
        assert set(reset.section_counts.values()) == {0}
        assert set(reset.type_counts.values()) == {0}


class TestRequiredType:
    """Tests for required type lookups on unusual states."""

    def test_unknown_section_is_corruption(self, engine):
        """Test that an unknown current section raises StateCorruptionError."""
        state = engine.initial_state()
        state.current_section = "hobbies"

        with pytest.raises(StateCorruptionError):
            engine.required_type(state)


class TestValidate:
    """Tests for state diagnostics."""

    def test_valid_states(self, engine, advance):
        """Test that every reachable state validates."""
        for n in range(11):
            result = engine.validate(advance(n))
            assert result.is_valid, result.violations

    def test_total_mismatch_detected(self, engine, advance):
        """Test that a wrong total is reported."""
        state = advance(3)
        state.total_answered = 4

        result = engine.validate(state)

        assert not result.is_valid
        assert any("Section totals" in v for v in result.violations)
        assert any("Question type totals" in v for v in result.violations)

    def test_section_over_maximum_detected(self, engine, advance):
        """Test that a section count above its maximum is reported."""
        state = advance(1)
        state.section_counts["introduction"] = 2
        state.type_counts[TEXT] = 2
        state.total_answered = 2

        result = engine.validate(state)

        assert any("exceeds maximum" in v for v in result.violations)

    def test_unknown_section_detected(self, engine):
        """Test that unknown section keys are reported."""
        state = engine.initial_state()
        state.current_section = "hobbies"

        result = engine.validate(state)

        assert "Unknown current section: hobbies" in result.violations

    def test_unadvanced_full_section_detected(self, engine):
        """Test that a full section left as current is reported."""
        state = engine.initial_state()
        state.section_counts["introduction"] = 1
        state.type_counts[TEXT] = 1
        state.total_answered = 1

        result = engine.validate(state)

        assert any("full but was not advanced" in v for v in result.violations)

    def test_skipped_section_detected(self, engine, advance):
        """Test that answers in a section not yet reached are reported."""
        state = advance(1)
        state.section_counts["careerValues"] = 1
        state.section_counts["introduction"] = 0

        result = engine.validate(state)

        assert any("before it was reached" in v for v in result.violations)

    def test_type_distribution_mismatch_detected(self, engine, advance):
        """Test that counts consistent in total but wrong per type are reported."""
        state = advance(5)
        state.type_counts[MC] -= 1
        state.type_counts[RANKING] += 1

        result = engine.validate(state)

        assert any("catalog positions imply" in v for v in result.violations)

    def test_last_answer_type_mismatch_detected(self, engine, advance):
        """Test that an inconsistent last answer type is reported."""
        state = advance(5)
        state.last_answer_type = TEXT

        result = engine.validate(state)

        assert any("Last answer type" in v for v in result.violations)

    def test_negative_count_detected(self, engine):
        """Test that negative counts are reported."""
        state = engine.initial_state()
        state.type_counts[RANKING] = -1

        result = engine.validate(state)

        assert any("negative" in v for v in result.violations)


class TestDerivedViews:
    """Tests for progress views."""

    def test_progress(self, engine, advance):
        """Test overall progress after three answers."""
        progress = engine.progress(advance(3))

        assert progress.questions_completed == 3
        assert progress.total_questions == 10
        assert progress.percent_complete == 30
        assert progress.type_counts == {"text": 1, "multiple_choice": 2, "ranking": 0}

    def test_section_progress(self, engine, advance):
        """Test progress within the current section."""
        section = engine.section_progress(advance(8))

        assert section.section == "careerValues"
        assert section.questions_completed == 1
        assert section.total_questions == 3
        assert section.percent_complete == 33
        assert not section.is_complete

    def test_section_progress_for_completed_section(self, engine, advance):
        """Test progress for an explicitly named, finished section."""
        section = engine.section_progress(advance(3), "interestExploration")

        assert section.is_complete
        assert section.percent_complete == 100

    def test_section_progress_none_when_complete(self, engine, advance):
        """Test that the summary state has no current section progress."""
        assert engine.section_progress(advance(10)) is None

    def test_all_section_progress(self, engine, advance):
        """Test the per-section listing."""
        sections = engine.all_section_progress(advance(4))

        assert [s.section for s in sections] == engine.catalog.keys
        assert [s.is_complete for s in sections] == [True, True, False, False, False]

    def test_open_ended_sections(self, engine, advance):
        """Test which sections hold a free-text answer."""
        assert engine.open_ended_sections(engine.initial_state()) == []
        assert engine.open_ended_sections(advance(1)) == ["introduction"]
        assert engine.open_ended_sections(advance(10)) == ["introduction", "careerValues"]

    def test_next_question(self, engine, advance):
        """Test the next-question lookup."""
        next_question = engine.next_question(advance(4))

        assert next_question.required == RANKING
        assert next_question.section == "workStyle"
        assert not next_question.is_complete
        assert next_question.progress.questions_completed == 4


class TestSerialization:
    """Tests for the persisted layout."""

    @pytest.mark.parametrize("answered", [0, 4, 10])
    def test_round_trip(self, advance, answered):
        """Test that to_dict/from_dict preserve every field."""
        state = advance(answered)

        restored = AssessmentState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored == state

    def test_persisted_layout(self, advance):
        """Test field names and value types in the persisted layout."""
        data = advance(1).to_dict()

        assert data == {
            "currentSection": "interestExploration",
            "sectionCounts": {
                "introduction": 1,
                "interestExploration": 0,
                "workStyle": 0,
                "technicalAptitude": 0,
                "careerValues": 0,
            },
            "typeCounts": {"text": 1, "multiple_choice": 0, "ranking": 0},
            "totalAnswered": 1,
            "lastAnswerType": "text",
        }

    def test_missing_field_rejected(self, advance):
        """Test that a missing field is corruption."""
        data = advance(1).to_dict()
        del data["typeCounts"]

        with pytest.raises(StateCorruptionError, match="typeCounts"):
            AssessmentState.from_dict(data)

    @pytest.mark.parametrize("bad_value", ["1", 1.0, True, None])
    def test_non_integer_counts_rejected(self, advance, bad_value):
        """Test that counts are not coerced."""
        data = advance(1).to_dict()
        data["sectionCounts"]["introduction"] = bad_value

        with pytest.raises(StateCorruptionError):
            AssessmentState.from_dict(data)

    def test_unknown_answer_type_rejected(self, advance):
        """Test that unknown type names are corruption."""
        data = advance(1).to_dict()
        data["typeCounts"]["essay"] = 0

        with pytest.raises(StateCorruptionError, match="essay"):
            AssessmentState.from_dict(data)
