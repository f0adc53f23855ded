"""Turn Coordinator - runs one assessment turn end to end.

A turn is: load the session's state, ask the engine which answer type is
required, have the turn generator produce a turn of exactly that type,
record it with the engine and save the new state. The whole cycle runs
under the session lock so two submissions for the same session can never
both increment the counters.

Nothing is saved unless ``apply`` succeeded: a timed-out, cancelled or
contract-violating generation leaves the stored state untouched and the
client may simply retry.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from src.modules.assessment.engine import ProgressionEngine
from src.modules.assessment.generator import GeneratedTurn
from src.modules.assessment.interface import (
    COMPLETE,
    AnswerType,
    AssessmentState,
    ISessionGateway,
    ITurnGenerator,
    NextQuestion,
    Progress,
    TurnRequest,
    TurnResult,
    ValidationResult,
)
from src.shared.config import get_settings
from src.shared.exceptions import (
    AlreadyCompleteError,
    GenerationContractError,
    GenerationTimeoutError,
    SessionBusyError,
    StaleTurnError,
    StateCorruptionError,
)

logger = logging.getLogger(__name__)


def _history_entries(message: str, turn: GeneratedTurn) -> list[dict[str, Any]]:
    """The user message and the generated turn, as stored in the session history."""
    now = datetime.now(timezone.utc).isoformat()
    return [
        {"role": "user", "content": message, "at": now},
        {"role": "assistant", "content": turn.model_dump(by_alias=True), "at": now},
    ]


class TurnCoordinator:
    """Orchestrates SessionGateway, ProgressionEngine and the turn generator."""

    def __init__(
        self,
        gateway: ISessionGateway,
        generator: ITurnGenerator,
        engine: ProgressionEngine | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        history_limit: int | None = None,
    ) -> None:
        settings = get_settings()
        self._gateway = gateway
        self._generator = generator
        self._engine = engine or ProgressionEngine()
        self._timeout = timeout_seconds or settings.generation_timeout_seconds
        self._max_retries = settings.generation_max_retries if max_retries is None else max_retries
        self._history_limit = settings.generation_history_messages if history_limit is None else history_limit

    @property
    def engine(self) -> ProgressionEngine:
        return self._engine

    @property
    def gateway(self) -> ISessionGateway:
        return self._gateway

    async def process_turn(
        self,
        session_id: str,
        message: str,
        expected_answered: int | None = None,
    ) -> TurnResult:
        """Run one turn for a session.

        Args:
            session_id: Opaque session identifier
            message: The user's message for this turn
            expected_answered: Number of answered questions the client last
                saw; a mismatch means this submission is a duplicate or stale

        Returns:
            TurnResult with the generated turn and the new state

        Raises:
            SessionBusyError: If another turn holds the session lock
            StaleTurnError: If expected_answered does not match the stored state
            StateCorruptionError: If the stored state fails validation
            GenerationTimeoutError: If the generator did not answer in time
            GenerationContractError: If the generator kept producing the wrong type
        """
        async with self._gateway.acquire_lock(session_id) as acquired:
            if not acquired:
                raise SessionBusyError(session_id)

            state, history = await self._load_valid(session_id)

            if expected_answered is not None and expected_answered != state.total_answered:
                logger.warning(
                    f"Stale turn for session {session_id}: expected {expected_answered}, "
                    f"stored {state.total_answered}"
                )
                raise StaleTurnError(session_id, expected_answered, state.total_answered)

            required = self._engine.required_type(state)
            if required is COMPLETE:
                logger.info(f"Turn received for completed assessment {session_id}")
                return self._result(state, already_complete=True)

            turn = await self._generate(session_id, state, required, message, history)

            try:
                new_state = self._engine.apply(state, turn.to_answer())
            except AlreadyCompleteError:
                return self._result(state, already_complete=True)

            persisted = await self._gateway.save(
                session_id,
                new_state,
                history=_history_entries(message, turn),
            )
            if not persisted:
                logger.warning(f"Session {session_id} saved to memory only")

            return self._result(new_state, turn=turn, persisted=persisted)

    async def _load_valid(self, session_id: str) -> tuple[AssessmentState, list[dict[str, Any]]]:
        state, history = await self._gateway.load_with_history(session_id, self._history_limit)
        validation = self._engine.validate(state)
        if not validation.is_valid:
            logger.error(f"Stored state for session {session_id} is invalid: {validation.violations}")
            raise StateCorruptionError(
                f"Stored assessment state for session {session_id} is inconsistent",
                validation.violations,
            )
        return state, history

    async def _generate(
        self,
        session_id: str,
        state: AssessmentState,
        required: AnswerType,
        message: str,
        history: list[dict[str, Any]],
    ) -> GeneratedTurn:
        """Ask the generator for a turn of the required type, retrying on mismatch."""
        attempts = 1 + self._max_retries
        produced: str | None = None
        previous_error: str | None = None

        for attempt in range(1, attempts + 1):
            request = TurnRequest(
                session_id=session_id,
                required_type=required,
                section=state.current_section,
                question_index=state.section_counts.get(state.current_section, 0),
                questions_completed=state.total_answered,
                total_questions=self._engine.catalog.total_questions,
                message=message,
                attempt=attempt,
                previous_error=previous_error,
                history=tuple(history),
            )
            try:
                turn = await asyncio.wait_for(self._generator.generate(request), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Turn generation timed out for session {session_id} after {self._timeout}s")
                raise GenerationTimeoutError(self._timeout) from None

            if turn is not None and turn.answer_type == required:
                return turn

            produced = turn.answer_type.value if turn is not None else None
            previous_error = (
                f"expected type {required.value}, got {produced}"
                if produced
                else "the reply was not a valid JSON turn"
            )
            logger.warning(
                f"Generator contract violation for session {session_id} "
                f"(attempt {attempt}/{attempts}): {previous_error}"
            )

        raise GenerationContractError(required.value, produced, attempts)

    def _result(
        self,
        state: AssessmentState,
        turn: GeneratedTurn | None = None,
        persisted: bool = False,
        already_complete: bool = False,
    ) -> TurnResult:
        next_required = self._engine.required_type(state)
        return TurnResult(
            state=state,
            next_required=next_required,
            progress=self._engine.progress(state),
            section_progress=self._engine.section_progress(state),
            is_complete=next_required is COMPLETE,
            turn=turn,
            persisted=persisted,
            already_complete=already_complete,
        )

    # --- Read-only and maintenance operations ---

    async def next_question(self, session_id: str) -> NextQuestion:
        """What the next turn must produce, without generating anything."""
        state = await self._gateway.load(session_id)
        return self._engine.next_question(state)

    async def progress(self, session_id: str) -> tuple[AssessmentState, Progress]:
        state = await self._gateway.load(session_id)
        return state, self._engine.progress(state)

    async def reset(self, session_id: str) -> AssessmentState:
        async with self._gateway.acquire_lock(session_id) as acquired:
            if not acquired:
                raise SessionBusyError(session_id)
            return await self._gateway.reset(session_id)

    async def delete(self, session_id: str) -> None:
        async with self._gateway.acquire_lock(session_id) as acquired:
            if not acquired:
                raise SessionBusyError(session_id)
            await self._gateway.delete(session_id)

    async def validate(self, session_id: str) -> ValidationResult:
        """Run the engine's consistency checks against the stored state.

        A state that cannot even be decoded is reported as a violation
        rather than raised.
        """
        try:
            state = await self._gateway.load(session_id)
        except StateCorruptionError as e:
            return ValidationResult(violations=e.details.get("violations") or [e.message])
        return self._engine.validate(state)
