"""Session Gateway.

This module provides Redis-backed storage for assessment sessions with a
process-memory fallback, plus the per-session lock that serializes turns.

Each session is one JSON document under ``{namespace}session:{id}``. The
assessment lives in its ``assessment`` field; the remaining fields
(persona, anchors, history, summary, timestamps) belong to other parts of
the product and are carried through untouched.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from uuid import uuid4

from redis.exceptions import RedisError

from src.modules.assessment.engine import ProgressionEngine
from src.modules.assessment.interface import AssessmentState
from src.shared.config import get_settings
from src.shared.constants import (
    ASSESSMENT_DOCUMENT_FIELD,
    DISTRIBUTED_LOCK_MAX_RETRIES,
    DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS,
    DISTRIBUTED_LOCK_TTL_SECONDS,
    HISTORY_MAX_MESSAGES,
    SESSION_KEY_PREFIX,
    SESSION_LOCK_PREFIX,
)
from src.shared.database import get_redis
from src.shared.exceptions import StateCorruptionError, StorageError

logger = logging.getLogger(__name__)

# Failures that mean "Redis is unavailable", as opposed to bad data
REDIS_ERRORS = (RedisError, ConnectionError, OSError, asyncio.TimeoutError)

# Top-level fields of the older flat session layout
LEGACY_FIELDS = (
    "machineState",
    "currentSection",
    "sections",
    "questionTypes",
    "totalQuestions",
    "lastQuestionType",
    "hasOpenEndedInSection",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _history(document: dict[str, Any]) -> list[dict[str, Any]]:
    history = document.get("history")
    return list(history) if isinstance(history, list) else []


class SessionGateway:
    """Load/save/reset/delete assessment state keyed by session id.

    With Redis enabled, every operation goes to Redis first. A failed read
    or lock call raises StorageError, since the stored session may hold
    progress and must not be mistaken for an absent one. A failed write is
    kept in process memory instead and ``save`` reports that it was not
    durable. A memory copy, once present, is newer than whatever Redis
    holds and wins on load until a durable save replaces it.
    """

    KEY_PREFIX = SESSION_KEY_PREFIX
    LOCK_PREFIX = SESSION_LOCK_PREFIX

    LOCK_TTL = DISTRIBUTED_LOCK_TTL_SECONDS
    LOCK_RETRY_DELAY = DISTRIBUTED_LOCK_RETRY_DELAY_SECONDS
    LOCK_MAX_RETRIES = DISTRIBUTED_LOCK_MAX_RETRIES

    def __init__(
        self,
        engine: ProgressionEngine | None = None,
        use_redis: bool = True,
        namespace: str | None = None,
        ttl_seconds: int | None = None,
        memory_fallback: bool | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            engine: Engine used to build empty states
            use_redis: Talk to Redis; when False the gateway is memory-only
            namespace: Key prefix, defaults to settings.session_namespace
            ttl_seconds: Session TTL, defaults to settings.session_ttl_seconds
            memory_fallback: Serve from memory when Redis fails, defaults to
                settings.session_memory_fallback
        """
        settings = get_settings()
        self._engine = engine or ProgressionEngine()
        self._use_redis = use_redis
        self._namespace = settings.session_namespace if namespace is None else namespace
        self._ttl = ttl_seconds or settings.session_ttl_seconds
        self._memory_fallback = (
            settings.session_memory_fallback if memory_fallback is None else memory_fallback
        )
        self._memory: dict[str, dict[str, Any]] = {}
        self._local_locks: dict[str, asyncio.Lock] = {}

    @property
    def backend(self) -> str:
        return "redis" if self._use_redis else "memory"

    def _key(self, session_id: str) -> str:
        return f"{self._namespace}{self.KEY_PREFIX}{session_id}"

    def _lock_key(self, session_id: str) -> str:
        return f"{self._namespace}{self.LOCK_PREFIX}{session_id}"

    def _degrade(self, operation: str, session_id: str, error: Exception) -> None:
        """Log a Redis failure, or raise when memory fallback is disabled."""
        if not self._memory_fallback:
            raise StorageError(f"{operation} failed for session {session_id}: {error}") from error
        logger.warning(f"Redis error during {operation} for session {session_id}, using memory fallback: {error}")

    # --- Document I/O ---

    def new_document(self, session_id: str) -> dict[str, Any]:
        """Fresh session document with an empty assessment."""
        now = _now()
        return {
            "id": session_id,
            ASSESSMENT_DOCUMENT_FIELD: self._engine.initial_state().to_dict(),
            "persona": None,
            "anchors": [],
            "history": [],
            "summary": None,
            "createdAt": now,
            "lastActivity": now,
        }

    async def load_document(self, session_id: str) -> dict[str, Any] | None:
        """Raw session document, or None if the session does not exist.

        Raises:
            StateCorruptionError: If the stored document is not valid JSON
            StorageError: If Redis could not be read
        """
        if session_id in self._memory:
            return self._memory[session_id]
        if not self._use_redis:
            return None

        try:
            redis = await get_redis()
            data = await redis.get(self._key(session_id))
        except REDIS_ERRORS as e:
            logger.warning(f"Redis error during load for session {session_id}: {e}")
            raise StorageError(f"load failed for session {session_id}: {e}") from e

        if data is None:
            return None
        try:
            document = json.loads(data)
        except json.JSONDecodeError as e:
            raise StateCorruptionError(f"Session {session_id} is not valid JSON") from e
        if not isinstance(document, dict):
            raise StateCorruptionError(f"Session {session_id} is not a JSON object")
        return document

    async def save_document(self, session_id: str, document: dict[str, Any]) -> bool:
        """Write a full session document. Returns True when it reached Redis."""
        document["lastActivity"] = _now()
        if not self._use_redis:
            self._memory[session_id] = document
            return False

        try:
            redis = await get_redis()
            await redis.setex(self._key(session_id), self._ttl, json.dumps(document))
        except REDIS_ERRORS as e:
            self._degrade("save", session_id, e)
            self._memory[session_id] = document
            return False

        self._memory.pop(session_id, None)
        logger.debug(f"Session saved for {session_id}, TTL: {self._ttl}s")
        return True

    # --- Assessment state ---

    def decode_state(self, document: dict[str, Any]) -> AssessmentState:
        """Extract the assessment state from a session document.

        Accepts both the current layout and the older flat one
        (``sections``/``questionTypes``/``totalQuestions`` at the top level).
        """
        if ASSESSMENT_DOCUMENT_FIELD in document:
            return AssessmentState.from_dict(document[ASSESSMENT_DOCUMENT_FIELD])
        if any(name in document for name in ("machineState", "sections", "totalQuestions")):
            return AssessmentState.from_dict(self._migrate_legacy(document))
        return self._engine.initial_state()

    def _migrate_legacy(self, document: dict[str, Any]) -> dict[str, Any]:
        initial = self._engine.initial_state().to_dict()
        machine = document.get("machineState") or {}
        context = machine.get("context") or document
        section_counts = dict(initial["sectionCounts"])
        section_counts.update(context.get("sections") or {})
        type_counts = dict(initial["typeCounts"])
        type_counts.update(context.get("questionTypes") or {})
        logger.info(f"Migrating legacy session layout for {document.get('id')}")
        return {
            "currentSection": machine.get("value") or document.get("currentSection") or initial["currentSection"],
            "sectionCounts": section_counts,
            "typeCounts": type_counts,
            "totalAnswered": context.get("totalQuestions", 0),
            "lastAnswerType": context.get("lastQuestionType"),
        }

    async def load(self, session_id: str) -> AssessmentState:
        """Get assessment state for a session.

        Absence is not an error: an unknown session yields the empty state.
        """
        document = await self.load_document(session_id)
        if document is None:
            return self._engine.initial_state()
        return self.decode_state(document)

    async def load_with_history(
        self,
        session_id: str,
        limit: int,
    ) -> tuple[AssessmentState, list[dict[str, Any]]]:
        """Get assessment state plus the last ``limit`` conversation messages."""
        document = await self.load_document(session_id)
        if document is None:
            return self._engine.initial_state(), []
        history = _history(document)
        return self.decode_state(document), history[-limit:] if limit > 0 else []

    async def save(
        self,
        session_id: str,
        state: AssessmentState,
        history: list[dict[str, Any]] | None = None,
    ) -> bool:
        """Persist the full assessment state, keeping unrelated session fields.

        Args:
            session_id: Session identifier
            state: New assessment state
            history: Messages to append to the conversation in the same write

        Returns:
            True if the write was durable, False if it only reached memory
        """
        document = await self.load_document(session_id)
        if document is None:
            document = self.new_document(session_id)
        self._set_assessment(document, state)
        if history:
            document["history"] = (_history(document) + list(history))[-HISTORY_MAX_MESSAGES:]
        return await self.save_document(session_id, document)

    def _set_assessment(self, document: dict[str, Any], state: AssessmentState) -> None:
        """Store ``state`` in the current layout, dropping any flat-layout fields."""
        for name in LEGACY_FIELDS:
            document.pop(name, None)
        document[ASSESSMENT_DOCUMENT_FIELD] = state.to_dict()

    async def reset(self, session_id: str) -> AssessmentState:
        """Put the session back at the start of the assessment.

        Clears the assessment counters and the conversation history/summary
        built during it; persona and anchors are preserved.
        """
        try:
            document = await self.load_document(session_id)
        except StateCorruptionError:
            logger.warning(f"Discarding unreadable session {session_id} on reset")
            document = None
        if document is None:
            document = self.new_document(session_id)

        state = self._engine.initial_state()
        self._set_assessment(document, state)
        document["history"] = []
        document["summary"] = None
        await self.save_document(session_id, document)
        logger.info(f"Assessment reset for session {session_id}")
        return state

    async def delete(self, session_id: str) -> None:
        """Delete a session from Redis and from the memory fallback."""
        if self._use_redis:
            try:
                redis = await get_redis()
                await redis.delete(self._key(session_id))
            except REDIS_ERRORS as e:
                self._degrade("delete", session_id, e)
        self._memory.pop(session_id, None)
        lock = self._local_locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._local_locks[session_id]
        logger.info(f"Session deleted for {session_id}")

    # --- Locking ---

    @asynccontextmanager
    async def acquire_lock(self, session_id: str) -> AsyncGenerator[bool, None]:
        """Hold the per-session lock for the duration of a turn.

        Uses Redis SET NX with an expiry so a crashed holder cannot block the
        session forever. When Redis is disabled, an in-process asyncio.Lock
        per session is used instead.

        Yields:
            True if the lock was acquired, False if it timed out

        Raises:
            StorageError: If Redis is enabled but the lock call fails; a
                local lock would not exclude holders of the Redis one
        """
        if not self._use_redis:
            lock = self._local_locks.setdefault(session_id, asyncio.Lock())
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.LOCK_MAX_RETRIES * self.LOCK_RETRY_DELAY)
                acquired = True
            except asyncio.TimeoutError:
                acquired = False
                logger.warning(f"Failed to acquire local lock for session {session_id}")
            try:
                yield acquired
            finally:
                if acquired:
                    lock.release()
            return

        try:
            token = await self._acquire_redis_lock(session_id)
        except REDIS_ERRORS as e:
            logger.warning(f"Redis error acquiring lock for session {session_id}: {e}")
            raise StorageError(f"lock failed for session {session_id}: {e}") from e

        if token is None:
            logger.warning(
                f"Failed to acquire lock for session {session_id} after {self.LOCK_MAX_RETRIES} retries"
            )
        try:
            yield token is not None
        finally:
            if token is not None:
                await self._release_redis_lock(session_id, token)

    async def _acquire_redis_lock(self, session_id: str) -> str | None:
        redis = await get_redis()
        lock_key = self._lock_key(session_id)
        token = uuid4().hex
        for _ in range(self.LOCK_MAX_RETRIES):
            if await redis.set(lock_key, token, nx=True, ex=self.LOCK_TTL):
                return token
            await asyncio.sleep(self.LOCK_RETRY_DELAY)
        return None

    async def _release_redis_lock(self, session_id: str, token: str) -> None:
        lock_key = self._lock_key(session_id)
        try:
            redis = await get_redis()
            # Only release a lock we still own; it may have expired and been re-taken
            if await redis.get(lock_key) == token:
                await redis.delete(lock_key)
        except REDIS_ERRORS as e:
            logger.warning(f"Error releasing lock for session {session_id}: {e}")

    # --- Diagnostics ---

    async def health(self) -> dict[str, Any]:
        """Report backend, Redis reachability and memory fallback usage."""
        redis_healthy: bool | None = None
        if self._use_redis:
            try:
                redis = await get_redis()
                redis_healthy = bool(await redis.ping())
            except REDIS_ERRORS as e:
                logger.warning(f"Redis ping failed: {e}")
                redis_healthy = False
        return {
            "backend": self.backend,
            "redis_healthy": redis_healthy,
            "memory_sessions": len(self._memory),
            "memory_fallback": self._memory_fallback,
        }
