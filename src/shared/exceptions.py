"""Shared exceptions for the assessment service.

This module defines a consistent exception hierarchy used across all modules
to standardize error handling and provide clear error semantics.
"""

from typing import Any


class AssessmentException(Exception):
    """Base exception for all application errors.

    All domain-specific exceptions should inherit from this class
    to enable consistent error handling at the API layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# ===================
# State Errors
# ===================

class InvalidStateError(AssessmentException):
    """Raised when an operation is invalid for the current state."""
    pass


class AlreadyCompleteError(InvalidStateError):
    """Raised when an answer is recorded after the assessment finished."""

    def __init__(self) -> None:
        super().__init__("Assessment is already complete")


class SessionBusyError(InvalidStateError):
    """Raised when another turn holds the session lock."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            "Another request is already being processed for this session",
            {"session_id": session_id}
        )


class StaleTurnError(InvalidStateError):
    """Raised when a turn was submitted against an outdated view of the session."""

    def __init__(self, session_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Turn expected {expected} answered questions but session has {actual}",
            {"session_id": session_id, "expected": expected, "actual": actual}
        )


# ===================
# Progression Errors
# ===================

class ProgressionError(AssessmentException):
    """Base class for programming or data errors inside the progression core.

    These are internal signals for operators and are never shown verbatim
    to end users.
    """
    pass


class OutOfRangeError(ProgressionError):
    """Raised when a question index lies past the end of its section."""

    def __init__(self, section: str, index: int, required_count: int) -> None:
        super().__init__(
            f"Question index {index} is out of range for section '{section}' "
            f"({required_count} questions)",
            {"section": section, "index": index, "required_count": required_count}
        )


class TypeMismatchError(ProgressionError):
    """Raised when an answer's type differs from the required type."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(
            f"Invalid question type. Expected: {expected}, got: {actual}",
            {"expected": expected, "actual": actual}
        )


class StateCorruptionError(ProgressionError):
    """Raised when stored assessment state cannot be decoded or fails validation."""

    def __init__(self, message: str, violations: list[str] | None = None) -> None:
        super().__init__(message, {"violations": violations or []})


# ===================
# Integration Errors
# ===================

class ExternalServiceError(AssessmentException):
    """Raised when an external service call fails."""

    def __init__(self, service: str, message: str) -> None:
        super().__init__(
            f"External service error ({service}): {message}",
            {"service": service}
        )


class GenerationContractError(ExternalServiceError):
    """Raised when the turn generator keeps producing the wrong question type."""

    def __init__(self, required: str, produced: str | None, attempts: int) -> None:
        super().__init__(
            "TurnGenerator",
            f"requested {required} but received {produced or 'an unparseable turn'} "
            f"after {attempts} attempt(s)",
        )
        self.details.update({
            "required": required,
            "produced": produced,
            "attempts": attempts,
        })


class GenerationTimeoutError(ExternalServiceError):
    """Raised when turn generation does not finish in time."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__("TurnGenerator", f"timed out after {timeout_seconds}s")
        self.details["timeout_seconds"] = timeout_seconds


class LLMServiceError(ExternalServiceError):
    """Raised when LLM service fails."""

    def __init__(self, message: str) -> None:
        super().__init__("LLM", message)


class StorageError(ExternalServiceError):
    """Raised when the session store cannot complete an operation."""

    def __init__(self, message: str) -> None:
        super().__init__("SessionStore", message)


# ===================
# Configuration Errors
# ===================

class ConfigurationError(AssessmentException):
    """Raised when there's a configuration problem."""
    pass


class CatalogError(ConfigurationError):
    """Raised when the section catalog fails its load-time checks."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Invalid section catalog: {message}")
