"""Unified service registry for dependency injection.

This module provides a centralized factory for the assessment services,
switching implementations based on feature flags.

Usage:
    from src.shared.service_registry import get_service_registry

    registry = get_service_registry()
    coordinator = registry.get_turn_coordinator()

The registry automatically:
- Uses Redis-backed sessions when FF_USE_REDIS_PERSISTENCE=true
- Uses the LLM turn generator when FF_ENABLE_LLM_GENERATION=true,
  falling back to canned turns when no API key is configured
- Caches service instances for consistent singleton behavior
"""

from functools import lru_cache
from typing import TYPE_CHECKING
import logging

from src.shared.exceptions import ConfigurationError
from src.shared.feature_flags import FeatureFlags, get_feature_flags

if TYPE_CHECKING:
    from src.modules.assessment.coordinator import TurnCoordinator
    from src.modules.assessment.engine import ProgressionEngine
    from src.modules.assessment.gateway import SessionGateway
    from src.modules.assessment.interface import ITurnGenerator

logger = logging.getLogger(__name__)


class ServiceRegistry:
    """Service factory with feature flag support.

    Features:
    - Lazy service instantiation
    - Feature flag-based implementation selection
    - Service instance caching
    """

    _instance: "ServiceRegistry | None" = None

    def __new__(cls) -> "ServiceRegistry":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return
        self._flags = get_feature_flags()
        self._engine: "ProgressionEngine | None" = None
        self._session_gateway: "SessionGateway | None" = None
        self._turn_generator: "ITurnGenerator | None" = None
        self._turn_coordinator: "TurnCoordinator | None" = None
        self._initialized = True
        logger.info("ServiceRegistry initialized")

    def get_engine(self) -> "ProgressionEngine":
        """Get the progression engine bound to the process-wide catalog."""
        if self._engine is None:
            from src.modules.assessment.engine import ProgressionEngine

            self._engine = ProgressionEngine()
        return self._engine

    def get_session_gateway(self) -> "SessionGateway":
        """Get the session gateway.

        Talks to Redis if FF_USE_REDIS_PERSISTENCE is enabled, otherwise
        keeps sessions in process memory.
        """
        if self._session_gateway is None:
            self._session_gateway = self._create_session_gateway()
        return self._session_gateway

    def get_turn_generator(self) -> "ITurnGenerator":
        """Get the turn generator.

        Returns the LLM-backed generator if FF_ENABLE_LLM_GENERATION is
        enabled, otherwise the deterministic fallback generator.
        """
        if self._turn_generator is None:
            self._turn_generator = self._create_turn_generator()
        return self._turn_generator

    def get_turn_coordinator(self) -> "TurnCoordinator":
        """Get the turn coordinator wired to the gateway and generator above."""
        if self._turn_coordinator is None:
            from src.modules.assessment.coordinator import TurnCoordinator

            self._turn_coordinator = TurnCoordinator(
                gateway=self.get_session_gateway(),
                generator=self.get_turn_generator(),
                engine=self.get_engine(),
            )
        return self._turn_coordinator

    def _create_session_gateway(self) -> "SessionGateway":
        from src.modules.assessment.gateway import SessionGateway

        use_redis = self._flags.is_enabled(FeatureFlags.USE_REDIS_PERSISTENCE)
        logger.info(f"Creating SessionGateway (backend: {'redis' if use_redis else 'memory'})")
        return SessionGateway(engine=self.get_engine(), use_redis=use_redis)

    def _create_turn_generator(self) -> "ITurnGenerator":
        if self._flags.is_enabled(FeatureFlags.ENABLE_LLM_GENERATION):
            try:
                from src.modules.assessment.generator import LLMTurnGenerator
                from src.modules.llm.service import get_llm_service

                generator = LLMTurnGenerator(get_llm_service())
                logger.info("Creating LLMTurnGenerator")
                return generator
            except ConfigurationError as e:
                logger.warning(f"Failed to create LLMTurnGenerator, falling back: {e.message}")

        from src.modules.assessment.generator import FallbackTurnGenerator

        logger.info("Creating FallbackTurnGenerator")
        return FallbackTurnGenerator()

    def clear_cache(self) -> None:
        """Clear all cached service instances.

        Use this when feature flags change at runtime to force
        recreation of services with new settings.
        """
        self._engine = None
        self._session_gateway = None
        self._turn_generator = None
        self._turn_coordinator = None
        logger.info("ServiceRegistry cache cleared")

    def get_service_info(self) -> dict[str, str]:
        """Get information about currently instantiated services.

        Returns:
            Dictionary of service names to their implementation types
        """
        info = {}
        if self._session_gateway:
            info["gateway"] = f"{type(self._session_gateway).__name__}({self._session_gateway.backend})"
        if self._turn_generator:
            info["generator"] = type(self._turn_generator).__name__
        if self._turn_coordinator:
            info["coordinator"] = type(self._turn_coordinator).__name__
        return info

    def __repr__(self) -> str:
        redis_enabled = self._flags.is_enabled(FeatureFlags.USE_REDIS_PERSISTENCE)
        return f"ServiceRegistry(redis_enabled={redis_enabled}, services={self.get_service_info()})"


@lru_cache
def get_service_registry() -> ServiceRegistry:
    """Get the singleton ServiceRegistry instance.

    Returns:
        The shared ServiceRegistry instance
    """
    return ServiceRegistry()


# Convenience functions for common service access
def get_session_gateway() -> "SessionGateway":
    """Get the session gateway from the registry."""
    return get_service_registry().get_session_gateway()


def get_turn_generator() -> "ITurnGenerator":
    """Get the turn generator from the registry."""
    return get_service_registry().get_turn_generator()


def get_turn_coordinator() -> "TurnCoordinator":
    """Get the turn coordinator from the registry.

    This is the recommended way to get a coordinator instance, as it
    respects feature flags and provides fallback behavior.
    """
    return get_service_registry().get_turn_coordinator()
