"""Test configuration and fixtures."""

import sys
from pathlib import Path

# Load environment variables before any imports that need them
from dotenv import load_dotenv
project_root = Path(__file__).parent.parent
load_dotenv(project_root / ".env")

# Ensure src is in path
sys.path.insert(0, str(project_root))

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from src.modules.assessment.catalog import SectionCatalog
from src.modules.assessment.engine import ProgressionEngine
from src.modules.assessment.interface import Answer, AssessmentState


@pytest.fixture(autouse=True)
def reset_registry():
    """Start every test with fresh flags and no cached services."""
    from src.shared.feature_flags import FeatureFlagManager, get_feature_flags
    from src.shared.service_registry import ServiceRegistry, get_service_registry

    def _reset():
        FeatureFlagManager._instance = None
        get_feature_flags.cache_clear()
        ServiceRegistry._instance = None
        get_service_registry.cache_clear()

    _reset()
    yield
    _reset()


@pytest.fixture
def catalog():
    """The default section catalog."""
    return SectionCatalog()


@pytest.fixture
def engine(catalog):
    """Progression engine over the default catalog."""
    return ProgressionEngine(catalog)


@pytest.fixture
def advance(engine):
    """Build the state reached after answering the first ``n`` questions correctly."""

    def _advance(n: int, state: AssessmentState | None = None) -> AssessmentState:
        state = state or engine.initial_state()
        for _ in range(n):
            state = engine.apply(state, Answer(engine.required_type(state)))
        return state

    return _advance


@pytest.fixture
def mock_redis():
    """Mock Redis client backed by a plain dict.

    Supports the calls the session gateway makes: get, setex, set (with
    nx/ex), delete and ping. The backing dict is exposed as ``.store``.
    """
    store: dict[str, str] = {}

    async def _get(key):
        return store.get(key)

    async def _setex(key, ttl, value):
        store[key] = value
        return True

    async def _set(key, value, nx=False, ex=None):
        if nx and key in store:
            return None
        store[key] = value
        return True

    async def _delete(*keys):
        return sum(1 for key in keys if store.pop(key, None) is not None)

    redis = AsyncMock()
    redis.get = AsyncMock(side_effect=_get)
    redis.setex = AsyncMock(side_effect=_setex)
    redis.set = AsyncMock(side_effect=_set)
    redis.delete = AsyncMock(side_effect=_delete)
    redis.ping = AsyncMock(return_value=True)
    redis.store = store
    return redis


@pytest.fixture
def patched_redis(mock_redis):
    """Route the session gateway's Redis calls to ``mock_redis``."""
    with patch("src.modules.assessment.gateway.get_redis", return_value=mock_redis):
        yield mock_redis


@pytest.fixture
def mock_llm_service():
    """Mock LLM service."""
    service = AsyncMock()
    service.complete = AsyncMock(return_value=MagicMock(
        content='{"type": "text", "content": "Tell me about yourself?"}',
        model="claude-sonnet-4-20250514",
        usage={"input_tokens": 10, "output_tokens": 20},
    ))
    return service
