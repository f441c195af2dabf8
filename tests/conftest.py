from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from stayfinder.config.settings import Settings, get_settings
from tests.helpers.fakes import API_URL, NOW, FakeBackend, FakeScheduler, build_jwt


@pytest.fixture
def jwt_factory() -> Callable[..., str]:
    """Gera JWT com `exp` relativo a NOW (segundos)."""

    def _make(expires_in: float | None = 3600, **claims: Any) -> str:
        payload: dict[str, Any] = {"id": "u1", **claims}
        if expires_in is not None:
            payload["exp"] = int(NOW + expires_in)
        return build_jwt(payload)

    return _make


@pytest.fixture
def clock() -> Callable[[], float]:
    return lambda: NOW


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_url=API_URL,
        environment="development",
        token_store_backend="memory",
        http_max_retries=0,
        query_stale_seconds=300,
        query_retry=1,
        password_reset_soft_404=True,
    )


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
