"""Unit tests for API dependencies and settings."""

from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from pydantic import ValidationError

from src.api.dependencies import (
    Settings,
    _services,
    cleanup_services,
    get_analytics,
    get_cors_origins,
    get_orchestrator,
    get_rate_limiter,
    get_search_backend,
    get_settings,
    init_services,
    rate_limited,
)
from src.api.main import search_error_handler
from src.api.middleware.rate_limit import RateLimiter, RateLimitResult
from src.search.errors import SearchError

REQUIRED_ENV = {
    "SUPABASE_URL": "https://project.supabase.co",
    "SUPABASE_ANON_KEY": "anon-key",
}


@pytest.fixture(autouse=True)
def clear_services():
    _services.clear()
    get_settings.cache_clear()
    yield
    _services.clear()
    get_settings.cache_clear()


class TestSettings:
    """Tests for Settings configuration."""

    def test_settings_has_required_fields(self):
        """Test that Settings has all required fields."""
        with patch.dict("os.environ", REQUIRED_ENV):
            settings = Settings()

            assert settings.supabase_url == "https://project.supabase.co"
            assert settings.supabase_anon_key == "anon-key"

    def test_settings_default_values(self):
        """Test that Settings has correct default values."""
        with patch.dict("os.environ", REQUIRED_ENV):
            settings = Settings()

            assert settings.semantic_match_threshold == 0.7
            assert settings.embedding_model == "text-embedding-3-small"
            assert settings.embedding_dimensions == 384
            assert settings.rate_limit_max_entries == 10_000
            assert settings.rate_limit_cleanup_interval == 60.0
            assert settings.analytics_enabled is True
            assert settings.cors_origins == ["*"]
            assert settings.api_version == "1.0.0"

    def test_settings_from_environment(self):
        env = {
            **REQUIRED_ENV,
            "SEMANTIC_MATCH_THRESHOLD": "0.8",
            "CORS_ORIGINS": '["https://example.com"]',
            "ANALYTICS_ENABLED": "false",
        }
        with patch.dict("os.environ", env):
            settings = Settings()

            assert settings.semantic_match_threshold == 0.8
            assert settings.cors_origins == ["https://example.com"]
            assert settings.analytics_enabled is False

    def test_get_settings_caches_instance(self):
        with patch.dict("os.environ", REQUIRED_ENV):
            settings1 = get_settings()
            settings2 = get_settings()

            assert settings1 is settings2


class TestServiceInitialization:
    """Tests for service initialization and cleanup."""

    @pytest.mark.asyncio
    async def test_init_services_without_embedder(self):
        with patch.dict("os.environ", REQUIRED_ENV):
            settings = get_settings()

            with patch("src.api.dependencies.SupabaseRpcBackend") as mock_backend:
                await init_services(settings)

                mock_backend.assert_called_once_with(
                    base_url="https://project.supabase.co",
                    api_key="anon-key",
                    timeout=10.0,
                )
                assert "backend" in _services
                assert "orchestrator" in _services
                assert "analytics" in _services
                assert "rate_limiter" in _services
                assert "embedder" not in _services
                assert _services["orchestrator"].embedder is None

    @pytest.mark.asyncio
    async def test_init_services_with_embedder(self):
        env = {**REQUIRED_ENV, "OPENAI_API_KEY": "sk-test", "EMBEDDING_TIMEOUT": "1.5"}
        with patch.dict("os.environ", env):
            settings = get_settings()

            with patch("src.api.dependencies.SupabaseRpcBackend"), patch(
                "src.api.dependencies.QueryEmbedder"
            ) as mock_embedder:
                await init_services(settings)

                mock_embedder.assert_called_once()
                assert _services["embedder"] is mock_embedder.return_value
                assert _services["orchestrator"].embedding_timeout == 1.5

    @pytest.mark.asyncio
    async def test_cleanup_services_closes_clients(self):
        """Test that cleanup_services drains analytics and closes clients."""
        mock_backend = AsyncMock()
        mock_embedder = AsyncMock()
        mock_analytics = AsyncMock()
        _services["backend"] = mock_backend
        _services["embedder"] = mock_embedder
        _services["analytics"] = mock_analytics
        _services["rate_limiter"] = MagicMock()

        await cleanup_services()

        mock_analytics.aclose.assert_called_once()
        mock_embedder.close.assert_called_once()
        mock_backend.close.assert_called_once()
        assert len(_services) == 0

    @pytest.mark.asyncio
    async def test_init_services_enables_app_insights(self):
        env = {**REQUIRED_ENV, "APPLICATIONINSIGHTS_CONNECTION_STRING": "InstrumentationKey=abc"}
        with patch.dict("os.environ", env):
            settings = get_settings()

            with patch("src.api.dependencies.SupabaseRpcBackend"), patch(
                "src.api.dependencies.init_app_insights"
            ) as mock_init:
                await init_services(settings)

                mock_init.assert_called_once_with("InstrumentationKey=abc")

    @pytest.mark.asyncio
    async def test_app_insights_off_by_default(self):
        with patch.dict("os.environ", REQUIRED_ENV):
            settings = get_settings()
            assert settings.applicationinsights_connection_string is None

            with patch("src.api.dependencies.SupabaseRpcBackend"), patch(
                "src.api.dependencies.init_app_insights"
            ) as mock_init:
                await init_services(settings)

                mock_init.assert_not_called()

    @pytest.mark.asyncio
    async def test_cleanup_services_flushes_telemetry(self):
        with patch("src.api.dependencies.shutdown_app_insights") as mock_shutdown:
            await cleanup_services()

        mock_shutdown.assert_called_once()


class TestDependencyGetters:
    """Tests for dependency getter functions."""

    @pytest.mark.parametrize(
        "getter",
        [get_search_backend, get_orchestrator, get_analytics, get_rate_limiter],
    )
    def test_raises_when_not_initialized(self, getter):
        with pytest.raises(RuntimeError, match="Services not initialized"):
            getter()

    def test_returns_instances(self):
        backend, orchestrator, analytics, limiter = Mock(), Mock(), Mock(), Mock()
        _services.update(
            backend=backend,
            orchestrator=orchestrator,
            analytics=analytics,
            rate_limiter=limiter,
        )

        assert get_search_backend() is backend
        assert get_orchestrator() is orchestrator
        assert get_analytics() is analytics
        assert get_rate_limiter() is limiter


class TestCorsOrigins:
    """Tests for resolving allowed CORS origins."""

    def test_configured_origins(self):
        env = {**REQUIRED_ENV, "CORS_ORIGINS": '["https://a.example"]'}
        with patch.dict("os.environ", env):
            assert get_cors_origins() == ["https://a.example"]

    def test_missing_settings_fall_back_to_any_origin(self, caplog):
        with patch.dict("os.environ", {}, clear=True):
            with caplog.at_level("WARNING", logger="src.api.dependencies"):
                assert get_cors_origins() == ["*"]

        assert any("allowing any CORS origin" in r.message for r in caplog.records)

    def test_malformed_cors_setting_raises(self):
        env = {**REQUIRED_ENV, "CORS_ORIGINS": '{"origin": "https://a.example"}'}
        with patch.dict("os.environ", env):
            with pytest.raises(ValidationError):
                get_cors_origins()


class TestRateLimitedDependency:
    """Tests for the rate_limited dependency factory."""

    @pytest.fixture
    def limiter(self):
        return RateLimiter()

    @pytest.fixture
    def client(self, limiter):
        app = FastAPI()
        app.add_exception_handler(SearchError, search_error_handler)

        @app.get("/email")
        async def email_endpoint(result: RateLimitResult = Depends(rate_limited("email"))):
            return {"remaining": result.remaining}

        app.dependency_overrides[get_rate_limiter] = lambda: limiter
        return TestClient(app)

    def test_budget_enforced(self, client):
        remaining = [client.get("/email").json()["remaining"] for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

        denied = client.get("/email")
        assert denied.status_code == 429
        assert denied.json()["retryAfter"] >= 1
        assert "Retry-After" in denied.headers

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            rate_limited("nonexistent")
