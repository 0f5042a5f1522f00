"""
Tests for service wiring, configuration and process bootstrap.
"""

import logging
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError

from shared.config import Settings, get_settings
from shared.errors import BackendError
from shared.logging import level_for_verbosity
from service_kv.app import main as kv_main
from service_kv.app.main import KeyValueService, create_app, settings_from_args


class TestSettings:
    """Configuration via environment and overrides."""

    def test_defaults(self, monkeypatch):
        for name in ("KV_CONCURRENCY_LIMIT", "KV_TIMEOUT_IN_MILLIS", "KV_MAX_PAYLOAD_BYTES", "KV_ADMIN_TOKEN"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.concurrency_limit == 1024
        assert settings.timeout_in_millis == 10_000
        assert settings.max_payload_bytes == 5_120_000
        assert settings.admin_token == "secret-token"
        assert settings.server_port == 3000
        assert settings.redis_port == 6379

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("KV_CONCURRENCY_LIMIT", "7")

        assert get_settings().concurrency_limit == 7

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("KV_REDIS_HOST", "from-env")

        settings = get_settings(redis_host=None, redis_port=6380)

        assert settings.redis_host == "from-env"
        assert settings.redis_url == "redis://from-env:6380/0"

    def test_settings_are_frozen(self):
        settings = Settings(_env_file=None)

        with pytest.raises(ValidationError):
            settings.concurrency_limit = 1

    def test_invalid_limit_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, concurrency_limit=0)

    def test_timeout_seconds(self):
        assert Settings(_env_file=None, timeout_in_millis=250).timeout_seconds == 0.25


class TestCli:
    """Command line flags."""

    def test_flags_map_onto_settings(self):
        settings = settings_from_args([
            "-vv", "-p", "8080", "-s", "0.0.0.0",
            "-r", "redis.internal", "--redis-port", "6380",
            "-c", "10", "-t", "250", "--admin-token", "hunter2",
        ])

        assert settings.verbose == 2
        assert settings.server_port == 8080
        assert settings.server_host == "0.0.0.0"
        assert settings.redis_host == "redis.internal"
        assert settings.redis_port == 6380
        assert settings.concurrency_limit == 10
        assert settings.timeout_in_millis == 250
        assert settings.admin_token == "hunter2"

    def test_unset_flags_keep_defaults(self, monkeypatch):
        monkeypatch.delenv("KV_SERVER_PORT", raising=False)

        settings = settings_from_args([])

        assert settings.server_port == 3000
        assert settings.enable_tracing is False

    @pytest.mark.parametrize(
        "occurrences, level",
        [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
    )
    def test_verbosity_levels(self, occurrences, level):
        assert level_for_verbosity(occurrences) == level


class TestBootstrap:
    """Startup checks and server launch."""

    def test_unreachable_backend_is_fatal(self):
        with patch.object(kv_main, "verify_backend", new=AsyncMock(side_effect=BackendError("refused"))), \
                patch.object(kv_main, "configure_logging"), \
                patch.object(KeyValueService, "run") as mock_run:
            with pytest.raises(SystemExit) as excinfo:
                kv_main.main(["-r", "nowhere"])

        assert excinfo.value.code == 1
        mock_run.assert_not_called()

    def test_reachable_backend_starts_server(self):
        verify = AsyncMock(return_value=None)
        with patch.object(kv_main, "verify_backend", new=verify), \
                patch.object(kv_main, "configure_logging"), \
                patch.object(KeyValueService, "run") as mock_run:
            kv_main.main(["-p", "3001"])

        verify.assert_awaited_once()
        mock_run.assert_called_once()


class TestService:
    """KeyValueService wiring."""

    def test_context_is_shared(self, settings, store):
        service = KeyValueService(settings, store)

        assert service.app.state.context is service.context
        assert service.context.store is store
        assert service.context.settings is settings

    def test_docs_routes_are_disabled(self, client, fake_redis):
        fake_redis.data["docs"] = b"a value named docs"

        response = client.get("/docs")

        assert response.content == b"a value named docs"

    def test_lifespan_closes_store(self, settings, store, fake_redis):
        app = create_app(settings, store)

        with TestClient(app):
            pass

        assert fake_redis.closed is True
