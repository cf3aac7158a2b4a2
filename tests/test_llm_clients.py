# =============================================================================
# tests/test_llm_clients.py - Model Provider Client Tests
# =============================================================================
# This module contains tests for:
# - Building the Perplexity and OpenAI SDK clients from settings
# - One client per process: built at startup, closed at shutdown
# =============================================================================

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from app.config import Settings
from app.main import app
from lib.llm_clients import build_openai_client, build_perplexity_client, close_client


class TestBuildClients:
    def test_perplexity_without_key(self):
        assert build_perplexity_client(Settings(PERPLEXITY_API_KEY=None)) is None

    def test_perplexity_client(self):
        client = build_perplexity_client(Settings(PERPLEXITY_API_KEY="pplx-test", FEASIBILITY_MAX_RETRIES=5))

        assert str(client.base_url).startswith("https://api.perplexity.ai")
        assert client.max_retries == 5
        client.close()

    def test_openai_without_key(self):
        assert build_openai_client(Settings(OPENAI_API_KEY=None)) is None

    def test_openai_client(self):
        client = build_openai_client(Settings(OPENAI_API_KEY="sk-test", OPENAI_TIMEOUT_SECONDS=90))

        assert client.api_key == "sk-test"
        assert client.timeout == 90
        client.close()

    def test_close_client(self):
        client = MagicMock()

        close_client(client)
        close_client(None)

        client.close.assert_called_once_with()


class TestLifespan:
    def test_clients_built_once_and_closed(self):
        perplexity, openai_client = MagicMock(), MagicMock()

        with (
            patch("app.main.SupabaseClient.from_settings", return_value=MagicMock()),
            patch("app.main.build_perplexity_client", return_value=perplexity) as build_perplexity,
            patch("app.main.build_openai_client", return_value=openai_client) as build_openai,
        ):
            with TestClient(app) as client:
                client.get("/api/v1/health")
                client.get("/api/v1/health")

                assert app.state.feasibility_llm is perplexity
                assert app.state.openai_client is openai_client

        build_perplexity.assert_called_once()
        build_openai.assert_called_once()
        perplexity.close.assert_called_once_with()
        openai_client.close.assert_called_once_with()
