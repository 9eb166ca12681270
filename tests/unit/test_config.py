"""Unit tests for settings and action registration."""

import pytest
from pydantic import ValidationError
from structlog.testing import capture_logs

from document_actions.actions.registry import build_actions
from document_actions.config import GoogleDocsConfig, HubConfig, Settings, SharePointWordConfig
from document_actions.oauth.seal import FernetStateSeal


class TestSettings:
    """Test cases for environment-driven settings."""

    def test_defaults(self):
        config = GoogleDocsConfig()

        assert config.configured is False
        policy = config.retry_policy()
        assert policy.enabled is False
        assert policy.max_retries == 5
        assert policy.base_delay == 3.0
        assert config.write_batch == 100

    def test_legacy_environment_names(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_DOC_CLIENT_ID", "env-id")
        monkeypatch.setenv("GOOGLE_DOC_CLIENT_SECRET", "env-secret")
        monkeypatch.setenv("GOOGLE_DOCS_RETRY", "true")
        monkeypatch.setenv("GOOGLE_DOCS_MAX_RETRY_COUNT", "2")
        monkeypatch.setenv("CIPHER_MASTER", "master")

        settings = Settings()

        assert settings.google_docs.configured is True
        assert settings.google_docs.client_id == "env-id"
        assert settings.google_docs.retry_policy().max_attempts == 3
        assert settings.hub.cipher_master == "master"

    def test_sharepoint_tenant(self, monkeypatch):
        monkeypatch.setenv("SHAREPOINT_TENANT_ID", "contoso")
        assert SharePointWordConfig().tenant_id == "contoso"

    def test_write_batch_below_two_is_invalid(self):
        with pytest.raises(ValidationError):
            GoogleDocsConfig(write_batch=1)


class TestBuildActions:
    """Test cases for build_actions."""

    def test_registers_configured_actions_only(self):
        settings = Settings(
            hub=HubConfig(base_url="https://hub.example.com"),
            google_docs=GoogleDocsConfig(client_id="id", client_secret="secret"),
        )

        with capture_logs() as logs:
            actions = build_actions(settings, FernetStateSeal("secret"))

        assert list(actions) == ["google_docs"]
        warnings = [entry["event"] for entry in logs if entry["log_level"] == "warning"]
        assert warnings == [
            "[SHAREPOINT_WORD] Action not registered because required environment variables are missing."
        ]

    def test_redirect_uri_uses_hub_base_url(self):
        settings = Settings(
            hub=HubConfig(base_url="https://hub.example.com/"),
            sharepoint_word=SharePointWordConfig(client_id="id", client_secret="secret"),
        )

        actions = build_actions(settings, FernetStateSeal("secret"))

        handshake = actions["sharepoint_word"].handshake
        assert handshake.redirect_uri == "https://hub.example.com/actions/sharepoint_word/oauth_redirect"
