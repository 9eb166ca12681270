"""Configuration management for the document upload actions.

Uses Pydantic settings for validation and environment variable loading.
Settings are built once at process start (see ``__main__``) and passed into
each component; nothing here is read again at call time.
"""

from typing import Optional, Literal
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .utils.retry import RetryPolicy


class HubConfig(BaseSettings):
    """Action hub (HTTP listener) configuration."""

    model_config = SettingsConfigDict(env_prefix="ACTION_HUB_", populate_by_name=True)

    base_url: str = Field(
        default="http://localhost:8080",
        description="Public base URL used to build OAuth start and redirect URLs",
    )
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind to",
    )
    port: int = Field(
        default=8080,
        description="Port to listen on",
    )
    label: str = Field(
        default="Document Actions",
        description="Hub label shown in the integration list",
    )
    cipher_master: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CIPHER_MASTER", "ACTION_HUB_CIPHER_MASTER"),
        description="Secret used to seal OAuth handshake state",
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for outbound vendor and callback requests",
    )


class _DestinationConfig(BaseSettings):
    """Retry and batching knobs shared by every destination."""

    retry: bool = Field(
        default=False,
        description="Retry enable flag for transient remote failures",
    )
    base_delay: float = Field(
        default=3.0,
        gt=0,
        description="Backoff base; delay before retry n is base ** n seconds",
    )
    max_retry_count: int = Field(
        default=5,
        ge=0,
        description="Retry ceiling (total attempts = ceiling + 1)",
    )
    write_batch: int = Field(
        default=100,
        ge=2,
        description="Maximum requests per batch update (an insert+style pair needs 2)",
    )

    def retry_policy(self) -> RetryPolicy:
        """Build the immutable retry policy for this destination."""
        return RetryPolicy(
            enabled=self.retry,
            max_retries=self.max_retry_count,
            base_delay=self.base_delay,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class GoogleDocsConfig(_DestinationConfig):
    """Google Docs destination configuration."""

    model_config = SettingsConfigDict(env_prefix="GOOGLE_DOCS_", populate_by_name=True)

    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_DOC_CLIENT_ID", "GOOGLE_DOCS_CLIENT_ID"),
        description="OAuth 2.0 client ID from Google Cloud Console",
    )
    client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_DOC_CLIENT_SECRET", "GOOGLE_DOCS_CLIENT_SECRET"),
        description="OAuth 2.0 client secret",
    )
    drive_api_base_url: str = Field(
        default="https://www.googleapis.com/drive/v3",
        description="Google Drive API v3 base URL",
    )
    docs_api_base_url: str = Field(
        default="https://docs.googleapis.com/v1",
        description="Google Docs API v1 base URL",
    )


class SharePointWordConfig(_DestinationConfig):
    """SharePoint Word destination configuration."""

    model_config = SettingsConfigDict(env_prefix="SHAREPOINT_WORD_", populate_by_name=True)

    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SHAREPOINT_CLIENT_ID", "SHAREPOINT_WORD_CLIENT_ID"),
        description="Azure AD application (client) ID",
    )
    client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SHAREPOINT_CLIENT_SECRET", "SHAREPOINT_WORD_CLIENT_SECRET"),
        description="Azure AD application secret",
    )
    tenant_id: str = Field(
        default="common",
        validation_alias=AliasChoices("SHAREPOINT_TENANT_ID", "SHAREPOINT_WORD_TENANT_ID"),
        description="Identity platform tenant",
    )
    graph_api_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph base URL",
    )


class LoggingConfig(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    format: Literal["json", "text"] = Field(
        default="json",
        description="Log format",
    )


class Settings(BaseSettings):
    """Root settings container."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_name: str = Field(
        default="document-actions",
        description="Service name for observability",
    )
    service_version: str = Field(
        default="1.0.0",
        description="Service version",
    )

    hub: HubConfig = Field(default_factory=HubConfig)
    google_docs: GoogleDocsConfig = Field(default_factory=GoogleDocsConfig)
    sharepoint_word: SharePointWordConfig = Field(default_factory=SharePointWordConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_settings() -> Settings:
    """Read settings from the environment once, at process start."""
    return Settings()
