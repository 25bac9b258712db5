"""
Configuration Management

Pydantic-settings based configuration for the inspection router.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Environment variables are prefixed with INSPECTIONS_ and are case-insensitive.
    Example: INSPECTIONS_FORWARD_TO_ADDRESS=dustpermits@example.com
    """

    model_config = SettingsConfigDict(
        env_prefix="INSPECTIONS_",
        env_file=[".env.local", ".env"],  # Try .env.local first
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Azure / Microsoft Graph credentials
    azure_tenant_id: str = Field(
        default="",
        description="Azure AD tenant ID for the Graph app registration",
    )
    azure_client_id: str = Field(
        default="",
        description="Azure AD application (client) ID",
    )
    azure_client_secret: str = Field(
        default="",
        description="Azure AD client secret",
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Microsoft Graph API base URL",
    )
    graph_login_url: str = Field(
        default="https://login.microsoftonline.com",
        description="Azure AD authority host used for token requests",
    )

    # SharePoint Configuration
    sharepoint_hostname: str = Field(
        default="desertservices.sharepoint.com",
        description="SharePoint tenant hostname",
    )
    sharepoint_site_path: str = Field(
        default="sites/DataDrive",
        description="Server-relative path of the document site",
    )
    sharepoint_drive_names: tuple[str, ...] = Field(
        default=("Documents", "Shared Documents"),
        description="Accepted names of the document library drive",
    )
    sharepoint_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for Graph calls",
    )

    # Browser Rendering Configuration
    cloudflare_account_id: str = Field(
        default="",
        description="Cloudflare account that owns the Browser Rendering quota",
    )
    cloudflare_api_token: str = Field(
        default="",
        description="API token with Browser Rendering permission",
    )
    browser_rendering_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Cloudflare API base URL",
    )
    render_navigation_timeout_seconds: float = Field(
        default=60.0,
        description="Navigation timeout for a single render attempt",
    )

    # Render retry policy
    render_max_attempts: int = Field(
        default=5,
        ge=1,
        description="Maximum render attempts before the pipeline fails",
    )
    render_transient_base_seconds: float = Field(
        default=10.0,
        description="Backoff base for rate-limited/unavailable failures",
    )
    render_default_base_seconds: float = Field(
        default=3.0,
        description="Backoff base for unclassified failures",
    )
    render_max_backoff_seconds: float = Field(
        default=60.0,
        description="Ceiling applied to every backoff delay",
    )
    render_jitter_ratio: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Symmetric jitter applied to each backoff delay",
    )

    # Email routing
    allowed_senders: tuple[str, ...] = Field(
        default=("chi@desertservices.net", "compliancego.com"),
        description="Sender addresses or domains whose emails are processed",
    )
    forward_to_address: str = Field(
        default="dustpermits@desertservices.net",
        description="Mailbox that receives every inbound email",
    )
    notify_to_address: str | None = Field(
        default="chi@desertservices.net",
        description="Recipient of success/failure notifications (unset disables)",
    )
    ses_from_address: str = Field(
        default="inspections@desertservices.app",
        description="From address for notifications and forwards",
    )
    ses_from_name: str = Field(
        default="Inspection Router",
        description="Display name for notifications",
    )
    ses_endpoint_url: str | None = Field(
        default=None,
        description="SES endpoint URL (for local development)",
    )
    s3_endpoint_url: str | None = Field(
        default=None,
        description="S3 endpoint URL for SES-stored inbound mail",
    )

    # AWS Configuration
    aws_region: str = Field(
        default="us-west-2",
        description="AWS region",
    )

    # Application Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    background_drain_seconds: float = Field(
        default=840.0,
        description="Upper bound on waiting for background pipelines before returning",
    )

    @property
    def graph_configured(self) -> bool:
        """True when all Graph client credentials are present."""
        return bool(
            self.azure_tenant_id and self.azure_client_id and self.azure_client_secret
        )

    @property
    def ses_config(self) -> dict:
        """SES client configuration."""
        config = {"region_name": self.aws_region}
        if self.ses_endpoint_url:
            config["endpoint_url"] = self.ses_endpoint_url
        return config

    @property
    def s3_config(self) -> dict:
        """S3 client configuration."""
        config = {"region_name": self.aws_region}
        if self.s3_endpoint_url:
            config["endpoint_url"] = self.s3_endpoint_url
        return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are loaded only once.
    Call Settings.model_validate({}) in tests to override.
    """
    return Settings()
