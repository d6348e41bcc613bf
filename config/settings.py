"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (used for Storage uploads)"
    )

    # ===================
    # REPORT WINDOW
    # ===================
    report_timezone: str = Field(
        default="America/Sao_Paulo",
        description="IANA timezone defining the local calendar for report windows"
    )

    # ===================
    # REPORT STORAGE
    # ===================
    report_storage_bucket: str = Field(
        default="reports",
        description="Supabase Storage bucket for persisted reports"
    )
    report_storage_prefix: str = Field(
        default="relatorios",
        description="Path prefix inside the storage bucket"
    )

    # ===================
    # REPORT LAYOUT
    # ===================
    report_title: str = Field(
        default="Controle de Produção - Mistura/Ensaque",
        description="Title printed in the document header"
    )
    report_document_code: str = Field(
        default="BPF 18",
        description="Controlled document number printed in the header"
    )
    report_document_date: str = Field(
        default="03/02/2025",
        description="Revision date of the controlled document, printed in the header"
    )
    report_logo_path: Optional[str] = Field(
        default="public/imagens/selo.png",
        description="PNG printed at the left of the PDF header; skipped when the file is missing"
    )
    report_output_unit: str = Field(
        default="btd",
        description="Unit label printed beside the produced quantity"
    )
    report_signatories: list[str] = Field(
        default_factory=lambda: ["", "", ""],
        min_length=3,
        max_length=3,
        description="Responsible names for execution, monitoring and verification"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def storage_configured(self) -> bool:
        """Check if a service key is available for Storage uploads."""
        return bool(self.supabase_service_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
