"""
Configuration Management for Family Finance

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here so the external dependencies
(the hosted backend) and every tunable ledger/session constant are
visible in one place and validated at startup.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Hosted backend (auth, row store, realtime) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Project URL, e.g. https://xyz.supabase.co"
    )
    anon_key: str = Field(
        ...,
        description="Public anon key used by the client"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Supabase URL must start with http:// or https://")
        return v.rstrip("/")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Accounts
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency code for newly created accounts"
    )
    default_account_name: str = Field(
        default="Main Savings",
        description="Name of the personal wallet created at signup"
    )

    # Data loading
    transaction_fetch_limit: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="How many of the newest transactions a full load fetches"
    )
    session_init_timeout_seconds: float = Field(
        default=4.0,
        gt=0,
        description="Hard bound on identity resolution at app start"
    )

    # Ledger
    compensate_failed_writes: bool = Field(
        default=True,
        description=(
            "Undo completed writes when a later step of a multi-write "
            "ledger operation fails"
        )
    )

    # Roles
    admin_role_policy: Literal["first_user", "all_users", "none"] = Field(
        default="first_user",
        description=(
            "Who receives the admin role at signup: only the first profile, "
            "every new profile, or nobody"
        )
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built lazily so the in-memory backend works
    # without Supabase credentials.

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the failing sections.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.supabase
        results["supabase"] = True
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
