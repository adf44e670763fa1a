"""
Application Settings
=====================
Read once from the environment (and an optional .env file) at process start
and passed by reference.

Nothing else in the package reads environment variables directly.
"""

import logging
from typing import List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Original bootstrap identifier; override with BOOTSTRAP_ADMIN_UID.
DEFAULT_BOOTSTRAP_ADMIN_UID = "LrWrfpn8VOhjhsKDiQpGFnyJuFa2"


class Settings(BaseSettings):
    """Runtime configuration."""
    app_name: str = "Temple Portal API"
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Identity provider: "firebase" in production, "local" for dev/tests
    auth_provider: str = "firebase"
    check_revoked_tokens: bool = False
    jwt_secret_key: str = "temple-portal-dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60

    # Firebase service account
    google_application_credentials: Optional[str] = None
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("FIREBASE_CREDENTIALS", "firebase_credentials_json")
    )
    firebase_project_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None

    bootstrap_admin_uid: str = DEFAULT_BOOTSTRAP_ADMIN_UID
    enable_assign_admin_route: bool = True
    audit_log_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",
        extra="ignore"
    )

    @field_validator("auth_provider")
    @classmethod
    def normalize_provider(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
