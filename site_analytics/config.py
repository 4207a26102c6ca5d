from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError


def project_root() -> Path:
    return Path(__file__).resolve().parents[1]


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    database_url: str | None = Field(default=None, alias="TURSO_DATABASE_URL")
    database_auth_token: SecretStr | None = Field(default=None, alias="TURSO_AUTH_TOKEN")
    analytics_salt: SecretStr = Field(
        default=SecretStr("default-salt"), alias="ANALYTICS_SALT"
    )
    analytics_debug: bool = Field(default=False, alias="ANALYTICS_DEBUG")

    geo_lookup_url: str = Field(
        default="http://ip-api.com/json/{ip}?fields=countryCode", alias="GEO_LOOKUP_URL"
    )
    geo_timeout_seconds: float = Field(default=5.0, gt=0, alias="GEO_TIMEOUT_SECONDS")

    cors_allow_origins: str = Field(default="*", alias="ANALYTICS_CORS_ALLOW_ORIGINS")

    def is_local_engine(self) -> bool:
        return bool(self.database_url) and self.database_url.startswith("sqlite")

    def store_configured(self) -> bool:
        if not self.database_url:
            return False
        if self.is_local_engine():
            return True
        token = self.database_auth_token
        return token is not None and bool(token.get_secret_value())

    def cors_origins(self) -> list[str]:
        parts = [p.strip() for p in self.cors_allow_origins.split(",")]
        return [p for p in parts if p] or ["*"]


def load_settings(env_path: Path | None = None) -> Settings:
    env_file = env_path or (project_root() / ".env")
    if env_file.exists():
        load_dotenv(env_file, override=False)
    env = {k: v for k, v in os.environ.items() if v != ""}
    try:
        return Settings.model_validate(env)
    except ValidationError as exc:
        raise RuntimeError(
            "Invalid environment variables. Copy `.env.example` to `.env` and edit it."
        ) from exc
