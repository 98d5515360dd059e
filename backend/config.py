"""
Startup Dashboard - Configuration

Settings come from two layers:
- An optional TOML file (DASHBOARD_CONFIG, default ./config.toml) with
  [server] and [db] tables
- Environment variables (loaded from .env by python-dotenv), which win

Usage:
    from config import get_settings
    settings = get_settings()
    settings.jwt_secret
"""
import os
import secrets
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    NoDecode,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from constants import DEFAULT_RESET_TOKEN_EXPIRY_MINUTES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.toml"

# (table, key) in the TOML file -> environment name of the same setting
TOML_KEYS = {
    ("server", "host"): "HOST",
    ("server", "port"): "PORT",
    ("server", "production"): "PRODUCTION",
    ("server", "cors-url"): "CORS_ORIGINS",
    ("server", "jwt-secret"): "SECRET_KEY",
    ("server", "totp-issuer"): "TOTP_ISSUER",
    ("server", "token-expiry"): "TOKEN_EXPIRY_MINUTES",
    ("db", "username"): "DB_USERNAME",
    ("db", "password"): "DB_PASSWORD",
    ("db", "host"): "DB_HOST",
    ("db", "port"): "DB_PORT",
    ("db", "dbname"): "DB_NAME",
    ("db", "ssl"): "DB_SSL",
}


class DashboardTomlSource(TomlConfigSettingsSource):
    """Reads config.toml and lifts its tables onto the environment names."""

    def _read_file(self, file_path: Path) -> Dict[str, Any]:
        data = super()._read_file(file_path)
        logger.info("Loaded configuration file %s", file_path)
        flat = {}
        for (table, key), name in TOML_KEYS.items():
            section = data.get(table) or {}
            if key in section:
                flat[name] = section[key]
        return flat


class Settings(BaseSettings):
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8080, ge=1, le=65535, validation_alias="PORT")
    production: bool = Field(default=False, validation_alias="PRODUCTION")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"], validation_alias="CORS_ORIGINS"
    )
    jwt_secret: str = Field(default="", validation_alias="SECRET_KEY")
    totp_issuer: str = Field(default="Startup Dashboard", validation_alias="TOTP_ISSUER")
    token_expiry: int = Field(
        default=DEFAULT_RESET_TOKEN_EXPIRY_MINUTES, ge=1, validation_alias="TOKEN_EXPIRY_MINUTES"
    )

    db_username: Optional[str] = Field(default=None, validation_alias="DB_USERNAME")
    db_password: Optional[str] = Field(default=None, validation_alias="DB_PASSWORD")
    db_host: Optional[str] = Field(default=None, validation_alias="DB_HOST")
    db_port: int = Field(default=5432, ge=1, le=65535, validation_alias="DB_PORT")
    db_name: Optional[str] = Field(default=None, validation_alias="DB_NAME")
    db_ssl: bool = Field(default=False, validation_alias="DB_SSL")
    database_url_override: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=False,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        toml_file = os.getenv("DASHBOARD_CONFIG", DEFAULT_CONFIG_PATH)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            DashboardTomlSource(settings_cls, toml_file=toml_file),
        )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [o.strip() for o in value.split(",") if o.strip()]
        return value

    @model_validator(mode="after")
    def _ensure_secret(self) -> "Settings":
        if not self.jwt_secret:
            logger.warning("No JWT secret configured; generating a per-process secret")
            self.jwt_secret = secrets.token_hex(32)
        return self

    @property
    def database_url(self) -> str:
        """DATABASE_URL wins, then the [db] table, then a local SQLite file."""
        if self.database_url_override:
            return self.database_url_override
        if self.db_host and self.db_name:
            user = quote_plus(self.db_username or "")
            password = quote_plus(self.db_password or "")
            sslmode = "require" if self.db_ssl else "disable"
            return (
                f"postgresql://{user}:{password}@{self.db_host}:{self.db_port}"
                f"/{self.db_name}?sslmode={sslmode}"
            )
        return "sqlite:///./startup_dashboard.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the singleton settings instance."""
    load_dotenv()
    return Settings()
