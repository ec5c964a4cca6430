"""
Runtime configuration.

Values come from the environment (prefix ``SABERPRO_``) or a ``.env`` file.
"""

import secrets
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_path: Path = Path("data/saberpro.db")

    # Generated once per process when unset; set it in production so tokens
    # survive restarts.
    jwt_secret: str = Field(default_factory=lambda: secrets.token_urlsafe(64))
    jwt_algorithm: str = "HS256"
    session_max_age_seconds: int = 30 * 24 * 60 * 60
    session_cookie_name: str = "saberpro.session-token"

    # Stored hashes carry no parameters, so changing these invalidates them.
    password_iterations: int = Field(default=1000, ge=1000)
    password_key_length: int = Field(default=64, ge=64)
    password_digest: str = "sha512"
    password_salt_bytes: int = Field(default=16, ge=16)

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8080

    model_config = SettingsConfigDict(
        env_prefix="SABERPRO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
