from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings.

    Notes:
    - Defaults are local and deterministic (SQLite file, packaged permission table).
    - Every field can be overridden with a ``TASKHUB_``-prefixed environment variable.
    """

    model_config = SettingsConfigDict(env_prefix="TASKHUB_", extra="ignore")

    db_url: str | None = None
    permission_matrix_path: str | None = None
    log_level: str = "INFO"

    jwt_secret: str = "change-me-in-production-0123456789abcdef"
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "taskhub"
    clock_skew_seconds: int = 60
    access_token_ttl_seconds: int = 900

    presence_ttl_seconds: int = 300
    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "taskhub.db"
        return f"sqlite:///{db_path}"

    def resolved_permission_matrix_path(self) -> Path:
        if self.permission_matrix_path:
            return Path(self.permission_matrix_path)

        return Path(__file__).resolve().parent / "config" / "permission_matrix.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
