"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path
from urllib.parse import quote

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "report-relay"
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    store_backend: str = "postgres"
    database_url: str = ""
    db_host: str = ""
    db_port: str = ""
    db_user: str = ""
    db_password: str = ""
    db_name: str = ""
    db_sslmode: str = ""
    db_connect_timeout_s: int = Field(default=5, ge=1)
    agent_base_url: str = ""
    agent_timeout_s: float = Field(default=10.0, ge=0.1)
    public_base_url: str = "http://localhost:8080"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    default_period: str = "24h"
    default_topic: str = "technology"

    model_config = SettingsConfigDict(
        env_prefix="REPORT_RELAY_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        """Full DSN, or one composed from the DB_* parts."""
        if self.database_url:
            return self.database_url
        host = self.db_host or os.getenv("DB_HOST", "localhost")
        port = self.db_port or os.getenv("DB_PORT", "5432")
        user = self.db_user or os.getenv("DB_USER", "postgres")
        password = self.db_password or os.getenv("DB_PASSWORD", "postgres")
        name = self.db_name or os.getenv("DB_NAME", "ai_news_app")
        sslmode = self.db_sslmode or os.getenv("DB_SSL_MODE", "disable")
        return (
            f"postgresql://{quote(user, safe='')}:{quote(password, safe='')}"
            f"@{host}:{port}/{name}?sslmode={sslmode}"
        )

    def resolved_agent_base_url(self) -> str:
        base_url = (
            self.agent_base_url
            or os.getenv("AGENT_SERVICE_URL")
            or os.getenv("MASTRA_SERVICE_URL")
            or "http://localhost:3000"
        )
        return base_url.rstrip("/")

    def callback_url_for(self, task_id: str) -> str:
        prefix = self.api_prefix.rstrip("/")
        return f"{self.public_base_url.rstrip('/')}{prefix}/internal/report-callback/{task_id}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
