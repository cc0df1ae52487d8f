from __future__ import annotations

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    APP_NAME: str = "Stock Pulse Dashboard"
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    # DB
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "stockapp"
    DB_PASSWORD: str = "stock_pw_1234"
    DB_NAME: str = "stock_dashboard"
    DB_ECHO: bool = False
    DB_URL: str | None = None  # full async URL, e.g. sqlite+aiosqlite:///./local.db

    # auth gateway headers
    AUTH_USER_HEADER: str = "X-User-Id"
    AUTH_EMAIL_HEADER: str = "X-User-Email"

    # recommendation engine
    SCORER: str = "heuristic"  # heuristic | llm
    RECO_BATCH_SIZE: int = 10
    RECO_SELECTION: str = "market_cap"  # first | random | market_cap
    RECO_TTL_DAYS: int = 7

    # text-completion endpoint
    LLM_API_KEY: str | None = None
    LLM_MODEL: str = "gemini-1.5-flash"
    LLM_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    LLM_TIMEOUT: float = 30.0
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_OUTPUT_TOKENS: int = 8192

    CSV_MAX_BYTES: int = 5_000_000

    @property
    def DATABASE_URL(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        # mysql+asyncmy DSN
        return (
            f"mysql+asyncmy://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )

    @property
    def BASE_DIR(self) -> Path:
        return Path(__file__).resolve().parents[2]

    @property
    def TEMPLATE_DIR(self) -> Path:
        return self.BASE_DIR / "app" / "templates"

    @property
    def STATIC_DIR(self) -> Path:
        return self.BASE_DIR / "app" / "static"


settings = Settings()
