# perfreport/config.py
import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Service configuration loaded from environment variables and .env file.
    Passed explicitly into the analysis runner; nothing below reads the
    process environment on its own.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    LOG_LEVEL: str = Field(default="INFO")

    # ── TEXT SERVICE (Gemini) ────────────────────────────────────────────────
    GEMINI_API_KEY: str = Field(default="")
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash")
    TEXT_TEMPERATURE: float = 0.7
    TEXT_TOP_P: float = 1.0
    TEXT_TIMEOUT: float = Field(default=60.0, description="Per-request timeout (seconds)")

    # ── AUDIT ENGINE ─────────────────────────────────────────────────────────
    AUDIT_ENGINE: str = Field(default="psi", description="'psi' (PageSpeed Insights) or 'lighthouse' (local CLI)")
    PSI_API_KEY: str = Field(default="")
    PSI_STRATEGY: str = "mobile"
    LIGHTHOUSE_BIN: str = "lighthouse"
    MEASUREMENT_PASSES: int = Field(default=1, ge=1)

    # ── MONEY MODEL ──────────────────────────────────────────────────────────
    DEVELOPER_RATE: float = Field(default=50.0, description="Hourly developer rate")
    INCOME_COST_COEFFICIENT: float = Field(default=10.0)

    # ── REPORT STORAGE ───────────────────────────────────────────────────────
    REPORT_STORAGE: str = Field(default="file", description="'file' or 'database'")
    REPORT_DIR: str = Field(default="storage/reports")
    DATABASE_URL: str = Field(default="sqlite:///./perfreport.db")

    # ── PIPELINE TIMING ──────────────────────────────────────────────────────
    AUDIT_TIMEOUT: float = Field(default=900.0, description="Deadline for one analysis (seconds)")
    INTER_CALL_DELAY: float = 0.1
    RATE_LIMIT_DELAY: float = 1.0
    RATE_LIMIT_MAX_RETRIES: Optional[int] = None

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_postgres_url(cls, v: str) -> str:
        """
        Converts old-style postgres URLs from 'postgres://' to 'postgresql://'.
        """
        v = (v or "").strip().strip('"').strip("'")
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("AUDIT_ENGINE", "REPORT_STORAGE", mode="before")
    @classmethod
    def lower_choice(cls, v: str) -> str:
        return str(v).strip().lower()

    def log_summary(self) -> None:
        # Never print the secrets themselves.
        logger.info("GEMINI_API_KEY value defined: %s", bool(self.GEMINI_API_KEY))
        logger.info("PSI_API_KEY value defined: %s", bool(self.PSI_API_KEY))
        logger.info(
            "Audit engine=%s, storage=%s, passes=%d",
            self.AUDIT_ENGINE, self.REPORT_STORAGE, self.MEASUREMENT_PASSES,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
