"""
Centralized configuration management with validation.

All environment variables are loaded and validated here.
This ensures consistent configuration across the application.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation."""

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )

    # Database Configuration
    # DATABASE_URL wins when set (e.g. "sqlite://" for local runs and tests).
    DATABASE_URL: Optional[str] = Field(default=None)
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: str = Field(default="postgres")
    POSTGRES_DB: str = Field(default="cognitive_engine")
    POSTGRES_HOST: str = Field(default="postgres")
    POSTGRES_PORT: int = Field(default=5432)

    # Database Pool Configuration
    DB_POOL_SIZE: int = Field(default=20)
    DB_MAX_OVERFLOW: int = Field(default=10)
    DB_POOL_TIMEOUT: int = Field(default=30)
    DB_POOL_RECYCLE: int = Field(default=3600)  # 1 hour

    # API Configuration
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    API_RELOAD: bool = Field(default=False)

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="json")  # json or text

    # Environment
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # CORS - comma-separated list of allowed origins for production
    CORS_ORIGINS: Optional[str] = Field(default=None)

    # --- Skill state ---
    # Plan used when a profile has none recorded ("light" | "expert" | "superhuman").
    DEFAULT_TRAINING_PLAN: str = Field(default="expert")
    # Δskill = granted_xp × factor
    XP_TO_SKILL_FACTOR: float = Field(default=0.5, gt=0)
    # Floor for score-scaled XP on a completed session.
    MIN_EVENT_XP: int = Field(default=1, ge=0)

    # --- Event intake ---
    # Client clocks drift; anything further in the future than this is rejected.
    EVENT_CLOCK_SKEW_S: int = Field(default=300, ge=0)
    # Late deliveries older than this are rejected rather than landing in a stale cap window.
    EVENT_MAX_AGE_HOURS: int = Field(default=72, ge=1)

    # --- Recovery ---
    RECOVERY_WINDOW_DAYS: int = Field(default=7, ge=1)

    # --- Reasoning quality ---
    RQ_INACTIVITY_DAYS: int = Field(default=14, ge=1)
    RQ_DECAY_PER_WEEK: float = Field(default=2.0, ge=0)
    RQ_CONSISTENCY_WINDOW: int = Field(default=10, ge=1)
    RQ_MIN_CONSISTENCY_SESSIONS: int = Field(default=5, ge=1)
    PRIMING_WINDOW_DAYS: int = Field(default=7, ge=1)

    # --- Baseline / cognitive age ---
    DEFAULT_CHRONOLOGICAL_AGE: int = Field(default=35, ge=1)
    # When False, composite reads for uncalibrated users raise NotCalibrated
    # instead of using the demographic baseline.
    ALLOW_FALLBACK_BASELINE: bool = Field(default=True)
    COGNITIVE_AGE_MAX_SHIFT_YEARS: float = Field(default=15.0, ge=0)

    # --- Readiness ---
    # Wearable snapshots older than this are ignored (readiness falls back to no-physio).
    PHYSIO_MAX_AGE_HOURS: int = Field(default=24, ge=1)


# Global settings instance
settings = Settings()
