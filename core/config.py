from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Tour Access Control"
    ENV: str = "development"
    LOG_LEVEL: str = Field("INFO", env="LOG_LEVEL")

    # -------------------------------------------------
    # Supabase (role, assignment and audit tables)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # Context caches
    # -------------------------------------------------
    PERMISSION_CACHE_TTL_SECONDS: int = Field(
        300,
        env="PERMISSION_CACHE_TTL_SECONDS",
        description="Lifetime of a resolved (user, tour) permission context (default: 5 minutes)",
    )
    ISOLATION_CACHE_TTL_SECONDS: int = Field(
        600,
        env="ISOLATION_CACHE_TTL_SECONDS",
        description="Lifetime of a per-user data isolation context (default: 10 minutes)",
    )
    CACHE_SWEEP_INTERVAL_SECONDS: int = Field(
        60,
        env="CACHE_SWEEP_INTERVAL_SECONDS",
        description="Minimum gap between full expiry sweeps, run on write (default: 60)",
    )

    # -------------------------------------------------
    # Auditing
    # -------------------------------------------------
    AUDIT_ENABLED: bool = Field(True, env="AUDIT_ENABLED")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()
