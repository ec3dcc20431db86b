# vending_service/config.py

"""
Runtime configuration for the Vending Service.
All settings come from environment variables, with defaults suitable for
local development. Override them per deployment.
"""
import os
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field

# Read DB settings from environment variables, with defaults for local/dev
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "postgres")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def database_url() -> str:
    """
    Returns the SQLAlchemy database URL.
    `DATABASE_URL` wins when set; otherwise the URL is composed from the
    POSTGRES_* variables.
    """
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    # Compose the SQLAlchemy database URL, split for linting
    return (
        "postgresql://"
        f"{POSTGRES_USER}:{POSTGRES_PASSWORD}@"
        f"{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}"
    )


class Settings(BaseModel):
    machine_id: str = Field("machine-001", min_length=1, description="Identifier stamped on every purchase record.")
    lock_key: str = Field("GlobalMachineLock", min_length=1, description="Rate limiter key shared by all purchases.")
    cooldown_seconds: float = Field(5.0, ge=0, description="Minimum gap between two successful purchases.")
    processing_delay_seconds: float = Field(5.0, ge=0, description="Simulated dispensing time per accepted purchase.")
    seed_products: bool = Field(True, description="Insert the default catalogue when the products table is empty.")
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field("INFO")


@lru_cache()
def get_settings() -> Settings:
    """
    Builds the settings once per process from the environment.
    Exposed as a FastAPI dependency so tests can override it.
    """
    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return Settings(
        machine_id=os.getenv("VENDING_MACHINE_ID", "machine-001"),
        lock_key=os.getenv("VENDING_LOCK_KEY", "GlobalMachineLock"),
        cooldown_seconds=float(os.getenv("VENDING_COOLDOWN_SECONDS", "5")),
        processing_delay_seconds=float(
            os.getenv("VENDING_PROCESSING_DELAY_SECONDS", "5")
        ),
        seed_products=_env_bool("VENDING_SEED_PRODUCTS", True),
        cors_allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
