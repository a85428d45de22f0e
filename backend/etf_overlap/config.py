"""Configuration for the ETF Overlap Matrix service."""

import os
from pathlib import Path
from typing import Optional


# Environment variable names
ENV_DATA_DIR = "ETF_OVERLAP_DATA_DIR"
ENV_CACHE_MAX_AGE_HOURS = "ETF_OVERLAP_CACHE_MAX_AGE_HOURS"
ENV_LOG_LEVEL = "ETF_OVERLAP_LOG_LEVEL"
ENV_CORS_ORIGINS = "ETF_OVERLAP_CORS_ORIGINS"

# Defaults
DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_CACHE_MAX_AGE_HOURS = 24.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


def get_data_dir() -> Path:
    """Directory holding index.json and the etfs/ holdings files."""
    value = os.environ.get(ENV_DATA_DIR, "")
    return Path(value) if value else DEFAULT_DATA_DIR


def get_cache_max_age_hours() -> Optional[float]:
    """Maximum age of cached holdings.

    A value of 0 or below disables the age check.
    """
    value = os.environ.get(ENV_CACHE_MAX_AGE_HOURS, "")
    hours = float(value) if value else DEFAULT_CACHE_MAX_AGE_HOURS
    return hours if hours > 0 else None


def get_log_level() -> str:
    return os.environ.get(ENV_LOG_LEVEL, "") or DEFAULT_LOG_LEVEL


def get_cors_origins() -> list[str]:
    value = os.environ.get(ENV_CORS_ORIGINS, "")
    if not value:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in value.split(",") if origin.strip()]
