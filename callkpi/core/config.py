"""
Settings and environment management for the CallKPI service.

Configuration is loaded with pydantic-settings from environment variables and
an optional .env file. The KPI thresholds here are the defaults of the
threshold policy; a request may override any of them individually.

Environment Variables:
- APP_NAME: Service name shown in logs and the OpenAPI title
- LOG_LEVEL: Root log level (default: INFO)
- CORS_ORIGINS: Allowed browser origins
- MIN_SAMPLE_CALLS, CSAT_TARGET, AHT_TARGET_SEC, AHT_TOO_LOW_SEC,
  AHT_TOO_HIGH_SEC, LOW_CSAT_AGENT_THRESHOLD: policy defaults
- DEFAULT_WINDOW: Window used when a request does not name one
- MAX_UPLOAD_BYTES: Upper bound for CSV uploads

Usage:
    from callkpi.core.config import get_settings

    settings = get_settings()
    target = settings.csat_target
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from callkpi.models.enums import RangeKey


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Service name.
        log_level: Root log level name.
        cors_origins: Origins allowed by the CORS middleware.
        min_sample_calls: Eligibility floor before a rule or task fires.
        csat_target: Target CSAT percentage.
        aht_target_sec: Target average handle time in seconds.
        aht_too_low_sec: AHT below this is treated as rushed.
        aht_too_high_sec: AHT above this is treated as slow.
        low_csat_agent_threshold: Agent CSAT under this gets a coaching task.
        default_window: Reporting window when none is requested.
        max_upload_bytes: Largest accepted CSV upload.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Service
    # =========================================================================

    app_name: str = 'CallKPI API'
    log_level: str = 'INFO'
    cors_origins: List[str] = ['http://localhost:3000']

    # =========================================================================
    # Policy Defaults
    # =========================================================================

    # Rules and tasks gated on sample size stay silent below this many rows/calls
    min_sample_calls: int = 30
    csat_target: float = 85.0
    aht_target_sec: float = 300.0
    aht_too_low_sec: float = 240.0
    aht_too_high_sec: float = 330.0
    low_csat_agent_threshold: float = 80.0

    # =========================================================================
    # Requests
    # =========================================================================

    default_window: RangeKey = RangeKey.TODAY

    # 5 MiB
    max_upload_bytes: int = 5 * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
