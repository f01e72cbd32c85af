"""
Settings and environment management module for the CRM analytics engine.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for interactive use (thousands of records, ~1000 chart points)
- Singleton pattern via @lru_cache for efficient access

Environment Variables (all optional, prefix CRM_ANALYTICS_):
- CRM_ANALYTICS_MAX_RECORDS: Record cap applied after filtering (default: 5000, 0 = unlimited)
- CRM_ANALYTICS_MAX_CHART_POINTS: Sampler target for individual series (default: 1000)
- CRM_ANALYTICS_ENABLE_SMART_SAMPLING: Toggle LTTB downsampling (default: true)
- CRM_ANALYTICS_LOG_LEVEL: Level used by configure_logging (default: INFO)

Usage:
    from crm_analytics.core.config import get_settings

    settings = get_settings()
    cap = settings.max_records
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    Attributes:
        max_records: Maximum number of filtered records processed per query.
            Larger sets are truncated to a stable prefix. 0 disables the cap.
        max_chart_points: Target point count for individual series; longer
            series are downsampled with LTTB.
        enable_smart_sampling: When False, series are returned unsampled.
        log_level: Root logging level applied by configure_logging().
        log_format: Format string applied by configure_logging().
    """

    model_config = SettingsConfigDict(
        env_prefix='CRM_ANALYTICS_',
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Query Engine Limits
    # =========================================================================

    # Stable-prefix truncation after filtering; bounds O(records x fields)
    max_records: int = Field(default=5000, ge=0)

    # LTTB needs the two endpoints plus at least zero interior buckets
    max_chart_points: int = Field(default=1000, ge=2)

    enable_smart_sampling: bool = True

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = 'INFO'
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@lru_cache()
def get_settings() -> Settings:
    """
    Get the engine settings singleton.

    Returns:
        Settings: The cached settings instance.

    Raises:
        pydantic.ValidationError: If an environment variable holds an invalid
            value (e.g. CRM_ANALYTICS_MAX_CHART_POINTS=1).

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
