"""
Core infrastructure package for the analytics engine.

Provides:
- Configuration management via pydantic-settings
- Logging setup for host applications
- Structural protocols for the storage collaborators

Usage Examples:
    from crm_analytics.core import get_settings, configure_logging

    configure_logging()
    settings = get_settings()
    print(settings.max_chart_points)
"""

from crm_analytics.core.config import Settings, get_settings
from crm_analytics.core.logging_config import configure_logging
from crm_analytics.core.repositories import ClientRecordSource, CustomFieldSource

__all__ = [
    'Settings',
    'get_settings',
    'configure_logging',
    'ClientRecordSource',
    'CustomFieldSource',
]
