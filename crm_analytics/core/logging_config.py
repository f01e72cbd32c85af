"""
Logging setup for applications embedding the analytics engine.

Library modules only create module loggers; the host application (or a test
harness) calls configure_logging() once at startup.
"""

import logging
from typing import Optional

from crm_analytics.core.config import Settings, get_settings


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure root logging from settings.

    Args:
        settings: Settings to read level and format from. Defaults to the
            cached singleton.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )
