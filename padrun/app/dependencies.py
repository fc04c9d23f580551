"""
Dependency wiring for the padrun HTTP host.

Provides the settings and the process-wide PadHandler. The handler is
built once, which loads the pad before any route can be served.
"""
from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Optional

from pydantic import SecretStr

from padrun.config.schemas import AppSettings
from padrun.handler import PadHandler
from padrun.starter import STARTER_CODE

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern.
    """
    return AppSettings(
        # Service
        service_name=os.getenv("PADRUN_SERVICE_NAME", "padrun"),
        environment=os.getenv("PADRUN_ENVIRONMENT", "development"),
        debug=os.getenv("PADRUN_DEBUG", "false").lower() == "true",
        log_level=os.getenv("PADRUN_LOG_LEVEL", "INFO"),
        # Pad source
        pad_path=os.getenv("PADRUN_PAD_PATH") or None,
        pad_module=os.getenv("PADRUN_PAD_MODULE") or None,
        # Invocation defaults
        default_user_context=SecretStr(os.getenv("PADRUN_DEFAULT_USER_CONTEXT", "[]")),
        default_url=os.getenv("PADRUN_DEFAULT_URL") or None,
        # Engine agent
        engine_report_url=os.getenv(
            "PADRUN_ENGINE_REPORT_URL", "https://engine-report.apollodata.com"
        ),
        engine_report_interval=float(os.getenv("PADRUN_ENGINE_REPORT_INTERVAL", "10")),
        engine_timeout=float(os.getenv("PADRUN_ENGINE_TIMEOUT", "5")),
        engine_debug_reports=os.getenv("PADRUN_ENGINE_DEBUG_REPORTS", "true").lower() == "true",
    )


# Global instance (initialized on first access)
_handler: Optional[PadHandler] = None


def build_handler(settings: AppSettings) -> PadHandler:
    """Load the configured pad and build its handler."""
    options = {"proxy_options": settings.proxy_options()}

    if settings.pad_path:
        logger.info(f"[pad] Loading pad from file {settings.pad_path}")
        return PadHandler.from_file(settings.pad_path, **options)
    if settings.pad_module:
        logger.info(f"[pad] Loading pad module {settings.pad_module}")
        return PadHandler.from_module(settings.pad_module, **options)

    logger.info("[pad] No pad configured, serving the starter pad")
    return PadHandler.from_source(STARTER_CODE, **options)


def get_handler() -> PadHandler:
    """
    Get the process pad handler.

    Loads the pad on first call.
    """
    global _handler
    if _handler is None:
        _handler = build_handler(get_settings())
    return _handler
