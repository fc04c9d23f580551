"""
padrun - GraphQL pad runtime

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from padrun import __version__
from padrun.app.api import graphql_router
from padrun.app.dependencies import get_handler, get_settings
from padrun.config.schemas import AppSettings
from padrun.handler import PadHandler
from padrun.pipeline.observability import configure_logging, get_metrics

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    The pad is already loaded when the app is created; shutdown tears
    down the process state (schema task, proxy agent).
    """
    handler: PadHandler = app.state.pad_handler
    logger.info(f"Starting padrun, pad state: {'ready' if handler.ready else 'faulted'}")

    yield

    logger.info("Shutting down padrun...")
    try:
        await handler.shutdown()
        logger.info("padrun shut down successfully")
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


def create_app(
    handler: PadHandler | None = None,
    settings: AppSettings | None = None,
) -> FastAPI:
    """
    Build the HTTP host for one pad.

    Args:
        handler: Pad handler to serve (the configured pad by default)
        settings: Application settings (from environment by default)
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="padrun",
        description="Runs a user-authored GraphQL pad behind a single endpoint",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.pad_handler = handler if handler is not None else get_handler()

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, Any]:
        """Pad state, process state and request metrics."""
        pad_handler: PadHandler = app.state.pad_handler
        status = pad_handler.status()
        return {
            "status": "healthy" if pad_handler.ready else "faulted",
            "service": settings.service_name,
            "version": __version__,
            **status,
            "metrics": get_metrics().get_stats(),
        }

    app.include_router(graphql_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "padrun.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
