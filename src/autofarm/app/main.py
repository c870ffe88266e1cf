from __future__ import annotations

import structlog
from fastapi import FastAPI

from autofarm.api import router as api_router
from autofarm.api.routes.farms import close_registry
from autofarm.core.config.settings import settings
from autofarm.core.logging.setup import configure_logging

log = structlog.get_logger()


def create_app() -> FastAPI:
    """
    Application factory.

    Engines live inside the app's event loop, so the farm routes that touch
    them are async handlers.
    """
    configure_logging(level=settings.log_level, fmt=settings.log_format)

    app = FastAPI(
        title="Autofarm",
        version="0.1.0",
    )

    @app.on_event("startup")
    async def on_startup() -> None:
        log.info(
            "app.startup",
            environment=settings.env,
            game_api_url=settings.game_api_url,
        )

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await close_registry()
        log.info("app.shutdown")

    app.include_router(api_router, prefix="/api")

    return app


# ASGI entrypoint
app = create_app()
