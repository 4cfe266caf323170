"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from dispatch_service.app.exception_handlers import configure_exception_handlers
from dispatch_service.app.lifespan import lifespan
from dispatch_service.core.settings import get_app_settings
from dispatch_service.features.metrics import router as metrics_router
from dispatch_service.features.notifications.router import router as notifications_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    configure_exception_handlers(app)
    app.include_router(notifications_router, prefix=app_settings.api_prefix)
    app.include_router(metrics_router)

    @app.get("/health", tags=["health"], include_in_schema=False)
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": app_settings.service_name}

    return app


# Application instance for uvicorn
app = create_app()
