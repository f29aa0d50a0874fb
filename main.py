"""
Main FastAPI application (entrypoint).

Responsibilities:
- Build Settings and the service container once, keep them on app.state
- Wire API routers (notifications, air quality)
- Register centralized exception handlers and request-id logging
- Health / readiness endpoints
- Start the alert scheduler on startup and stop it on shutdown
Notes:
- Tables are created on startup for local dev; use Alembic migrations in production.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from api import routes_air_quality, routes_notifications
from config.settings import Settings
from core.bootstrap import Services, build_services
from core.db import create_tables
from core.exception_handlers import register_exception_handlers
from core.logging import configure_logging, request_logging_middleware
from core.response import ok, error

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)
    services = services or build_services(settings)

    app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION)
    app.state.settings = settings
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials="*" not in settings.cors_origins,
    )

    app.include_router(routes_notifications.router, prefix="/notifications", tags=["notifications"])
    app.include_router(routes_air_quality.router, prefix="", tags=["air-quality"])

    register_exception_handlers(app)
    app.middleware("http")(request_logging_middleware)

    @app.get("/health")
    async def health():
        """Simple health endpoint used by load balancers and orchestrators."""
        return ok({"status": "ok", "scheduler": services.scheduler.state.value})

    @app.get("/ready")
    async def ready():
        """Readiness: the subscription store must be reachable."""
        if await services.store.ping():
            return ok({"ready": True})
        return JSONResponse(status_code=503, content=error(code="db_unreachable", message="DB unavailable"))

    @app.on_event("startup")
    async def on_startup():
        if services.engine is not None:
            try:
                await create_tables(services.engine)
            except Exception as e:
                # the scheduler backs off on store errors; do not crash the API
                logger.warning("DB initialization failed on startup: %s", e)
        if settings.SCHEDULER_ENABLED:
            services.scheduler.start()

    @app.on_event("shutdown")
    async def on_shutdown():
        await services.scheduler.stop()
        if services.engine is not None:
            await services.engine.dispose()

    return app


app = create_app()

if __name__ == "__main__":
    # Run with: python main.py for local dev. For production use uvicorn/gunicorn.
    uvicorn.run("main:app", host="0.0.0.0", port=8080, reload=False)
