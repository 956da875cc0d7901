"""
FastAPI application entry point for the Safe Signal Alert Service.

Run with:
    uvicorn safe_signal.app.main:app --reload --port 3001

Or from the project root:
    python -m uvicorn safe_signal.app.main:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# ── Core infrastructure ──
from safe_signal.app.core.config import settings
from safe_signal.app.core.logging_config import setup_logging, get_logger
from safe_signal.app.core.errors import register_error_handlers
from safe_signal.app.core.middleware import RequestLoggingMiddleware
from safe_signal.app.core.health import HealthStatus, run_health_check

# ── Domain ──
from safe_signal.app.alerts.alert_service import AlertService, build_alert_service
from safe_signal.app.api.schemas import HealthResponse

# ── API routers ──
from safe_signal.app.api.routes.alerts import router as alert_router
from safe_signal.app.api.routes.contacts import router as contact_router

# ── Initialise logging ──
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup and shutdown events."""
    service: AlertService = app.state.alert_service
    logger.info(
        "✅ %s v%s [%s]: %d contact(s) loaded, notifier=%s",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        service.contacts.count(),
        service.notifier.provider if service.notifier else "none",
    )
    yield
    logger.info(
        "Shutting down %s: %d alert(s) in memory will be discarded",
        settings.APP_NAME, service.alert_log.count(),
    )


def create_app(service: Optional[AlertService] = None) -> FastAPI:
    """
    Build the Alert Service application.

    Parameters
    ----------
    service : AlertService | None
        Pre-built service (tests inject their own). Defaults to in-memory
        storage wired from settings.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Emergency alert backend. Keeps an in-memory emergency contact "
            "list and an append-only alert log; each ingested alert records "
            "a snapshot of the phones that would be notified."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.alert_service = service or build_alert_service(settings)

    # ── Middleware stack (order matters, outermost first) ──
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS if not settings.CORS_ALLOW_ALL else ["*"],
        allow_credentials=not settings.CORS_ALLOW_ALL,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)

    app.include_router(contact_router)
    app.include_router(alert_router)

    # ── Root & health endpoints ──

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "endpoints": [
                f"{settings.API_PREFIX}/health",
                f"{settings.API_PREFIX}/alert",
                f"{settings.API_PREFIX}/alerts",
                f"{settings.API_PREFIX}/contacts",
            ],
            "docs": "/docs",
        }

    @app.get(
        f"{settings.API_PREFIX}/health",
        response_model=HealthResponse,
        tags=["health"],
    )
    async def health_check():
        """Liveness token plus server time."""
        return HealthResponse(
            status="ok", time=datetime.now(timezone.utc).isoformat(),
        )

    @app.get(f"{settings.API_PREFIX}/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    @app.get(f"{settings.API_PREFIX}/health/ready", tags=["health"])
    async def readiness(request: Request):
        """Component report, 503 when any component is unhealthy."""
        report = run_health_check(request.app.state.alert_service)
        if report.status == HealthStatus.UNHEALTHY:
            return JSONResponse(status_code=503, content=report.to_dict())
        return report.to_dict()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "safe_signal.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )
