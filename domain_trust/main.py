"""FastAPI application factory and configuration."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from domain_trust.config import settings
from domain_trust.services.monitors import DeliverabilityMonitor, DomainMonitor

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings.validate_required()
    logger.info(f"Starting Domain Trust Service in {settings.ENVIRONMENT} mode")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[-1]}")  # Hide credentials

    if settings.MONITOR_AUTOSTART:
        app.state.domain_monitor.start()
        app.state.deliverability_monitor.start()

    yield

    # Shutdown
    await app.state.domain_monitor.stop()
    await app.state.deliverability_monitor.stop()
    logger.info("Shutting down Domain Trust Service")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Domain Trust Service",
        description="Sending domain verification, reputation and deliverability monitoring",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.domain_monitor = DomainMonitor()
    app.state.deliverability_monitor = DeliverabilityMonitor()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure based on environment in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "domain-trust-service",
            "version": "0.1.0",
            "environment": settings.ENVIRONMENT,
            "monitors": {
                "domain": app.state.domain_monitor.is_running,
                "deliverability": app.state.deliverability_monitor.is_running,
            },
        }

    # Mount routes
    from domain_trust.routes import deliverability, domains

    app.include_router(domains.router, prefix="/api", tags=["Domains"])
    app.include_router(deliverability.router, prefix="/api", tags=["Deliverability"])

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "domain_trust.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower(),
    )
