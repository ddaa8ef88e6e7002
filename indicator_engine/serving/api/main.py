"""
FastAPI Application Factory

Creates and configures the indicator API application.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from indicator_engine.config import get_settings
from indicator_engine.indicators.types import IndicatorKind
from indicator_engine.serving.api.routes import health_router, indicators_router


def create_api_app(lifespan: Optional[object] = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        lifespan: Optional lifespan context manager (database startup/shutdown)

    Returns:
        Configured FastAPI app instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Indicator Engine API",
        description="Business indicators computed from orders, catalog, search and web analytics",
        version=settings.version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    app.include_router(health_router, prefix="/api/v1", tags=["Health"])
    app.include_router(indicators_router, prefix="/api/v1/indicators", tags=["Indicators"])

    @app.get("/api/v1/info")
    async def api_info():
        """API information endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.version,
            "environment": settings.app_env,
            "indicators_per_run": len(IndicatorKind),
        }

    return app
