"""
FastAPI Application

Main entry point for the Indicator Engine API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from indicator_engine.config.logging import configure_logging
from indicator_engine.database.connection import init_database, close_database
from indicator_engine.serving.api.main import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()
    logger.info("Starting Indicator Engine API")

    await init_database()

    yield

    logger.info("Shutting down...")
    await close_database()


app = create_api_app(lifespan=lifespan)
