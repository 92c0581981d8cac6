"""
FastAPI Production Application

Main entry point for the Cardlink Profile Engagement API.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from cardlink.config.logging import configure_logging
from cardlink.database.connection import init_database, close_database
from cardlink.serving.api import create_api_app

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    configure_logging()

    logger.info("Starting Cardlink Profile Engagement API")
    await init_database()

    yield

    logger.info("Shutting down...")
    await close_database()


app = create_api_app(lifespan=lifespan)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
