"""
FastAPI application entry point for the Prospect Dashboard API.

Configures logging, the database pool lifecycle, CORS for the dashboard UI,
and registers the API routers.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prospect_dashboard import __version__
from prospect_dashboard.api import api_router
from prospect_dashboard.core.config import get_settings
from prospect_dashboard.core.database import init_db, close_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.

    On startup the database pool is created and the document table ensured.
    On shutdown the pool is closed.
    """
    logger.info("Prospect Dashboard API starting")
    try:
        await init_db()
        logger.info("Database connection pool initialized")
    except Exception as e:
        # Reads degrade to empty results while the store is unavailable
        logger.error(f"Failed to initialize database: {e}")

    yield

    logger.info("Prospect Dashboard API shutting down")
    try:
        await close_db()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.error(f"Error closing database pool: {e}")


app = FastAPI(
    title="Prospect Dashboard API",
    version=__version__,
    description=(
        "Business intelligence backend for visa and employment-certificate "
        "services: deduplicated sales, clean conversion rates, P&L and NPS."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancers.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.
    """
    return {
        "name": "Prospect Dashboard API",
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prospect_dashboard.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
