"""
FastAPI application entry point for the CallKPI API.

Configures logging and CORS, registers the API routers and starts the ASGI
server when run directly.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callkpi import __version__
from callkpi.api import api_router
from callkpi.core.config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup with the active policy defaults, and shutdown."""
    logger.info(
        f"{settings.app_name} starting (minSampleCalls={settings.min_sample_calls}, "
        f"csatTarget={settings.csat_target:g}, window={settings.default_window.value})"
    )
    yield
    logger.info(f"{settings.app_name} shutting down")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description=(
        "Call-center KPI service. Derives summary and per-agent KPIs from "
        "heterogeneous call rows and turns them into insights, recommended "
        "tasks and a CSAT outcome preview."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """API name, version and docs location."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "callkpi.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
