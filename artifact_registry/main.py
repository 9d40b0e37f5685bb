"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from artifact_registry.api import auth, registry
from artifact_registry.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    logger.info(
        f"Starting artifact registry ({settings.environment}), bucket {settings.s3_bucket_name}"
    )
    yield


app = FastAPI(
    title="Artifact Registry API",
    description="Package artifact registry with password login and bearer tokens",
    version="0.1.0",
    lifespan=lifespan,
)

# Register routers
app.include_router(auth.router)
app.include_router(registry.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment}
