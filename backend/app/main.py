"""
FastAPI application entry point.
Sets up the API with lifespan events for logging and storage client setup.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from app.config import settings
from app.api.router import api_router
from app.middleware.metrics_middleware import MetricsMiddleware
from app.storage.s3_client import get_s3_client
from app.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: Configure logging and create the shared S3 client
    - Shutdown: Nothing to release, boto3 clients hold no open sessions
    """
    # Configure structured JSON logging
    configure_logging('s3-gateway', settings.log_level)

    # Create the shared client once so the first request doesn't pay for it
    get_s3_client()

    yield


# Create FastAPI app
app = FastAPI(
    title="S3 File Gateway",
    description="HTTP service proxying file operations to an S3 bucket",
    version="0.1.0",
    lifespan=lifespan
)

# Metrics middleware
app.add_middleware(MetricsMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "S3 File Gateway",
        "version": "0.1.0",
        "environment": settings.environment,
        "bucket": settings.s3_bucket_name
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
