"""
FastAPI application entry point.
Sets up the API with lifespan events for storage client initialization.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from presigned_storage import __version__
from presigned_storage.config import settings
from presigned_storage.api.router import api_router
from presigned_storage.middleware.metrics_middleware import MetricsMiddleware
from presigned_storage.storage.gateway import ObjectStoreGateway
from presigned_storage.utils.logging import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: configure logging and build the storage gateway
    - Shutdown: nothing to release (boto3 clients hold no open sessions)
    """
    configure_logging('presigned-api', settings.log_level)

    app.state.gateway = ObjectStoreGateway(settings)
    if not app.state.gateway.is_configured and settings.environment == "production":
        raise RuntimeError("Object storage must be configured in production")

    yield


# Create FastAPI app
app = FastAPI(
    title="Presigned Storage API",
    description="Presigned URLs and parallel multipart uploads for S3-compatible object storage",
    version=__version__,
    lifespan=lifespan
)

# Browsers PUT parts straight to storage, but call this API cross-origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Presigned Storage API",
        "version": __version__,
        "environment": settings.environment
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
