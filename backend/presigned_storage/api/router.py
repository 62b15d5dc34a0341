"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from presigned_storage.api import buckets, health

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(buckets.router, prefix="/buckets", tags=["buckets"])
