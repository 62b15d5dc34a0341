"""
Health check endpoint.
Reports whether the object storage client is configured.
"""
from fastapi import APIRouter, Depends

from presigned_storage.api.dependencies import get_gateway
from presigned_storage.storage.gateway import ObjectStoreGateway

router = APIRouter()


@router.get("")
async def health_check(gateway: ObjectStoreGateway = Depends(get_gateway)):
    """
    Health check endpoint.
    The API stays up without storage, but every presign call will return 503.
    """
    return {
        "status": "healthy",
        "storage": "configured" if gateway.is_configured else "not configured",
    }
