"""
FastAPI dependencies for storage services.

The gateway is built once in the application lifespan and kept on
app.state; tests replace get_gateway through dependency_overrides.
"""
from fastapi import Depends, Request

from presigned_storage.config import Settings, settings
from presigned_storage.storage.gateway import ObjectStoreGateway
from presigned_storage.storage.multipart import UploadSessionManager
from presigned_storage.storage.presign import PresignService


def get_settings() -> Settings:
    return settings


def get_gateway(request: Request) -> ObjectStoreGateway:
    """Gateway created at startup (built on first use if the lifespan did not run)."""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        gateway = ObjectStoreGateway(settings)
        request.app.state.gateway = gateway
    return gateway


def get_session_manager(
    gateway: ObjectStoreGateway = Depends(get_gateway),
    app_settings: Settings = Depends(get_settings),
) -> UploadSessionManager:
    return UploadSessionManager(gateway, app_settings)


def get_presign_service(
    gateway: ObjectStoreGateway = Depends(get_gateway),
    app_settings: Settings = Depends(get_settings),
) -> PresignService:
    return PresignService(gateway, app_settings)
