
from fastapi import APIRouter, Depends

from ..deps import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(services: Services = Depends(get_services)):
    """Liveness of this service; does not probe the extraction service."""
    return {
        "status": "ok",
        "app": services.settings.app_name,
        "extraction_configured": services.extraction_client.configured,
    }
