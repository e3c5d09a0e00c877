from fastapi import APIRouter, Request

from repairhub.core.config import get_settings

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "request_id": getattr(request.state, "request_id", None),
    }
