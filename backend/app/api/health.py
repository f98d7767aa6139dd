import os

from fastapi import APIRouter

from app.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    settings = get_settings()
    return {
        "status": "healthy",
        "service": settings.app_name,
        "llm_provider": settings.llm_provider,
        "store": os.getenv("LESSONCRAFT_STORE", "memory").lower(),
    }
