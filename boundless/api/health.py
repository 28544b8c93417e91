from typing import Any, Dict

from fastapi import APIRouter

from ..config import settings
from ..providers.zerion import ZerionProvider

router = APIRouter()


@router.get("/healthz")
async def health_check() -> Dict[str, Any]:
    """Health check with provider configuration status"""
    provider_status = {
        "zerion": await ZerionProvider().health_check(),
        # LI.FI works without a key, only with lower rate limits
        "lifi": {"status": "healthy", "api_key": settings.has_lifi_key},
    }
    available = sum(1 for status in provider_status.values() if status["status"] == "healthy")

    return {
        "status": "healthy" if available == len(provider_status) else "degraded",
        "providers": provider_status,
        "available_providers": available,
        "total_providers": len(provider_status),
        "auto_deposit": settings.enable_auto_deposit,
    }
