from fastapi import APIRouter, Depends

from clinassist.core.config import settings
from clinassist.core.dependencies import get_clinical_service
from clinassist.services.clinical_pipeline import ClinicalAiService

router = APIRouter()


@router.get("/status")
def health_check():
    return {
        "status": "OK",
        "service": settings.PROJECT_NAME,
    }


@router.get("/ai/health")
def ai_health(service: ClinicalAiService = Depends(get_clinical_service)):
    providers = service.router.probe()
    return {
        "status": "UP" if any(providers.values()) else "DEGRADED",
        "primary_provider": service.router.primary_id,
        "fallback_enabled": service.router.fallback_enabled,
        "providers": providers,
    }
