from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import Services, get_services
from app.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()


def _provider_status() -> dict[str, bool]:
    return {
        "openai": settings.llm_configured,
        "exa": bool(settings.exa_api_key),
        "perplexity": bool(settings.perplexity_api_key),
        "apollo": bool(settings.apollo_api_key),
        "smtp": settings.email_configured,
    }


@router.get("")
async def health_check():
    """Liveness only; no dependencies are touched."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/ready")
def readiness_check(services: Services = Depends(get_services)):
    """Storage connectivity plus which AI features and providers are usable.

    Missing provider keys never fail readiness; enrichment degrades to
    model-only research instead.
    """
    if not services.repository.ping():
        logger.warning("health.ready.storage_unavailable")
        raise HTTPException(status_code=503, detail="Database is not available")

    return {
        "status": "ready",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if settings.database_url else "in-memory",
        "enrichment": services.enricher is not None,
        "lead_generation": services.prospector is not None,
        "providers": _provider_status(),
    }
