from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.api.deps import get_enricher
from app.api.errors import to_http_error
from app.models.lead import BatchItemResult, Lead
from app.services.enrichment.orchestrator import LeadEnricher
from app.services.errors import LeadDeskError

router = APIRouter()
logger = logging.getLogger(__name__)

ENRICHMENT_FAILED = "Enrichment failed"


class BatchEnrichRequest(BaseModel):
    ids: list[UUID] = Field(min_length=1)
    verify_email: bool = False


class BatchEnrichResponse(BaseModel):
    results: list[BatchItemResult]
    succeeded: int
    failed: int


@router.post("/leads/enrich/batch", response_model=BatchEnrichResponse)
def enrich_batch(
    payload: BatchEnrichRequest,
    enricher: LeadEnricher = Depends(get_enricher),
) -> BatchEnrichResponse:
    """Qualify many leads one after another; per-lead failures are reported, not raised."""
    results = enricher.enrich_many(payload.ids, verify_email=payload.verify_email)
    succeeded = sum(1 for result in results if result.success)
    return BatchEnrichResponse(results=results, succeeded=succeeded, failed=len(results) - succeeded)


@router.post("/leads/{lead_id}/enrich", response_model=Lead)
def enrich_lead(
    lead_id: UUID,
    verify_email: bool = Query(False, description="Look up a verified address before synthesizing one."),
    enricher: LeadEnricher = Depends(get_enricher),
) -> Lead:
    try:
        return enricher.enrich(lead_id, verify_email=verify_email)
    except LeadDeskError as exc:
        logger.error(
            "enrichment.request.failed",
            extra={"lead_id": str(lead_id), "code": exc.code, "error": str(exc)},
        )
        raise to_http_error(exc, opaque_detail=ENRICHMENT_FAILED) from exc
