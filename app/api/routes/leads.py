"""Lead CRUD, CSV import, AI-assisted generation, and the outreach log."""

from __future__ import annotations

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel, Field, ValidationError, model_validator

from app.api.deps import get_prospector, get_repository
from app.api.errors import to_http_error
from app.models.lead import (
    GeneratedLead,
    Lead,
    LeadCreate,
    LeadStatus,
    LeadUpdate,
    OutreachAction,
    OutreachLog,
)
from app.services.errors import LeadDeskError
from app.services.leads.importer import parse_leads_csv
from app.services.leads.prospector import LeadProspector
from app.services.leads.repositories import LeadRepository

router = APIRouter()
logger = logging.getLogger(__name__)


class DeleteLeadsRequest(BaseModel):
    ids: list[UUID] = Field(default_factory=list)
    all: bool = False

    @model_validator(mode="after")
    def _has_target(self) -> "DeleteLeadsRequest":
        if not self.all and not self.ids:
            raise ValueError('Provide "ids" or set "all" to true.')
        return self


class DeleteLeadsResponse(BaseModel):
    deleted: int


class GenerateLeadsRequest(BaseModel):
    company_profile: str = Field(min_length=1)
    decision_maker_titles: str | list[str]


class OutreachLogCreate(BaseModel):
    action: Literal["opened", "replied", "bounced", "follow_up_sent"]
    message_id: UUID | None = None
    notes: str | None = None


def _to_leads(payloads: list[LeadCreate]) -> list[Lead]:
    return [Lead(**payload.model_dump(exclude_none=True)) for payload in payloads]


@router.get("/leads", response_model=list[Lead])
def list_leads(
    lead_status: LeadStatus | None = Query(None, alias="status", description="Filter by pipeline stage."),
    repository: LeadRepository = Depends(get_repository),
) -> list[Lead]:
    return repository.list_leads(status=lead_status)


@router.post("/leads", response_model=list[Lead], status_code=status.HTTP_201_CREATED)
def create_leads(
    payload: LeadCreate | list[LeadCreate],
    repository: LeadRepository = Depends(get_repository),
) -> list[Lead]:
    """Create one lead or many; the response is always a list."""
    payloads = payload if isinstance(payload, list) else [payload]
    try:
        created = repository.insert_leads(_to_leads(payloads))
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
    logger.info("leads.created", extra={"count": len(created), "source": "manual"})
    return created


@router.post("/leads/import", response_model=list[Lead], status_code=status.HTTP_201_CREATED)
async def import_leads(
    request: Request,
    repository: LeadRepository = Depends(get_repository),
) -> list[Lead]:
    """Import leads from a CSV request body."""
    raw = await request.body()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV must be UTF-8 encoded.") from exc
    payloads = parse_leads_csv(content)
    if not payloads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No rows with a company name found.")
    try:
        created = repository.insert_leads(_to_leads(payloads))
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
    logger.info("leads.created", extra={"count": len(created), "source": "csv"})
    return created


@router.post("/leads/generate", response_model=list[GeneratedLead])
def generate_leads(
    payload: GenerateLeadsRequest,
    prospector: LeadProspector = Depends(get_prospector),
) -> list[GeneratedLead]:
    """Propose leads for a company profile. Nothing is saved."""
    try:
        return prospector.generate(payload.company_profile, payload.decision_maker_titles)
    except LeadDeskError as exc:
        logger.error("leads.generate.failed", extra={"code": exc.code})
        raise to_http_error(exc, opaque_detail="Lead generation failed") from exc


@router.post("/leads/delete", response_model=DeleteLeadsResponse)
def delete_leads(
    payload: DeleteLeadsRequest,
    repository: LeadRepository = Depends(get_repository),
) -> DeleteLeadsResponse:
    try:
        deleted = repository.delete_all_leads() if payload.all else repository.delete_leads(payload.ids)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
    logger.info("leads.deleted", extra={"count": deleted, "all": payload.all})
    return DeleteLeadsResponse(deleted=deleted)


@router.get("/leads/{lead_id}", response_model=Lead)
def get_lead(lead_id: UUID, repository: LeadRepository = Depends(get_repository)) -> Lead:
    try:
        return repository.get_lead(lead_id)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc


@router.patch("/leads/{lead_id}", response_model=Lead)
def update_lead(
    lead_id: UUID,
    payload: LeadUpdate,
    repository: LeadRepository = Depends(get_repository),
) -> Lead:
    """Apply direct user edits. A hand-entered email clears both email flags."""
    updates = payload.model_dump(exclude_unset=True)
    if "contact_email" in updates:
        updates.setdefault("contact_email_inferred", False)
        updates.setdefault("contact_email_verified", False)
    try:
        return repository.update_lead(lead_id, updates)
    except ValidationError as exc:
        detail = exc.errors(include_url=False, include_context=False, include_input=False)
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail) from exc
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc


@router.delete("/leads/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_lead(lead_id: UUID, repository: LeadRepository = Depends(get_repository)) -> Response:
    try:
        deleted = repository.delete_leads([lead_id])
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Lead {lead_id} not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/leads/{lead_id}/outreach-log", response_model=list[OutreachLog])
def list_outreach_log(lead_id: UUID, repository: LeadRepository = Depends(get_repository)) -> list[OutreachLog]:
    try:
        repository.get_lead(lead_id)
        return repository.list_logs(lead_id)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc


@router.post("/leads/{lead_id}/outreach-log", response_model=OutreachLog, status_code=status.HTTP_201_CREATED)
def append_outreach_log(
    lead_id: UUID,
    payload: OutreachLogCreate,
    repository: LeadRepository = Depends(get_repository),
) -> OutreachLog:
    """Record a manual outreach action (opened, replied, bounced, follow-up sent)."""
    entry = OutreachLog(
        lead_id=lead_id,
        message_id=payload.message_id,
        action=OutreachAction(payload.action),
        notes=payload.notes,
    )
    try:
        return repository.append_log(entry)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
