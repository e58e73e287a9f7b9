"""Outreach drafting, editing, sending, and the follow-up queue."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from app.api.deps import get_drafter, get_repository
from app.api.errors import to_http_error
from app.models.lead import FollowUp, Message, MessageEdit, Platform
from app.services.errors import LeadDeskError
from app.services.leads.repositories import LeadRepository
from app.services.outreach.drafter import MessageDrafter

router = APIRouter()
logger = logging.getLogger(__name__)


class DraftRequest(BaseModel):
    platform: Platform = Platform.EMAIL


@router.get("/leads/{lead_id}/messages", response_model=list[Message])
def list_messages(lead_id: UUID, repository: LeadRepository = Depends(get_repository)) -> list[Message]:
    """All versions for a lead, newest first."""
    try:
        repository.get_lead(lead_id)
        return repository.list_messages(lead_id)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc


@router.post("/leads/{lead_id}/messages", response_model=Message, status_code=status.HTTP_201_CREATED)
def draft_message(
    lead_id: UUID,
    payload: DraftRequest | None = None,
    drafter: MessageDrafter = Depends(get_drafter),
) -> Message:
    platform = payload.platform if payload else Platform.EMAIL
    try:
        return drafter.draft(lead_id, platform)
    except LeadDeskError as exc:
        logger.error("outreach.draft.failed", extra={"lead_id": str(lead_id), "code": exc.code})
        raise to_http_error(exc) from exc


@router.patch("/messages/{message_id}", response_model=Message)
def edit_message(
    message_id: UUID,
    payload: MessageEdit,
    drafter: MessageDrafter = Depends(get_drafter),
) -> Message:
    try:
        return drafter.edit(message_id, payload)
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc


@router.post("/messages/{message_id}/regenerate", response_model=Message)
def regenerate_message(message_id: UUID, drafter: MessageDrafter = Depends(get_drafter)) -> Message:
    try:
        return drafter.regenerate(message_id)
    except LeadDeskError as exc:
        logger.error("outreach.regenerate.failed", extra={"message_id": str(message_id), "code": exc.code})
        raise to_http_error(exc) from exc


@router.post("/messages/{message_id}/send", response_model=Message)
def send_message(message_id: UUID, drafter: MessageDrafter = Depends(get_drafter)) -> Message:
    try:
        return drafter.send(message_id)
    except LeadDeskError as exc:
        logger.error("outreach.send.failed", extra={"message_id": str(message_id), "code": exc.code})
        raise to_http_error(exc) from exc


@router.get("/follow-ups", response_model=list[FollowUp])
def list_follow_ups(drafter: MessageDrafter = Depends(get_drafter)) -> list[FollowUp]:
    try:
        return drafter.list_follow_ups()
    except LeadDeskError as exc:
        raise to_http_error(exc) from exc
