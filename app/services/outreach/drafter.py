"""Outreach drafting, sending, and follow-up scheduling."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from app.clients.llm import LLMClient
from app.clients.mailer import Mailer, SMTPMailer
from app.config import settings
from app.models.lead import (
    FollowUp,
    Lead,
    LeadStatus,
    Message,
    MessageEdit,
    OutreachAction,
    OutreachLog,
    Platform,
)
from app.observability.metrics import metrics
from app.services.decoding import decode_json_object
from app.services.enrichment.prompts import render_draft_prompt
from app.services.errors import LeadNotReadyError, MessageAlreadySentError, ModelOutputError, ProviderError
from app.services.leads.repositories import LeadRepository
from app.services.llm import LLMContext, invoke_model

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class MessageDrafter:
    """Drafts versioned outreach for enriched leads and tracks what was sent."""

    def __init__(
        self,
        *,
        repository: LeadRepository,
        llm_client: LLMClient | None,
        context: LLMContext | None,
        mailer_factory: Callable[[], Mailer] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._llm = llm_client
        self._context = context
        self._mailer_factory = mailer_factory or SMTPMailer.from_settings
        self._clock = clock

    def draft(self, lead_id: UUID, platform: Platform) -> Message:
        """Create a new message version for the lead."""
        lead = self._repository.get_lead(lead_id)
        content = self._generate(lead, platform)
        existing = self._repository.list_messages(lead_id)
        version = max((message.version for message in existing), default=0) + 1
        message = self._repository.insert_message(
            Message(lead_id=lead_id, platform=platform, version=version, **content)
        )
        metrics.increment("outreach.drafted", tags={"platform": platform.value})
        logger.info(
            "outreach.drafted",
            extra={"lead_id": str(lead_id), "message_id": str(message.id), "version": version},
        )
        return message

    def regenerate(self, message_id: UUID) -> Message:
        """Redraft in place, or as a new version when the message already went out."""
        message = self._repository.get_message(message_id)
        if message.is_sent:
            return self.draft(message.lead_id, message.platform)
        lead = self._repository.get_lead(message.lead_id)
        content = self._generate(lead, message.platform)
        updated = self._repository.update_message(message_id, content)
        logger.info("outreach.regenerated", extra={"message_id": str(message_id)})
        return updated

    def edit(self, message_id: UUID, changes: MessageEdit) -> Message:
        message = self._repository.get_message(message_id)
        if message.is_sent:
            raise MessageAlreadySentError(message_id)
        updates = changes.changes()
        if not updates:
            return message
        return self._repository.update_message(message_id, updates)

    def send(self, message_id: UUID) -> Message:
        """Deliver a draft, stamp ``sent_at``, and schedule both follow-ups.

        Email goes through the configured mailer. LinkedIn messages are sent
        by hand and only recorded here.
        """
        message = self._repository.get_message(message_id)
        if message.is_sent:
            raise MessageAlreadySentError(message_id)
        lead = self._repository.get_lead(message.lead_id)

        notes = None
        if message.platform == Platform.EMAIL:
            if not lead.contact_email:
                raise LeadNotReadyError("Lead has no contact email; add one before sending.")
            mailer = self._mailer_factory()
            provider_id = mailer.send(
                to_address=lead.contact_email,
                subject=message.subject or f"{lead.company} x WalletConnect Pay",
                body=message.body,
            )
            notes = f"provider_message_id={provider_id}"
            if lead.contact_email_inferred:
                notes += " (inferred address)"

        sent_at = self._clock()
        sent = self._repository.update_message(
            message_id,
            {
                "sent_at": sent_at,
                "follow_up_1_due": sent_at + timedelta(days=settings.follow_up_1_days),
                "follow_up_2_due": sent_at + timedelta(days=settings.follow_up_2_days),
            },
        )
        self._repository.update_lead(lead.id, {"lead_status": LeadStatus.CONTACTED})
        self._repository.append_log(
            OutreachLog(
                lead_id=lead.id,
                message_id=message_id,
                action=OutreachAction.SENT,
                timestamp=sent_at,
                notes=notes,
            )
        )
        metrics.increment("outreach.sent", tags={"platform": message.platform.value})
        logger.info(
            "outreach.sent",
            extra={"lead_id": str(lead.id), "message_id": str(message_id), "platform": message.platform.value},
        )
        return sent

    def list_follow_ups(self, now: datetime | None = None) -> list[FollowUp]:
        return list_follow_ups(self._repository, now or self._clock())

    def _generate(self, lead: Lead, platform: Platform) -> dict[str, Any]:
        if self._llm is None or self._context is None:
            raise ProviderError("Language model is not configured.", code="503_LLM_NOT_CONFIGURED")
        if not (lead.key_vp or lead.value_proposition):
            raise LeadNotReadyError("Lead must be enriched before drafting a message. Run enrichment first.")
        raw = invoke_model(
            self._llm,
            self._context,
            render_draft_prompt(lead, platform),
            purpose="drafting",
            max_tokens=settings.drafting_max_tokens,
        )
        payload = decode_json_object(raw)
        body = payload.get("body")
        if not isinstance(body, str) or not body.strip():
            raise ModelOutputError("Drafted message is missing a body.")
        subject = payload.get("subject") if platform == Platform.EMAIL else None
        return {
            "subject": subject.strip() if isinstance(subject, str) and subject.strip() else None,
            "body": body.strip(),
            "follow_up_1_body": _optional_text(payload.get("follow_up_1")),
            "follow_up_2_body": _optional_text(payload.get("follow_up_2")),
        }


def _optional_text(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None


def list_follow_ups(repository: LeadRepository, now: datetime) -> list[FollowUp]:
    """Scheduled follow-ups for sent messages, soonest first, flagged when overdue."""
    current = _as_aware(now)
    leads: dict[UUID, Lead] = {}
    follow_ups: list[FollowUp] = []
    for message in repository.list_sent_messages():
        if message.lead_id not in leads:
            leads[message.lead_id] = repository.get_lead(message.lead_id)
        lead = leads[message.lead_id]
        for number, due, body in (
            (1, message.follow_up_1_due, message.follow_up_1_body),
            (2, message.follow_up_2_due, message.follow_up_2_body),
        ):
            if due is None:
                continue
            follow_ups.append(
                FollowUp(
                    lead_id=lead.id,
                    company=lead.company,
                    contact_name=lead.contact_name,
                    message_id=message.id,
                    follow_up_number=number,
                    due_at=due,
                    body=body,
                    overdue=_as_aware(due) < current,
                )
            )
    return sorted(follow_ups, key=lambda item: _as_aware(item.due_at))
