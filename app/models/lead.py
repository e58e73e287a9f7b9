"""Domain models for leads, outreach messages, and the outreach log."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from app.services.enrichment.catalog import (
    EMPLOYEE_BRACKETS,
    INDUSTRIES,
    LEAD_CATEGORIES,
    REVENUE_BRACKETS,
    coerce_choice,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeadStatus(str, Enum):
    """Pipeline stage of a lead."""

    NEW = "New"
    ENRICHED = "Enriched"
    CONTACTED = "Contacted"
    PROPOSAL = "Proposal"
    NEGOTIATING = "Negotiating"
    WON = "Won"
    LOST = "Lost"
    CHURNED = "Churned"


class Platform(str, Enum):
    EMAIL = "email"
    LINKEDIN = "linkedin"


class OutreachAction(str, Enum):
    SENT = "sent"
    OPENED = "opened"
    REPLIED = "replied"
    BOUNCED = "bounced"
    FOLLOW_UP_SENT = "follow_up_sent"


class PriorityItem(BaseModel):
    """A single strategic-priority bullet with an optional source link."""

    text: str
    url: str | None = None


class StrategicPriorities(BaseModel):
    news_and_press: list[PriorityItem] = Field(default_factory=list)
    company_content: list[PriorityItem] = Field(default_factory=list)
    social_media: list[PriorityItem] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.news_and_press or self.company_content or self.social_media)


class NewsSource(BaseModel):
    title: str
    url: str


CLOSED_FIELD_CHOICES: dict[str, tuple[str, ...]] = {
    "lead_type": LEAD_CATEGORIES,
    "industry": INDUSTRIES,
    "company_size_employees": EMPLOYEE_BRACKETS,
    "company_size_revenue": REVENUE_BRACKETS,
}


class LeadFields(BaseModel):
    """User-editable lead attributes shared by create/update payloads."""

    company_website: str | None = None
    lead_type: str | None = None
    industry: str | None = None
    company_size_employees: str | None = None
    company_size_revenue: str | None = None
    contact_name: str | None = None
    contact_role: str | None = None
    contact_email: str | None = None
    contact_linkedin: str | None = None
    secondary_contact_name: str | None = None
    secondary_contact_email: str | None = None
    secondary_contact_linkedin: str | None = None
    lead_source: Literal["Inbound", "Outbound", "Referral", "Event"] | None = None
    lead_priority: Literal["High", "Medium"] | None = None
    key_vp: str | None = None
    company_description: str | None = None
    value_proposition: str | None = None

    @field_validator("lead_type", "industry", "company_size_employees", "company_size_revenue")
    @classmethod
    def _closed_vocabulary(cls, value: str | None, info: ValidationInfo) -> str | None:
        if value is None:
            return None
        choices = CLOSED_FIELD_CHOICES[info.field_name]
        matched = coerce_choice(value, choices)
        if matched is None:
            raise ValueError(f"must be one of {', '.join(choices)}")
        return matched


class LeadCreate(LeadFields):
    """Payload for manual entry, CSV import, and accepted generated leads."""

    company: str = Field(min_length=1)
    strategic_priorities: StrategicPriorities | None = None


class LeadUpdate(LeadFields):
    """Partial update applied by direct user edits."""

    company: str | None = Field(default=None, min_length=1)
    lead_status: LeadStatus | None = None
    contact_email_inferred: bool | None = None
    contact_email_verified: bool | None = None
    strategic_priorities: StrategicPriorities | None = None


class Lead(LeadFields):
    """A company/contact pair being evaluated as a sales prospect."""

    id: UUID = Field(default_factory=uuid4)
    company: str
    contact_email_inferred: bool = False
    contact_email_verified: bool = False
    lead_status: LeadStatus = LeadStatus.NEW
    strategic_priorities: StrategicPriorities | None = None
    news_sources: list[NewsSource] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"from_attributes": True}

    @model_validator(mode="after")
    def _email_flags_exclusive(self) -> "Lead":
        if self.contact_email_inferred and self.contact_email_verified:
            raise ValueError("An email cannot be both inferred and verified.")
        return self


class Message(BaseModel):
    """One drafted outreach artifact; versioned per lead."""

    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    platform: Platform
    subject: str | None = None
    body: str
    version: int = Field(default=1, ge=1)
    sent_at: datetime | None = None
    follow_up_1_due: datetime | None = None
    follow_up_2_due: datetime | None = None
    follow_up_1_body: str | None = None
    follow_up_2_body: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"from_attributes": True}

    @property
    def is_sent(self) -> bool:
        return self.sent_at is not None


class MessageEdit(BaseModel):
    """User edits applied to an unsent draft."""

    subject: str | None = None
    body: str | None = Field(default=None, min_length=1)
    follow_up_1_body: str | None = None
    follow_up_2_body: str | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class OutreachLog(BaseModel):
    """Append-only audit entry for an action taken on a lead."""

    id: UUID = Field(default_factory=uuid4)
    lead_id: UUID
    message_id: UUID | None = None
    action: OutreachAction
    timestamp: datetime = Field(default_factory=_utcnow)
    notes: str | None = None

    model_config = {"from_attributes": True}


class FollowUp(BaseModel):
    """A scheduled follow-up derived from a sent message."""

    lead_id: UUID
    company: str
    contact_name: str | None = None
    message_id: UUID
    follow_up_number: Literal[1, 2]
    due_at: datetime
    body: str | None = None
    overdue: bool


class GeneratedLead(BaseModel):
    """A prospect proposed by AI-assisted generation; not persisted until imported."""

    company: str
    company_website: str | None = None
    company_size: str | None = None
    contact_name: str | None = None
    contact_role: str | None = None
    contact_email: str | None = None
    contact_linkedin: str | None = None
    is_inferred: bool = True


class BatchItemResult(BaseModel):
    id: UUID
    success: bool
    error: str | None = None
