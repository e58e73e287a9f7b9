"""SQLModel mappings for stored leads, messages, and outreach log rows."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from app.models.lead import Lead, Message, OutreachLog


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


JSON_BACKING_TYPE = sa.JSON().with_variant(JSONB(astext_type=sa.Text()), "postgresql")


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


def _string(length: int = 255, *, nullable: bool = True) -> Any:
    return Field(default=None, sa_column=Column(String(length=length), nullable=nullable))


def _text() -> Any:
    return Field(default=None, sa_column=Column(Text, nullable=True))


class LeadRecord(SQLModel, table=True):
    """ORM model for the leads table."""

    __tablename__ = "leads"
    __table_args__ = (
        sa.Index("ix_leads_status", "lead_status"),
        sa.Index("ix_leads_created_at", "created_at"),
    )

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    company: str = Field(sa_column=Column(String(length=255), nullable=False))
    company_website: str | None = _string()
    lead_type: str | None = _string(64)
    industry: str | None = _string(128)
    company_size_employees: str | None = _string(32)
    company_size_revenue: str | None = _string(32)
    contact_name: str | None = _string()
    contact_role: str | None = _string()
    contact_email: str | None = _string()
    contact_email_inferred: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, server_default=sa.false())
    )
    contact_email_verified: bool = Field(
        default=False, sa_column=Column(Boolean, nullable=False, server_default=sa.false())
    )
    contact_linkedin: str | None = _string(512)
    secondary_contact_name: str | None = _string()
    secondary_contact_email: str | None = _string()
    secondary_contact_linkedin: str | None = _string(512)
    lead_source: str | None = _string(32)
    lead_status: str = Field(
        default="New", sa_column=Column(String(length=32), nullable=False, server_default="New")
    )
    lead_priority: str | None = _string(16)
    key_vp: str | None = _string()
    strategic_priorities: dict[str, Any] | None = Field(
        default=None, sa_column=Column(JSON_BACKING_TYPE, nullable=True)
    )
    company_description: str | None = _text()
    value_proposition: str | None = _text()
    news_sources: list[dict[str, Any]] = Field(
        default_factory=list, sa_column=Column(JSON_BACKING_TYPE, nullable=False)
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            nullable=False,
            server_default=UtcNow(),
            onupdate=UtcNow(),
        ),
    )

    @classmethod
    def from_lead(cls, lead: Lead) -> LeadRecord:
        """Convert a domain Lead into a persistence row."""
        payload = lead.model_dump()
        payload["lead_status"] = lead.lead_status.value
        payload["strategic_priorities"] = (
            lead.strategic_priorities.model_dump(mode="json") if lead.strategic_priorities else None
        )
        payload["news_sources"] = [source.model_dump(mode="json") for source in lead.news_sources]
        return cls(**payload)

    def apply(self, updates: dict[str, Any]) -> None:
        """Copy domain-level updates onto the row, serializing nested values."""
        for field, value in updates.items():
            setattr(self, field, _to_column_value(value))

    def to_lead(self) -> Lead:
        return Lead.model_validate(self.model_dump())


class MessageRecord(SQLModel, table=True):
    """ORM model for drafted outreach messages."""

    __tablename__ = "messages"
    __table_args__ = (sa.Index("ix_messages_lead_id", "lead_id"),)

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    lead_id: UUID = Field(
        sa_column=Column(
            Uuid(as_uuid=True),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    platform: str = Field(sa_column=Column(String(length=16), nullable=False))
    subject: str | None = _string(512)
    body: str = Field(sa_column=Column(Text, nullable=False))
    version: int = Field(default=1, sa_column=Column(Integer, nullable=False))
    sent_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    follow_up_1_due: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    follow_up_2_due: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    follow_up_1_body: str | None = _text()
    follow_up_2_body: str | None = _text()
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    @classmethod
    def from_message(cls, message: Message) -> MessageRecord:
        payload = message.model_dump()
        payload["platform"] = message.platform.value
        return cls(**payload)

    def apply(self, updates: dict[str, Any]) -> None:
        for field, value in updates.items():
            setattr(self, field, _to_column_value(value))

    def to_message(self) -> Message:
        return Message.model_validate(self.model_dump())


class OutreachLogRecord(SQLModel, table=True):
    """ORM model for the append-only outreach log."""

    __tablename__ = "outreach_log"
    __table_args__ = (sa.Index("ix_outreach_log_lead_id", "lead_id"),)

    id: UUID = Field(
        default_factory=uuid4,
        sa_column=Column(Uuid(as_uuid=True), primary_key=True, nullable=False),
    )
    lead_id: UUID = Field(
        sa_column=Column(
            Uuid(as_uuid=True),
            sa.ForeignKey("leads.id", ondelete="CASCADE"),
            nullable=False,
        )
    )
    message_id: UUID | None = Field(
        default=None,
        sa_column=Column(
            Uuid(as_uuid=True),
            sa.ForeignKey("messages.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    action: str = Field(sa_column=Column(String(length=32), nullable=False))
    timestamp: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )
    notes: str | None = _text()

    @classmethod
    def from_log(cls, entry: OutreachLog) -> OutreachLogRecord:
        payload = entry.model_dump()
        payload["action"] = entry.action.value
        return cls(**payload)

    def to_log(self) -> OutreachLog:
        return OutreachLog.model_validate(self.model_dump())


def _to_column_value(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_column_value(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value
