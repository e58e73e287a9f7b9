"""Create leads, messages, and outreach_log tables.

Messages and log entries cascade with their lead; a log entry outlives a
deleted message with ``message_id`` set to NULL.
"""

from __future__ import annotations

import logging

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "5b2f0c7e9a13"
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger(__name__)

_NOW = sa.text("timezone('utc', now())")
_JSON = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "leads",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("company", sa.String(length=255), nullable=False),
        sa.Column("company_website", sa.String(length=255), nullable=True),
        sa.Column("lead_type", sa.String(length=64), nullable=True),
        sa.Column("industry", sa.String(length=128), nullable=True),
        sa.Column("company_size_employees", sa.String(length=32), nullable=True),
        sa.Column("company_size_revenue", sa.String(length=32), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("contact_role", sa.String(length=255), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("contact_email_inferred", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("contact_linkedin", sa.String(length=512), nullable=True),
        sa.Column("secondary_contact_name", sa.String(length=255), nullable=True),
        sa.Column("secondary_contact_email", sa.String(length=255), nullable=True),
        sa.Column("secondary_contact_linkedin", sa.String(length=512), nullable=True),
        sa.Column("lead_source", sa.String(length=32), nullable=True),
        sa.Column("lead_status", sa.String(length=32), nullable=False, server_default="New"),
        sa.Column("lead_priority", sa.String(length=16), nullable=True),
        sa.Column("key_vp", sa.String(length=255), nullable=True),
        sa.Column("strategic_priorities", _JSON, nullable=True),
        sa.Column("company_description", sa.Text(), nullable=True),
        sa.Column("value_proposition", sa.Text(), nullable=True),
        sa.Column("news_sources", _JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
            server_onupdate=_NOW,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_leads"),
        sa.CheckConstraint(
            "NOT (contact_email_inferred AND contact_email_verified)",
            name="ck_leads_email_flags_exclusive",
        ),
    )
    op.create_index("ix_leads_status", "leads", ["lead_status"], unique=False)
    op.create_index("ix_leads_created_at", "leads", ["created_at"], unique=False)

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("lead_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("subject", sa.String(length=512), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_1_due", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_2_due", sa.DateTime(timezone=True), nullable=True),
        sa.Column("follow_up_1_body", sa.Text(), nullable=True),
        sa.Column("follow_up_2_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.PrimaryKeyConstraint("id", name="pk_messages"),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], name="fk_messages_lead", ondelete="CASCADE"),
    )
    op.create_index("ix_messages_lead_id", "messages", ["lead_id"], unique=False)

    op.create_table(
        "outreach_log",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("lead_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("message_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_outreach_log"),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], name="fk_outreach_log_lead", ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["message_id"], ["messages.id"], name="fk_outreach_log_message", ondelete="SET NULL"
        ),
    )
    op.create_index("ix_outreach_log_lead_id", "outreach_log", ["lead_id"], unique=False)
    logger.info("leads.migration.applied", extra={"revision": revision})


def downgrade() -> None:
    op.drop_index("ix_outreach_log_lead_id", table_name="outreach_log")
    op.drop_table("outreach_log")
    op.drop_index("ix_messages_lead_id", table_name="messages")
    op.drop_table("messages")
    op.drop_index("ix_leads_created_at", table_name="leads")
    op.drop_index("ix_leads_status", table_name="leads")
    op.drop_table("leads")
    logger.info("leads.migration.reverted", extra={"revision": revision})
