"""Persistence backends for leads, outreach messages, and the outreach log."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from app.config import settings
from app.models.lead import Lead, LeadStatus, Message, OutreachLog
from app.models.records import LeadRecord, MessageRecord, OutreachLogRecord
from app.observability.metrics import metrics
from app.services.errors import LeadNotFoundError, MessageNotFoundError, PersistenceError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeadRepository(Protocol):
    """Row-level store for leads, their message versions, and their log.

    Updates are last-write-wins; no method locks a lead across a
    read-modify-write sequence.
    """

    def get_lead(self, lead_id: UUID) -> Lead:
        ...

    def list_leads(self, *, status: LeadStatus | None = None) -> list[Lead]:
        ...

    def insert_leads(self, leads: list[Lead]) -> list[Lead]:
        ...

    def update_lead(self, lead_id: UUID, updates: dict[str, Any]) -> Lead:
        ...

    def delete_leads(self, lead_ids: Iterable[UUID]) -> int:
        ...

    def delete_all_leads(self) -> int:
        ...

    def insert_message(self, message: Message) -> Message:
        ...

    def get_message(self, message_id: UUID) -> Message:
        ...

    def update_message(self, message_id: UUID, updates: dict[str, Any]) -> Message:
        ...

    def list_messages(self, lead_id: UUID) -> list[Message]:
        ...

    def list_sent_messages(self) -> list[Message]:
        ...

    def append_log(self, entry: OutreachLog) -> OutreachLog:
        ...

    def list_logs(self, lead_id: UUID) -> list[OutreachLog]:
        ...

    def ping(self) -> bool:
        ...


class InMemoryLeadRepository(LeadRepository):
    """Thread-safe repository used for API/local development."""

    def __init__(self) -> None:
        self._leads: dict[UUID, Lead] = {}
        self._messages: dict[UUID, Message] = {}
        self._logs: list[OutreachLog] = []
        self._lock = Lock()

    def get_lead(self, lead_id: UUID) -> Lead:
        with self._lock:
            lead = self._leads.get(lead_id)
        if lead is None:
            raise LeadNotFoundError(lead_id)
        return lead

    def list_leads(self, *, status: LeadStatus | None = None) -> list[Lead]:
        with self._lock:
            leads = list(self._leads.values())
        if status is not None:
            leads = [lead for lead in leads if lead.lead_status == status]
        return sorted(leads, key=lambda lead: lead.created_at, reverse=True)

    def insert_leads(self, leads: list[Lead]) -> list[Lead]:
        with self._lock:
            for lead in leads:
                self._leads[lead.id] = lead
        metrics.increment("leads.persistence.inserted", value=len(leads), tags={"repository": "memory"})
        return list(leads)

    def update_lead(self, lead_id: UUID, updates: dict[str, Any]) -> Lead:
        with self._lock:
            current = self._leads.get(lead_id)
            if current is None:
                raise LeadNotFoundError(lead_id)
            updated = Lead.model_validate({**current.model_dump(), **updates, "updated_at": _utcnow()})
            self._leads[lead_id] = updated
        logger.info(
            "leads.persistence.updated",
            extra={"lead_id": str(lead_id), "fields": sorted(updates), "backend": "memory"},
        )
        return updated

    def delete_leads(self, lead_ids: Iterable[UUID]) -> int:
        targets = set(lead_ids)
        with self._lock:
            removed = [lead_id for lead_id in targets if self._leads.pop(lead_id, None) is not None]
            self._drop_children(set(removed))
        return len(removed)

    def delete_all_leads(self) -> int:
        with self._lock:
            count = len(self._leads)
            self._leads.clear()
            self._messages.clear()
            self._logs.clear()
        return count

    def insert_message(self, message: Message) -> Message:
        with self._lock:
            if message.lead_id not in self._leads:
                raise LeadNotFoundError(message.lead_id)
            self._messages[message.id] = message
        return message

    def get_message(self, message_id: UUID) -> Message:
        with self._lock:
            message = self._messages.get(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    def update_message(self, message_id: UUID, updates: dict[str, Any]) -> Message:
        with self._lock:
            current = self._messages.get(message_id)
            if current is None:
                raise MessageNotFoundError(message_id)
            updated = Message.model_validate({**current.model_dump(), **updates})
            self._messages[message_id] = updated
        return updated

    def list_messages(self, lead_id: UUID) -> list[Message]:
        with self._lock:
            messages = [message for message in self._messages.values() if message.lead_id == lead_id]
        return sorted(messages, key=lambda message: (message.version, message.created_at), reverse=True)

    def list_sent_messages(self) -> list[Message]:
        with self._lock:
            sent = [message for message in self._messages.values() if message.sent_at is not None]
        return sorted(sent, key=lambda message: message.sent_at)

    def append_log(self, entry: OutreachLog) -> OutreachLog:
        with self._lock:
            if entry.lead_id not in self._leads:
                raise LeadNotFoundError(entry.lead_id)
            self._logs.append(entry)
        return entry

    def list_logs(self, lead_id: UUID) -> list[OutreachLog]:
        with self._lock:
            entries = [entry for entry in self._logs if entry.lead_id == lead_id]
        return sorted(entries, key=lambda entry: entry.timestamp, reverse=True)

    def ping(self) -> bool:
        return True

    def _drop_children(self, lead_ids: set[UUID]) -> None:
        for message_id in [key for key, message in self._messages.items() if message.lead_id in lead_ids]:
            del self._messages[message_id]
        self._logs = [entry for entry in self._logs if entry.lead_id not in lead_ids]


class SQLLeadRepository(LeadRepository):
    """SQLModel-backed repository that persists leads to Postgres or SQLite."""

    def __init__(
        self,
        database_url: str,
        *,
        pool_min_size: int | None = None,
        pool_max_size: int | None = None,
        auto_create_schema: bool = False,
    ) -> None:
        if not database_url:
            raise ValueError("DATABASE_URL is required for SQLLeadRepository.")

        parsed_url = make_url(database_url)
        sync_url, connect_args, drivername = coerce_sync_database_url(parsed_url)
        pool_min = max(pool_min_size or settings.db_pool_min_size, 1)
        pool_max = max(pool_max_size or settings.db_pool_max_size, pool_min)
        is_sqlite = drivername.startswith("sqlite")
        engine_kwargs: dict[str, Any] = {
            "echo": settings.debug,
            "connect_args": connect_args,
            "pool_pre_ping": not is_sqlite,
        }
        if not is_sqlite:
            engine_kwargs["pool_size"] = pool_min
            engine_kwargs["max_overflow"] = max(pool_max - pool_min, 0)

        self._engine: Engine = create_engine(sync_url, **engine_kwargs)
        if auto_create_schema:
            SQLModel.metadata.create_all(self._engine)
        self._metrics_tags = {"repository": _resolve_metrics_tag(drivername)}

    @property
    def engine(self) -> Engine:
        return self._engine

    def dispose(self) -> None:
        """Close the underlying SQLAlchemy engine."""
        self._engine.dispose()

    def get_lead(self, lead_id: UUID) -> Lead:
        with self._guard("get_lead", lead_id=lead_id), self._session() as session:
            record = session.get(LeadRecord, lead_id)
            if record is None:
                raise LeadNotFoundError(lead_id)
            return record.to_lead()

    def list_leads(self, *, status: LeadStatus | None = None) -> list[Lead]:
        with self._guard("list_leads"), self._session() as session:
            statement = select(LeadRecord).order_by(LeadRecord.created_at.desc())
            if status is not None:
                statement = statement.where(LeadRecord.lead_status == status.value)
            return [record.to_lead() for record in session.exec(statement).all()]

    def insert_leads(self, leads: list[Lead]) -> list[Lead]:
        with self._guard("insert_leads"), self._session() as session:
            records = [LeadRecord.from_lead(lead) for lead in leads]
            session.add_all(records)
            session.commit()
            for record in records:
                session.refresh(record)
            metrics.increment("leads.persistence.inserted", value=len(records), tags=self._metrics_tags)
            return [record.to_lead() for record in records]

    def update_lead(self, lead_id: UUID, updates: dict[str, Any]) -> Lead:
        with self._guard("update_lead", lead_id=lead_id), self._session() as session:
            record = session.get(LeadRecord, lead_id)
            if record is None:
                raise LeadNotFoundError(lead_id)
            record.apply({**updates, "updated_at": _utcnow()})
            lead = record.to_lead()
            session.add(record)
            session.commit()
            logger.info(
                "leads.persistence.updated",
                extra={"lead_id": str(lead_id), "fields": sorted(updates), **self._metrics_tags},
            )
            return lead

    def delete_leads(self, lead_ids: Iterable[UUID]) -> int:
        targets = list(set(lead_ids))
        if not targets:
            return 0
        with self._guard("delete_leads"), self._session() as session:
            session.exec(delete(OutreachLogRecord).where(OutreachLogRecord.lead_id.in_(targets)))
            session.exec(delete(MessageRecord).where(MessageRecord.lead_id.in_(targets)))
            result = session.exec(delete(LeadRecord).where(LeadRecord.id.in_(targets)))
            session.commit()
            return result.rowcount or 0

    def delete_all_leads(self) -> int:
        with self._guard("delete_all_leads"), self._session() as session:
            session.exec(delete(OutreachLogRecord))
            session.exec(delete(MessageRecord))
            result = session.exec(delete(LeadRecord))
            session.commit()
            return result.rowcount or 0

    def insert_message(self, message: Message) -> Message:
        with self._guard("insert_message", lead_id=message.lead_id), self._session() as session:
            if session.get(LeadRecord, message.lead_id) is None:
                raise LeadNotFoundError(message.lead_id)
            record = MessageRecord.from_message(message)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.to_message()

    def get_message(self, message_id: UUID) -> Message:
        with self._guard("get_message"), self._session() as session:
            record = session.get(MessageRecord, message_id)
            if record is None:
                raise MessageNotFoundError(message_id)
            return record.to_message()

    def update_message(self, message_id: UUID, updates: dict[str, Any]) -> Message:
        with self._guard("update_message"), self._session() as session:
            record = session.get(MessageRecord, message_id)
            if record is None:
                raise MessageNotFoundError(message_id)
            record.apply(updates)
            message = record.to_message()
            session.add(record)
            session.commit()
            return message

    def list_messages(self, lead_id: UUID) -> list[Message]:
        with self._guard("list_messages", lead_id=lead_id), self._session() as session:
            statement = (
                select(MessageRecord)
                .where(MessageRecord.lead_id == lead_id)
                .order_by(MessageRecord.version.desc(), MessageRecord.created_at.desc())
            )
            return [record.to_message() for record in session.exec(statement).all()]

    def list_sent_messages(self) -> list[Message]:
        with self._guard("list_sent_messages"), self._session() as session:
            statement = (
                select(MessageRecord)
                .where(MessageRecord.sent_at.is_not(None))
                .order_by(MessageRecord.sent_at.asc())
            )
            return [record.to_message() for record in session.exec(statement).all()]

    def append_log(self, entry: OutreachLog) -> OutreachLog:
        with self._guard("append_log", lead_id=entry.lead_id), self._session() as session:
            if session.get(LeadRecord, entry.lead_id) is None:
                raise LeadNotFoundError(entry.lead_id)
            record = OutreachLogRecord.from_log(entry)
            session.add(record)
            session.commit()
            session.refresh(record)
            return record.to_log()

    def list_logs(self, lead_id: UUID) -> list[OutreachLog]:
        with self._guard("list_logs", lead_id=lead_id), self._session() as session:
            statement = (
                select(OutreachLogRecord)
                .where(OutreachLogRecord.lead_id == lead_id)
                .order_by(OutreachLogRecord.timestamp.desc())
            )
            return [record.to_log() for record in session.exec(statement).all()]

    def ping(self) -> bool:
        try:
            with self._session() as session:
                session.exec(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.exception("leads.persistence.ping_failed", extra=self._metrics_tags)
            return False

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self._engine) as session:
            yield session

    @contextmanager
    def _guard(self, operation: str, *, lead_id: UUID | None = None) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            metrics.increment("leads.persistence.errors", tags={**self._metrics_tags, "operation": operation})
            logger.exception(
                "leads.persistence.error",
                extra={
                    "operation": operation,
                    "lead_id": str(lead_id) if lead_id else None,
                    "backend": self._metrics_tags["repository"],
                },
            )
            raise PersistenceError(f"Failed to {operation.replace('_', ' ')}.") from exc


def coerce_sync_database_url(url: URL) -> tuple[str, dict[str, Any], str]:
    """Return a sync driver URL, its connect args, and the driver name.

    Async drivers are swapped for psycopg2 and an ``ssl`` query flag becomes
    ``sslmode=require``.
    """
    drivername = url.drivername
    connect_args: dict[str, Any] = {}
    if drivername.endswith("+asyncpg"):
        drivername = drivername.replace("+asyncpg", "+psycopg2")
    elif drivername.endswith("+psycopg"):
        drivername = drivername.replace("+psycopg", "+psycopg2")
    sync_url = url.set(drivername=drivername)
    query = dict(sync_url.query) if sync_url.query else {}
    removed_ssl = query.pop("ssl", None) is not None
    sync_url = sync_url.set(query=query)

    if drivername.startswith("postgresql") and "sslmode" not in query and removed_ssl:
        connect_args["sslmode"] = "require"
    if drivername.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    return sync_url.render_as_string(hide_password=False), connect_args, drivername


def _resolve_metrics_tag(drivername: str) -> str:
    if drivername.startswith("sqlite"):
        return "sqlite"
    return "postgres"


def build_lead_repository(database_url: str | None = None) -> LeadRepository:
    """Instantiate a LeadRepository using DATABASE_URL when available."""
    resolved_url = database_url or settings.database_url
    if not resolved_url:
        logger.info("leads.repository.initialized", extra={"backend": "memory"})
        return InMemoryLeadRepository()
    try:
        repository = SQLLeadRepository(
            resolved_url,
            pool_min_size=settings.db_pool_min_size,
            pool_max_size=settings.db_pool_max_size,
            auto_create_schema=settings.db_auto_create_schema,
        )
    except (SQLAlchemyError, ValueError):
        logger.exception("leads.repository.init_failed", extra={"backend": "database"})
        raise
    logger.info("leads.repository.initialized", extra={"backend": "database"})
    return repository
