"""SMTP delivery for outreach emails."""

from __future__ import annotations

import logging
import smtplib
import time
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Protocol
from urllib.parse import unquote, urlparse

from app.config import settings
from app.observability.metrics import metrics
from app.services.errors import DeliveryError

logger = logging.getLogger(__name__)

DEFAULT_SMTP_TIMEOUT = 15.0


class Mailer(Protocol):
    """Outbound email contract: returns the provider message id."""

    def send(self, *, to_address: str, subject: str, body: str) -> str:
        ...


@dataclass(frozen=True)
class SMTPConfig:
    host: str
    port: int
    username: str | None
    password: str | None
    use_ssl: bool
    disable_tls: bool
    from_address: str


def build_smtp_config(smtp_url: str | None, from_address: str | None) -> SMTPConfig:
    missing: list[str] = []
    if not smtp_url:
        missing.append("EMAIL_SMTP_URL")
    if not from_address:
        missing.append("EMAIL_FROM")
    if missing:
        raise DeliveryError(
            f"Sending email requires the following env vars: {', '.join(missing)}.",
            code="503_DELIVERY_NOT_CONFIGURED",
        )
    parsed = urlparse(smtp_url)
    if parsed.scheme not in {"smtp", "smtps", "smtp+ssl"}:
        raise DeliveryError(
            "EMAIL_SMTP_URL must start with smtp:// or smtps://",
            code="503_DELIVERY_NOT_CONFIGURED",
        )
    use_ssl = parsed.scheme in {"smtps", "smtp+ssl"}
    return SMTPConfig(
        host=parsed.hostname or "localhost",
        port=parsed.port or (465 if use_ssl else 587),
        username=unquote(parsed.username) if parsed.username else None,
        password=unquote(parsed.password) if parsed.password else None,
        use_ssl=use_ssl,
        disable_tls=bool(settings.email_disable_tls),
        from_address=from_address,
    )


class SMTPMailer:
    """Sends plain-text email through a configured SMTP relay."""

    def __init__(self, config: SMTPConfig) -> None:
        self._config = config

    @classmethod
    def from_settings(cls) -> "SMTPMailer":
        return cls(build_smtp_config(settings.email_smtp_url, settings.email_from))

    def send(self, *, to_address: str, subject: str, body: str) -> str:
        config = self._config
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = config.from_address
        message["To"] = to_address
        message["Date"] = formatdate(localtime=True)
        message["Message-ID"] = make_msgid()
        message.set_content(body)

        start = time.perf_counter()
        try:
            client = self._create_client()
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"Could not connect to {config.host}:{config.port}: {exc}") from exc
        try:
            if not config.use_ssl:
                client.ehlo()
                if not config.disable_tls:
                    client.starttls()
                    client.ehlo()
            if config.username:
                client.login(config.username, config.password or "")
            client.send_message(message, to_addrs=[to_address])
        except (smtplib.SMTPException, OSError) as exc:
            logger.error(
                "outreach.email.error",
                extra={"host": config.host, "port": config.port, "error": str(exc)},
            )
            raise DeliveryError(f"SMTP delivery failed for {config.host}:{config.port}: {exc}") from exc
        finally:
            try:
                client.quit()
            except (smtplib.SMTPException, OSError):  # pragma: no cover - best-effort cleanup
                logger.debug("SMTP quit failed", exc_info=True)

        metrics.timing("outreach.email.duration_ms", (time.perf_counter() - start) * 1000)
        logger.info("outreach.email.sent", extra={"message_id": message["Message-ID"]})
        return message["Message-ID"]

    def _create_client(self) -> smtplib.SMTP:
        if self._config.use_ssl:
            return smtplib.SMTP_SSL(self._config.host, self._config.port, timeout=DEFAULT_SMTP_TIMEOUT)
        return smtplib.SMTP(self._config.host, self._config.port, timeout=DEFAULT_SMTP_TIMEOUT)
