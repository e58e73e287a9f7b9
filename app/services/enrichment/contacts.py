"""Contact email resolution: known, model-found, verified, or synthesized."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import ParseResult, urlparse

from app.clients.apollo import ApolloPerson

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_NAME_TOKEN = re.compile(r"[a-z]+")
_HONORIFICS = frozenset({"mr", "mrs", "ms", "dr", "prof", "jr", "sr", "ii", "iii"})


class VerifiedContactLookup(Protocol):
    def lookup(
        self,
        *,
        name: str,
        company: str,
        domain: str | None,
        linkedin_url: str | None,
    ) -> ApolloPerson | None:
        ...


@dataclass(frozen=True)
class EmailResolution:
    """Outcome of email resolution for a lead without a known email."""

    email: str
    inferred: bool
    verified: bool
    source: str
    linkedin_url: str | None = None
    title: str | None = None


def is_valid_email(value: object) -> bool:
    return isinstance(value, str) and bool(_EMAIL_PATTERN.match(value.strip()))


def parse_url(url: object) -> ParseResult | None:
    """``urlparse`` that returns None for non-strings and malformed URLs (unbalanced IPv6 brackets)."""
    if not isinstance(url, str):
        return None
    try:
        return urlparse(url)
    except ValueError:
        return None


def domain_from_website(website: str | None) -> str | None:
    """Return the bare host of a website (``https://www.acme.com/x`` -> ``acme.com``)."""
    if not isinstance(website, str) or not website.strip():
        return None
    candidate = website.strip()
    if "://" not in candidate:
        candidate = f"https://{candidate}"
    parsed = parse_url(candidate)
    host = ((parsed.hostname if parsed else None) or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def _name_tokens(name: str | None) -> list[str]:
    if not name:
        return []
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii").lower()
    tokens = []
    for raw in ascii_name.split():
        token = "".join(_NAME_TOKEN.findall(raw))
        if token and token not in _HONORIFICS:
            tokens.append(token)
    full_tokens = [token for token in tokens if len(token) > 1]
    return full_tokens or tokens


def synthesize_email(name: str | None, domain: str) -> str:
    """Deterministic guess: first.last@domain, first@domain, or contact@domain."""
    tokens = _name_tokens(name)
    if len(tokens) >= 2:
        return f"{tokens[0]}.{tokens[-1]}@{domain}"
    if tokens:
        return f"{tokens[0]}@{domain}"
    return f"contact@{domain}"


def resolve_contact_email(
    *,
    known_email: str | None,
    model_email: str | None,
    contact_name: str | None,
    company: str,
    website: str | None,
    linkedin_url: str | None = None,
    lookup: VerifiedContactLookup | None = None,
) -> EmailResolution | None:
    """Pick the contact email for a lead.

    Returns None when nothing should change: a known email is never replaced,
    and without a model email, a verified match, or a domain there is nothing
    to write. Only the synthesized fallback is marked inferred and only the
    verified lookup is marked verified.
    """
    if known_email:
        return None
    if is_valid_email(model_email):
        return EmailResolution(email=model_email.strip(), inferred=False, verified=False, source="model")

    domain = domain_from_website(website)
    if lookup is not None and contact_name:
        person = lookup.lookup(
            name=contact_name,
            company=company,
            domain=domain,
            linkedin_url=linkedin_url,
        )
        if person is not None and is_valid_email(person.email):
            return EmailResolution(
                email=person.email,
                inferred=False,
                verified=True,
                source="verified",
                linkedin_url=person.linkedin_url,
                title=person.title,
            )

    if domain:
        return EmailResolution(
            email=synthesize_email(contact_name, domain),
            inferred=True,
            verified=False,
            source="synthesized",
        )
    return None
