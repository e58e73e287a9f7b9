"""CSV lead import with column-name normalization."""

from __future__ import annotations

import csv
import io
import logging
from typing import Final

from pydantic import ValidationError

from app.models.lead import CLOSED_FIELD_CHOICES, LeadCreate
from app.services.enrichment.catalog import LEAD_SOURCES, coerce_choice

logger = logging.getLogger(__name__)

CSV_FIELD_MAP: Final[dict[str, str]] = {
    "company": "company",
    "company name": "company",
    "organization": "company",
    "website": "company_website",
    "company website": "company_website",
    "url": "company_website",
    "contact name": "contact_name",
    "full name": "contact_name",
    "name": "contact_name",
    "first name": "first_name",
    "last name": "last_name",
    "role": "contact_role",
    "title": "contact_role",
    "job title": "contact_role",
    "position": "contact_role",
    "email": "contact_email",
    "email address": "contact_email",
    "linkedin": "contact_linkedin",
    "linkedin url": "contact_linkedin",
    "source": "lead_source",
    "lead source": "lead_source",
    "type": "lead_type",
    "lead type": "lead_type",
    "employees": "company_size_employees",
    "company size": "company_size_employees",
    "revenue": "company_size_revenue",
}


def normalize_row(row: dict[str | None, str | None]) -> dict[str, str]:
    """Map raw CSV headers onto lead fields; unknown headers pass through lower-cased."""
    result: dict[str, str] = {}
    for key, value in row.items():
        if key is None or not value or not value.strip():
            continue
        header = key.strip().lower()
        result[CSV_FIELD_MAP.get(header, header)] = value.strip()
    if not result.get("contact_name") and (result.get("first_name") or result.get("last_name")):
        result["contact_name"] = " ".join(part for part in (result.get("first_name"), result.get("last_name")) if part)
    return result


def parse_leads_csv(content: str) -> list[LeadCreate]:
    """Parse CSV text into lead payloads. Rows without a company are skipped."""
    reader = csv.DictReader(io.StringIO(content.lstrip("\ufeff")))
    leads: list[LeadCreate] = []
    skipped = 0
    for line_number, raw in enumerate(reader, start=2):
        row = normalize_row(raw)
        if not row.get("company"):
            skipped += 1
            continue
        row["lead_source"] = coerce_choice(row.get("lead_source"), LEAD_SOURCES) or "Inbound"
        for field, choices in CLOSED_FIELD_CHOICES.items():
            matched = coerce_choice(row.pop(field, None), choices)
            if matched:
                row[field] = matched
        try:
            leads.append(LeadCreate.model_validate({key: row[key] for key in row if key in LeadCreate.model_fields}))
        except ValidationError as exc:
            logger.warning("leads.import.row_rejected", extra={"line": line_number, "error": str(exc)})
            skipped += 1
    logger.info("leads.import.parsed", extra={"accepted": len(leads), "skipped": skipped})
    return leads
