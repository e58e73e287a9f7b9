"""Gap-fill merging and strategic-priority normalization."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any, Final

from pydantic import ValidationError

from app.models.lead import PriorityItem, StrategicPriorities
from app.services.enrichment.catalog import coerce_choice, value_prop_keys

logger = logging.getLogger(__name__)

ENRICHABLE_FIELDS: Final[tuple[str, ...]] = (
    "company_website",
    "lead_type",
    "industry",
    "company_size_employees",
    "company_size_revenue",
    "lead_priority",
    "key_vp",
    "strategic_priorities",
    "company_description",
    "value_proposition",
    "news_sources",
)

CONTACT_FIELDS: Final[tuple[str, ...]] = (
    "contact_name",
    "contact_role",
    "contact_email",
    "contact_linkedin",
    "secondary_contact_name",
    "secondary_contact_email",
    "secondary_contact_linkedin",
)

_BUCKETS: Final[tuple[str, ...]] = ("news_and_press", "company_content", "social_media")
_BULLET_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, StrategicPriorities):
        return value.is_empty()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def merge_fill_gaps(
    current: Mapping[str, Any],
    proposed: Mapping[str, Any],
    fields: Iterable[str],
    *,
    overwrite: Iterable[str] = (),
) -> dict[str, Any]:
    """Return the updates that fill empty fields of ``current`` from ``proposed``.

    Fields in ``overwrite`` take any non-empty proposed value regardless of the
    current one. Empty proposals never produce an update.
    """
    always = set(overwrite)
    updates: dict[str, Any] = {}
    for field in fields:
        value = proposed.get(field)
        if is_empty(value):
            continue
        if field in always:
            if current.get(field) != value:
                updates[field] = value
            continue
        if is_empty(current.get(field)):
            updates[field] = value
    return updates


def _coerce_items(raw: Any) -> list[PriorityItem]:
    if raw is None:
        return []
    if isinstance(raw, (str, Mapping, PriorityItem)):
        raw = [raw]
    items: list[PriorityItem] = []
    for entry in raw if isinstance(raw, (list, tuple)) else []:
        if isinstance(entry, PriorityItem):
            items.append(entry)
        elif isinstance(entry, str):
            text = _BULLET_PREFIX.sub("", entry).strip()
            if text:
                items.append(PriorityItem(text=text))
        elif isinstance(entry, Mapping):
            text = entry.get("text") or entry.get("title")
            if isinstance(text, str) and text.strip():
                url = entry.get("url") or entry.get("source_url")
                items.append(PriorityItem(text=text.strip(), url=url if isinstance(url, str) else None))
    return items


def normalize_strategic_priorities(value: Any) -> StrategicPriorities | None:
    """Accept a JSON string, a mapping, a model instance, or a legacy flat string.

    Legacy flat strings become ``company_content`` bullets, one per line.
    Canonical input round-trips unchanged.
    """
    if value is None:
        return None
    if isinstance(value, StrategicPriorities):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            decoded = json.loads(stripped)
        except ValueError:
            decoded = None
        if isinstance(decoded, Mapping):
            value = decoded
        elif isinstance(decoded, list):
            return StrategicPriorities(company_content=_coerce_items(decoded))
        else:
            lines = [line for line in stripped.splitlines() if line.strip()]
            return StrategicPriorities(company_content=_coerce_items(lines))
    if isinstance(value, Mapping):
        try:
            return StrategicPriorities(**{bucket: _coerce_items(value.get(bucket)) for bucket in _BUCKETS})
        except ValidationError:  # pragma: no cover - _coerce_items only yields valid items
            logger.warning("enrichment.priorities.invalid", extra={"keys": sorted(value)})
            return None
    return None


def overlay_priorities(
    base: StrategicPriorities | None,
    *,
    company_content: list[PriorityItem],
    social_media: list[PriorityItem],
) -> StrategicPriorities | None:
    """Replace model-guessed buckets with adapter results where adapters found any."""
    merged = (base or StrategicPriorities()).model_copy(deep=True)
    if company_content:
        merged.company_content = list(company_content)
    if social_media:
        merged.social_media = list(social_media)
    return None if merged.is_empty() else merged


def normalize_key_vp(raw: Any, category: str | None) -> str:
    """Reduce model output to 1-2 keys of the category's catalog, comma-separated.

    Unknown keys are dropped; when nothing valid remains the catalog's first
    key is used so the field is never left empty.
    """
    allowed = value_prop_keys(category)
    if isinstance(raw, str):
        candidates: list[Any] = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        candidates = list(raw)
    else:
        candidates = []
    chosen: list[str] = []
    for candidate in candidates:
        key = coerce_choice(candidate, tuple(allowed))
        if key and key not in chosen:
            chosen.append(key)
    return ", ".join(chosen[:2] or allowed[:1])
