"""Lead enrichment pipeline.

One enrichment runs a fixed sequence of phases against a single lead:

1. resolve the website when none is stored
2. gather news, strategic priorities, and social mentions concurrently
3. classify category and size with a short model call (skipped when both are known)
4. resolve decision-maker titles and search for them (skipped when a contact is known)
5. run the composite enrichment prompt
6. decode the model output
7. normalize structured fields and overlay adapter results
8. resolve the contact email
9. gap-fill merge into the stored record and mark it Enriched

Adapters fail soft. Model and persistence failures abort the enrichment and
nothing is written.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from app.clients.llm import LLMClient
from app.config import settings
from app.models.lead import BatchItemResult, Lead, LeadStatus, NewsSource, PriorityItem, StrategicPriorities
from app.observability.metrics import metrics
from app.services.decoding import decode_json_object
from app.services.enrichment.catalog import (
    EMPLOYEE_BRACKETS,
    INDUSTRIES,
    LEAD_CATEGORIES,
    PRIORITY_TIERS,
    REVENUE_BRACKETS,
    coerce_choice,
    is_merchant,
)
from app.services.enrichment.contacts import VerifiedContactLookup, is_valid_email, resolve_contact_email
from app.services.enrichment.merge import (
    CONTACT_FIELDS,
    ENRICHABLE_FIELDS,
    merge_fill_gaps,
    normalize_key_vp,
    normalize_strategic_priorities,
    overlay_priorities,
)
from app.services.enrichment.prompts import (
    ResearchBundle,
    render_classification_prompt,
    render_enrichment_prompt,
)
from app.services.enrichment.roles import resolve_role_priorities, size_bracket_for
from app.services.enrichment.sources import (
    DecisionMakerAdapter,
    NewsAdapter,
    NewsResult,
    PrioritiesAdapter,
    SocialAdapter,
    WebsiteResolver,
)
from app.services.errors import LeadDeskError, ModelOutputError
from app.services.leads.repositories import LeadRepository
from app.services.llm import LLMContext, invoke_model

logger = logging.getLogger(__name__)

_MERGED_CONTACT_FIELDS = tuple(field for field in CONTACT_FIELDS if field != "contact_email")


@dataclass(frozen=True)
class Classification:
    ran: bool
    category: str | None = None
    size: str | None = None


def _clean_str(value: Any) -> str | None:
    if isinstance(value, str) and value.strip() and value.strip().lower() not in {"null", "unknown", "n/a"}:
        return value.strip()
    return None


class LeadEnricher:
    """Runs the enrichment pipeline for one lead or a batch of leads."""

    def __init__(
        self,
        *,
        repository: LeadRepository,
        llm_client: LLMClient,
        context: LLMContext,
        news: NewsAdapter,
        priorities: PrioritiesAdapter,
        social: SocialAdapter,
        decision_makers: DecisionMakerAdapter,
        website_resolver: WebsiteResolver,
        contact_lookup: VerifiedContactLookup | None = None,
    ) -> None:
        self._repository = repository
        self._llm = llm_client
        self._context = context
        self._news = news
        self._priorities = priorities
        self._social = social
        self._decision_makers = decision_makers
        self._website_resolver = website_resolver
        self._contact_lookup = contact_lookup

    def enrich(self, lead_id: UUID, *, verify_email: bool = False) -> Lead:
        """Enrich one lead and return the stored result."""
        tags = {"verify_email": verify_email}
        with metrics.timer("enrichment.latency_ms", tags=tags) as timer_tags:
            try:
                persisted, updates = self._run(lead_id, verify_email=verify_email)
            except LeadDeskError as exc:
                timer_tags["outcome"] = "error"
                metrics.increment("enrichment.errors", tags={**tags, "code": exc.code})
                raise
            timer_tags["outcome"] = "success"

        metrics.increment("enrichment.success", tags=tags)
        logger.info(
            "enrichment.persisted",
            extra={"lead_id": str(lead_id), "fields": sorted(updates), "category": persisted.lead_type},
        )
        return persisted

    def _run(self, lead_id: UUID, *, verify_email: bool) -> tuple[Lead, dict[str, Any]]:
        lead = self._repository.get_lead(lead_id)
        logger.info("enrichment.started", extra={"lead_id": str(lead_id), "company": lead.company})

        website = lead.company_website or self._website_resolver.resolve(lead.company)
        news, priorities, social = self._gather_context(lead, website)
        classification = self._classify(lead, news)
        category = classification.category or lead.lead_type
        size = classification.size or lead.company_size_employees
        titles = resolve_role_priorities(category, size_bracket_for(size))
        decision_makers = ""
        if not lead.contact_name:
            decision_makers = self._decision_makers.search(lead.company, website, titles).text

        research = ResearchBundle(
            website=website,
            news=news,
            priorities=priorities,
            social=social,
            category=category,
            size_bracket=size,
            titles=titles,
            decision_makers=decision_makers,
        )
        raw = invoke_model(
            self._llm,
            self._context,
            render_enrichment_prompt(lead, research),
            purpose="enrichment",
            max_tokens=settings.enrichment_max_tokens,
        )
        payload = decode_json_object(raw)

        proposed = self._normalize(payload, lead, research, classification)
        updates = merge_fill_gaps(
            self._current_values(lead),
            proposed,
            ENRICHABLE_FIELDS + _MERGED_CONTACT_FIELDS,
            overwrite=("lead_type",) if classification.ran else (),
        )
        updates.update(self._resolve_email(lead, payload, proposed, verify_email=verify_email))
        updates["lead_status"] = LeadStatus.ENRICHED

        persisted = self._repository.update_lead(lead.id, updates)
        return persisted, updates

    def enrich_many(self, lead_ids: Iterable[UUID], *, verify_email: bool = False) -> list[BatchItemResult]:
        """Bulk qualify: sequential, one failure never stops the batch."""
        results: list[BatchItemResult] = []
        for lead_id in lead_ids:
            try:
                self.enrich(lead_id, verify_email=verify_email)
            except LeadDeskError as exc:
                logger.warning(
                    "enrichment.batch.item_failed",
                    extra={"lead_id": str(lead_id), "code": exc.code, "error": str(exc)},
                )
                results.append(BatchItemResult(id=lead_id, success=False, error=str(exc)))
            else:
                results.append(BatchItemResult(id=lead_id, success=True))
        metrics.gauge("enrichment.batch.size", len(results))
        return results

    def _gather_context(
        self, lead: Lead, website: str | None
    ) -> tuple[NewsResult, list[PriorityItem], list[PriorityItem]]:
        with concurrent.futures.ThreadPoolExecutor(max_workers=3) as executor:
            news_future = executor.submit(self._news.search, lead.company, website)
            priorities_future = executor.submit(self._priorities.search, lead.company, website)
            social_future = executor.submit(
                self._social.search, lead.company, lead.contact_name, lead.secondary_contact_name
            )
            return news_future.result(), priorities_future.result(), social_future.result()

    def _classify(self, lead: Lead, news: NewsResult) -> Classification:
        if lead.lead_type and lead.company_size_employees:
            return Classification(ran=False)
        raw = invoke_model(
            self._llm,
            self._context,
            render_classification_prompt(lead, news.excerpt),
            purpose="classification",
            max_tokens=settings.classification_max_tokens,
        )
        try:
            payload = decode_json_object(raw)
        except ModelOutputError:
            logger.warning("enrichment.classification.unparsed", extra={"lead_id": str(lead.id)})
            return Classification(ran=True)
        return Classification(
            ran=True,
            category=coerce_choice(payload.get("lead_type"), LEAD_CATEGORIES),
            size=coerce_choice(payload.get("company_size_employees"), EMPLOYEE_BRACKETS),
        )

    def _normalize(
        self,
        payload: dict[str, Any],
        lead: Lead,
        research: ResearchBundle,
        classification: Classification,
    ) -> dict[str, Any]:
        category = classification.category or coerce_choice(payload.get("lead_type"), LEAD_CATEGORIES)
        branch = (category if classification.ran else None) or lead.lead_type or category

        priorities = normalize_strategic_priorities(payload.get("strategic_priorities")) or StrategicPriorities()
        if not priorities.news_and_press:
            priorities.news_and_press = [PriorityItem(text=item.title, url=item.url) for item in research.news.items]
        priorities = overlay_priorities(
            priorities, company_content=research.priorities, social_media=research.social
        )

        proposed: dict[str, Any] = {
            "company_website": research.website or _clean_str(payload.get("company_website")),
            "lead_type": category,
            "industry": (
                coerce_choice(payload.get("industry"), INDUSTRIES) if is_merchant(branch) else None
            ),
            "company_size_employees": classification.size
            or coerce_choice(payload.get("company_size_employees"), EMPLOYEE_BRACKETS),
            "company_size_revenue": coerce_choice(payload.get("company_size_revenue"), REVENUE_BRACKETS),
            "lead_priority": coerce_choice(payload.get("lead_priority"), PRIORITY_TIERS),
            "key_vp": normalize_key_vp(payload.get("key_vp"), branch),
            "strategic_priorities": priorities,
            "company_description": _clean_str(payload.get("company_description")),
            "value_proposition": _clean_str(payload.get("value_proposition")),
            "news_sources": [NewsSource(title=item.title, url=item.url) for item in research.news.items],
        }
        for field in _MERGED_CONTACT_FIELDS:
            proposed[field] = _clean_str(payload.get(field))
        if not is_valid_email(proposed["secondary_contact_email"]):
            proposed["secondary_contact_email"] = None
        return proposed

    def _resolve_email(
        self,
        lead: Lead,
        payload: dict[str, Any],
        proposed: dict[str, Any],
        *,
        verify_email: bool,
    ) -> dict[str, Any]:
        resolution = resolve_contact_email(
            known_email=lead.contact_email,
            model_email=_clean_str(payload.get("contact_email")),
            contact_name=lead.contact_name or proposed.get("contact_name"),
            company=lead.company,
            website=lead.company_website or proposed.get("company_website"),
            linkedin_url=lead.contact_linkedin or proposed.get("contact_linkedin"),
            lookup=self._contact_lookup if verify_email else None,
        )
        if resolution is None:
            return {}
        logger.info(
            "enrichment.email.resolved",
            extra={"lead_id": str(lead.id), "source": resolution.source},
        )
        updates: dict[str, Any] = {
            "contact_email": resolution.email,
            "contact_email_inferred": resolution.inferred,
            "contact_email_verified": resolution.verified,
        }
        if resolution.linkedin_url and not (lead.contact_linkedin or proposed.get("contact_linkedin")):
            updates["contact_linkedin"] = resolution.linkedin_url
        return updates

    @staticmethod
    def _current_values(lead: Lead) -> dict[str, Any]:
        return {field: getattr(lead, field) for field in ENRICHABLE_FIELDS + CONTACT_FIELDS}
