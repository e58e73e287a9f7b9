"""AI-assisted lead generation: find matching companies and one decision maker each."""

from __future__ import annotations

import concurrent.futures
import logging
import re
from typing import Any

from app.clients.llm import LLMClient
from app.models.lead import GeneratedLead
from app.services.decoding import decode_json_array, decode_json_object
from app.services.enrichment.contacts import is_valid_email
from app.services.enrichment.prompts import render_company_list_prompt, render_person_extraction_prompt
from app.services.enrichment.sources import DecisionMakerAdapter
from app.services.errors import LeadNotReadyError, ModelOutputError
from app.services.llm import LLMContext, invoke_model

logger = logging.getLogger(__name__)

COMPANY_COUNT = 5


def split_titles(raw: str | list[str]) -> list[str]:
    """Accept comma/newline separated titles or a list of titles."""
    parts = raw if isinstance(raw, list) else re.split(r"[,\n]", raw)
    return [part.strip() for part in parts if part and part.strip()]


def _text(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


class LeadProspector:
    """Proposes unsaved leads for a free-text company profile."""

    def __init__(
        self,
        *,
        llm_client: LLMClient,
        context: LLMContext,
        decision_makers: DecisionMakerAdapter,
        max_workers: int = COMPANY_COUNT,
    ) -> None:
        self._llm = llm_client
        self._context = context
        self._decision_makers = decision_makers
        self._max_workers = max_workers

    def generate(self, company_profile: str, titles: str | list[str]) -> list[GeneratedLead]:
        title_list = split_titles(titles)
        if not company_profile.strip() or not title_list:
            raise LeadNotReadyError("A company profile and at least one decision-maker title are required.")

        raw = invoke_model(
            self._llm,
            self._context,
            render_company_list_prompt(company_profile, COMPANY_COUNT),
            purpose="prospecting",
            max_tokens=800,
        )
        companies = [
            {
                "company": _text(entry.get("company")),
                "website": _text(entry.get("website")),
                "company_size": _text(entry.get("company_size")),
            }
            for entry in decode_json_array(raw)
            if isinstance(entry, dict) and _text(entry.get("company"))
        ][:COMPANY_COUNT]
        if not companies:
            raise ModelOutputError("Could not generate a company list. Try a more specific profile description.")

        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            searches = list(
                executor.map(
                    lambda entry: self._decision_makers.search(entry["company"], entry["website"], title_list),
                    companies,
                )
            )
            people = list(
                executor.map(
                    lambda pair: self._extract_person(pair[1].text, pair[0]["company"], title_list),
                    zip(companies, searches),
                )
            )

        leads = [self._to_lead(entry, person, title_list) for entry, person in zip(companies, people)]
        logger.info("prospecting.generated", extra={"count": len(leads)})
        return leads

    def _extract_person(self, search_text: str, company: str, titles: list[str]) -> dict[str, Any]:
        if not search_text.strip():
            return {}
        raw = invoke_model(
            self._llm,
            self._context,
            render_person_extraction_prompt(search_text, company, titles),
            purpose="prospecting",
            max_tokens=300,
        )
        try:
            return decode_json_object(raw)
        except ModelOutputError:
            logger.warning("prospecting.person.unparsed", extra={"company": company})
            return {}

    @staticmethod
    def _to_lead(entry: dict[str, Any], person: dict[str, Any], titles: list[str]) -> GeneratedLead:
        name = _text(person.get("name"))
        email = person.get("email") if is_valid_email(person.get("email")) else None
        return GeneratedLead(
            company=entry["company"],
            company_website=entry["website"],
            company_size=entry["company_size"],
            contact_name=name or f"Decision Maker at {entry['company']}",
            contact_role=_text(person.get("title")) or titles[0],
            contact_email=email.strip() if email else None,
            contact_linkedin=_text(person.get("linkedin_url")),
            is_inferred=bool(person.get("is_inferred", True)) or not name,
        )
