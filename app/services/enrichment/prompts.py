"""Prompt rendering for classification, enrichment, drafting, and prospecting."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field

from app.models.lead import Lead, Platform, PriorityItem
from app.services.enrichment.catalog import (
    EMPLOYEE_BRACKETS,
    INDUSTRIES,
    LEAD_CATEGORIES,
    PRIORITY_TIERS,
    REVENUE_BRACKETS,
    is_merchant,
    value_prop_catalog,
)
from app.services.enrichment.sources import NewsResult


@dataclass(frozen=True)
class ResearchBundle:
    """Everything gathered before the full enrichment call."""

    website: str | None
    news: NewsResult = field(default_factory=NewsResult)
    priorities: list[PriorityItem] = field(default_factory=list)
    social: list[PriorityItem] = field(default_factory=list)
    category: str | None = None
    size_bracket: str | None = None
    titles: list[str] = field(default_factory=list)
    decision_makers: str = ""


def _known(value: object) -> str:
    return str(value) if value not in (None, "") else "Unknown"


def _bullets(items: Sequence[PriorityItem]) -> str:
    if not items:
        return "None found."
    return "\n".join(f"- {item.text}" + (f" ({item.url})" if item.url else "") for item in items)


def render_classification_prompt(lead: Lead, news_excerpt: str) -> str:
    return (
        "Classify this company for a crypto payments sales team. Return JSON only.\n"
        f"Company: {lead.company}\n"
        f"Website: {_known(lead.company_website)}\n"
        f"Recent news excerpt: {news_excerpt or 'None available'}\n\n"
        f"lead_type must be one of {json.dumps(list(LEAD_CATEGORIES))}.\n"
        f"company_size_employees must be one of {json.dumps(list(EMPLOYEE_BRACKETS))}.\n"
        'Return {"lead_type": ..., "company_size_employees": ...}; use null when unsure.'
    )


def render_enrichment_prompt(lead: Lead, research: ResearchBundle) -> str:
    """Single composite prompt covering every enrichable field."""
    category = research.category or lead.lead_type
    catalog = value_prop_catalog(category)
    catalog_lines = "\n".join(f'- "{entry["key"]}": {entry["description"]}' for entry in catalog)
    titles = ", ".join(research.titles) if research.titles else "Any senior decision maker"
    contact_section = (
        f"Contact/team information found:\n{research.decision_makers}\n\n" if research.decision_makers else ""
    )
    industry_rule = (
        f"- industry: one of {json.dumps(list(INDUSTRIES))}.\n"
        if is_merchant(category)
        else "- industry: null (only Merchant leads carry an industry).\n"
    )
    return (
        "You are qualifying a B2B sales lead. Fill in every field you can support from the context below.\n\n"
        f"Company: {lead.company}\n"
        f"Website: {_known(research.website or lead.company_website)}\n"
        f"Category: {_known(category)}\n"
        f"Employee bracket: {_known(research.size_bracket or lead.company_size_employees)}\n\n"
        f"Recent news:\n{research.news.text or 'No recent news found in the last 90 days.'}\n\n"
        f"Strategic priorities from research:\n{_bullets(research.priorities)}\n\n"
        f"Social media mentions:\n{_bullets(research.social)}\n\n"
        f"{contact_section}"
        "Current known contact info:\n"
        f"- Name: {_known(lead.contact_name)}\n"
        f"- Role: {_known(lead.contact_role)}\n"
        f"- Email: {_known(lead.contact_email)}\n\n"
        "Instructions:\n"
        f"- Target titles, in priority order (stop at the first match): {titles}.\n"
        "- The contact must be a CURRENT employee of this exact company. Reject former employees and people "
        "whose LinkedIn headline names a different company or legal entity.\n"
        "- Only return a contact_email that appears verbatim in the context. Never guess an address.\n"
        f"- lead_type: one of {json.dumps(list(LEAD_CATEGORIES))}.\n"
        f"{industry_rule}"
        f"- company_size_employees: one of {json.dumps(list(EMPLOYEE_BRACKETS))}.\n"
        f"- company_size_revenue: one of {json.dumps(list(REVENUE_BRACKETS))}.\n"
        f"- lead_priority: one of {json.dumps(list(PRIORITY_TIERS))}.\n"
        "- key_vp: pick 1 or 2 keys from this catalog that fit THIS company, not a default:\n"
        f"{catalog_lines}\n"
        "- value_proposition: 2-3 sentences on why the chosen key_vp matters to this company specifically.\n"
        "- company_description: 2-3 factual sentences on what the company does and who its customers are.\n"
        "- strategic_priorities: cite the news/press items you relied on.\n\n"
        "Return ONLY valid JSON with these keys (null for unknown):\n"
        "{\n"
        '  "company_website": string | null,\n'
        '  "lead_type": string | null,\n'
        '  "industry": string | null,\n'
        '  "company_size_employees": string | null,\n'
        '  "company_size_revenue": string | null,\n'
        '  "lead_priority": string | null,\n'
        '  "key_vp": [string] | null,\n'
        '  "strategic_priorities": {"news_and_press": [{"text": string, "url": string | null}], '
        '"company_content": [...], "social_media": [...]} | null,\n'
        '  "company_description": string | null,\n'
        '  "value_proposition": string | null,\n'
        '  "contact_name": string | null,\n'
        '  "contact_role": string | null,\n'
        '  "contact_email": string | null,\n'
        '  "contact_linkedin": string | null,\n'
        '  "secondary_contact_name": string | null,\n'
        '  "secondary_contact_email": string | null,\n'
        '  "secondary_contact_linkedin": string | null\n'
        "}"
    )


_PARTNER_EXAMPLE = {
    "subject": "Stablecoin checkout for Nuvei merchants",
    "body": (
        "Saw Nuvei just went live with instant payouts in LATAM, nice move. "
        "We plug 700+ crypto wallets into PSPs through one API, so your merchants get stablecoin checkout "
        "and you earn on every transaction without new acquiring risk. Worth a quick chat?"
    ),
    "follow_up_1": "Quick nudge on this. Happy to share how another PSP added crypto volume in six weeks.",
    "follow_up_2": "Last note from me. If distribution partnerships sit with someone else, who should I ask?",
}

_MERCHANT_EXAMPLE = {
    "subject": "Cutting card fees on cross-border orders",
    "body": (
        "Noticed Gymshark is pushing hard into Asia this year. "
        "Stablecoin checkout settles in seconds at 0.5-1% instead of 3% on cards, "
        "and reaches 500M+ wallet users where cards are weak. Open to a 15 minute look?"
    ),
    "follow_up_1": "Following up in case this got buried. The fee delta alone usually covers the integration.",
    "follow_up_2": "Closing the loop. Glad to send numbers from a retailer of similar size if useful.",
}


def render_draft_prompt(lead: Lead, platform: Platform) -> str:
    """Outreach prompt; framing depends on the Merchant/partner branch."""
    merchant = is_merchant(lead.lead_type)
    framing = (
        "Frame this as a cost/revenue win for a merchant: lower fees, faster settlement, new paying customers."
        if merchant
        else "Frame this as a distribution partnership: they offer our payment method to their own merchants "
        "and earn on the volume."
    )
    example = _MERCHANT_EXAMPLE if merchant else _PARTNER_EXAMPLE
    if platform == Platform.EMAIL:
        length = "3 sentences for the email body (tight, no fluff)"
        keys = '"subject", "body", "follow_up_1", "follow_up_2"'
        shown = example
    else:
        length = "2 sentences for the LinkedIn DM (ultra-concise)"
        keys = '"body", "follow_up_1", "follow_up_2"'
        shown = {key: value for key, value in example.items() if key != "subject"}
    priorities = lead.strategic_priorities
    context_items = (priorities.news_and_press + priorities.company_content) if priorities else []
    return (
        f"Write a cold outreach {platform.value} message to {lead.contact_name or 'the decision maker'}, "
        f"{lead.contact_role or 'Decision Maker'} at {lead.company}.\n\n"
        f"Company context: {lead.company_description or lead.company}\n"
        f"Value-prop tags: {lead.key_vp or 'None'}\n"
        f"Why we help them: {lead.value_proposition or 'See value-prop tags.'}\n"
        f"Recent priorities:\n{_bullets(context_items[:3])}\n\n"
        f"{framing}\n\n"
        "Rules:\n"
        '- Tone: casual, peer-to-peer, no buzzwords, no "I hope this finds you well".\n'
        f"- Length: {length}.\n"
        "- Open with something specific to them, not a generic opener.\n"
        '- End with a single, low-friction CTA (e.g. "Worth a quick chat?").\n'
        "- follow_up_1 is sent 14 days later and follow_up_2 21 days later; one or two sentences each, "
        "no guilt-tripping.\n\n"
        f"Example of the expected output:\n{json.dumps(shown, indent=2)}\n\n"
        f"Return ONLY valid JSON with keys {keys}."
    )


def render_company_list_prompt(company_profile: str, count: int = 5) -> str:
    return (
        f"You are a B2B market researcher. List {count} real companies that match this profile:\n\n"
        f'"{company_profile}"\n\n'
        "For each company return company (exact name), website (full URL), country (headquarters) and "
        'company_size (estimated employee range, e.g. "100-500").\n'
        "Return ONLY a valid JSON array of objects, no markdown, no explanation."
    )


def render_person_extraction_prompt(search_results: str, company: str, titles: Sequence[str]) -> str:
    return (
        f"From these web search results about {company}, find ONE person who currently holds one of these "
        f"roles: {', '.join(titles)}.\n\n"
        f"Search results:\n{search_results[:1500]}\n\n"
        "Return ONLY valid JSON:\n"
        '{"name": "First Last" or null, "title": string or null, "email": string or null, '
        '"linkedin_url": string or null, "is_inferred": false if the name is explicitly in the results, '
        "true if guessed}"
    )
