from __future__ import annotations

import pytest

from app.services.enrichment.sources import DecisionMakerAdapter
from app.services.errors import LeadNotReadyError, ModelOutputError
from app.services.leads.prospector import LeadProspector, split_titles
from app.services.llm import LLMContext
from tests.helpers.stubs import StubLLM, StubSearchClient

CONTEXT = LLMContext(system_prompt="system", model="stub-model", temperature=0.0)

COMPANIES = [
    {"company": "Acme Pay", "website": "https://acmepay.com", "country": "US", "company_size": "100-500"},
    {"company": "Globex Payments", "website": "https://globex.io", "country": "UK", "company_size": "500-5000"},
    {"company": "  ", "website": "https://blank.io"},
]


def _responder(prompt: str):
    if "real companies" in prompt:
        return COMPANIES
    if "about Acme Pay" in prompt:
        return {
            "name": "Jane Doe",
            "title": "Head of Payments",
            "email": "jane@acmepay.com",
            "linkedin_url": "https://linkedin.com/in/janedoe",
            "is_inferred": False,
        }
    return "no person found"


def _search(query, options):
    if "Acme Pay" in query or options.get("include_domains") == ["acmepay.com"]:
        return [{"url": "https://acmepay.com/team", "title": "Team", "text": "Jane Doe, Head of Payments"}]
    if "Globex" in query or options.get("include_domains") == ["globex.io"]:
        return [{"url": "https://globex.io/about", "title": "About", "text": "Founded in London."}]
    return []


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("CEO, Head of Payments\nCFO", ["CEO", "Head of Payments", "CFO"]),
        (["CTO", " ", "VP Product "], ["CTO", "VP Product"]),
        (" , ", []),
    ],
)
def test_split_titles(raw, expected):
    assert split_titles(raw) == expected


def test_generate_returns_one_lead_per_company():
    llm = StubLLM(responder=_responder)
    prospector = LeadProspector(
        llm_client=llm,
        context=CONTEXT,
        decision_makers=DecisionMakerAdapter(StubSearchClient(handler=_search)),
    )

    leads = prospector.generate("US and UK payment processors adding crypto", "Head of Payments, CFO")

    assert [lead.company for lead in leads] == ["Acme Pay", "Globex Payments"]
    acme, globex = leads
    assert acme.contact_name == "Jane Doe"
    assert acme.contact_email == "jane@acmepay.com"
    assert acme.is_inferred is False
    assert acme.company_size == "100-500"
    assert globex.contact_name == "Decision Maker at Globex Payments"
    assert globex.contact_role == "Head of Payments"
    assert globex.contact_email is None
    assert globex.is_inferred is True


def test_generate_requires_profile_and_titles():
    prospector = LeadProspector(llm_client=StubLLM(), context=CONTEXT, decision_makers=DecisionMakerAdapter(None))

    with pytest.raises(LeadNotReadyError):
        prospector.generate("  ", "CEO")
    with pytest.raises(LeadNotReadyError):
        prospector.generate("Crypto exchanges", " , ")


def test_generate_fails_when_no_companies_come_back():
    prospector = LeadProspector(
        llm_client=StubLLM([[]]),
        context=CONTEXT,
        decision_makers=DecisionMakerAdapter(None),
    )

    with pytest.raises(ModelOutputError):
        prospector.generate("Crypto exchanges", "CEO")


def test_generate_ignores_non_string_model_values():
    def responder(prompt: str):
        if "real companies" in prompt:
            return [{"company": " Acme Pay ", "website": 42, "company_size": ["big"]}]
        return {"name": "Jane Doe", "title": ["Head of Payments"], "linkedin_url": 7, "is_inferred": False}

    search = StubSearchClient(handler=_search)
    prospector = LeadProspector(
        llm_client=StubLLM(responder=responder),
        context=CONTEXT,
        decision_makers=DecisionMakerAdapter(search),
    )

    (lead,) = prospector.generate("US payment processors", "CFO")

    assert lead.company == "Acme Pay"
    assert lead.company_website is None
    assert lead.company_size is None
    assert lead.contact_name == "Jane Doe"
    assert lead.contact_role == "CFO"
    assert lead.contact_linkedin is None
