from __future__ import annotations

from uuid import uuid4

import pytest

from app.clients.apollo import ApolloPerson
from app.clients.llm import EmptyResponseError
from app.clients.perplexity import ResearchAnswer
from app.config import settings
from app.models.lead import Lead, LeadStatus, NewsSource, PriorityItem
from app.services.enrichment import orchestrator as orchestrator_module
from app.services.enrichment.orchestrator import LeadEnricher
from app.services.enrichment.sources import (
    ContactLookup,
    DecisionMakerAdapter,
    NewsAdapter,
    PrioritiesAdapter,
    SocialAdapter,
    WebsiteResolver,
)
from app.services.errors import LeadNotFoundError, ModelOutputError, PersistenceError, ProviderError
from app.services.leads.repositories import InMemoryLeadRepository
from app.services.llm import LLMContext
from tests.helpers.metrics_stub import StubMetrics
from tests.helpers.stubs import StubLLM, StubResearchClient, StubSearchClient

CONTEXT = LLMContext(system_prompt="system", model="stub-model", temperature=0.0)

NEWS_RESULTS = [
    {"url": "https://acmepay.com", "title": "Acme Pay home"},
    {
        "url": "https://techwire.io/2025/02/acme-pay-series-b",
        "title": "Acme Pay raises Series B",
        "text": "Acme Pay raised $40M to expand merchant checkout.",
    },
]
SOCIAL_RESULTS = [
    {
        "url": "https://x.com/acmepay/status/1",
        "title": "Acme Pay on X",
        "text": "Acme Pay is piloting USDC checkout for merchants in Europe this quarter.",
    }
]


def _search_handler(query, options):
    domains = options.get("include_domains") or []
    if "x.com" in domains:
        return [dict(result) for result in SOCIAL_RESULTS]
    if domains:
        return []
    return [dict(result) for result in NEWS_RESULTS]


def _build(
    repository: InMemoryLeadRepository,
    llm: StubLLM,
    *,
    search: StubSearchClient | None = None,
    research: StubResearchClient | None = None,
    apollo=None,
) -> LeadEnricher:
    return LeadEnricher(
        repository=repository,
        llm_client=llm,
        context=CONTEXT,
        news=NewsAdapter(search),
        priorities=PrioritiesAdapter(research),
        social=SocialAdapter(search),
        decision_makers=DecisionMakerAdapter(search),
        website_resolver=WebsiteResolver(search),
        contact_lookup=ContactLookup(apollo),
    )


def _insert(repository: InMemoryLeadRepository, **fields) -> Lead:
    lead = Lead(company=fields.pop("company", "Acme Pay"), **fields)
    repository.insert_leads([lead])
    return lead


def test_minimal_model_output_only_sets_key_vp():
    repository = InMemoryLeadRepository()
    lead = _insert(repository)
    llm = StubLLM([{}, {"key_vp": "Global Reach"}])
    enricher = _build(repository, llm, search=StubSearchClient([]), research=StubResearchClient())

    enriched = enricher.enrich(lead.id)

    assert enriched.lead_status == LeadStatus.ENRICHED
    assert enriched.key_vp == "Global Reach"
    for field in (
        "company_website",
        "lead_type",
        "industry",
        "company_size_employees",
        "company_size_revenue",
        "lead_priority",
        "strategic_priorities",
        "company_description",
        "value_proposition",
        "contact_email",
    ):
        assert getattr(enriched, field) is None, field
    assert enriched.news_sources == []
    assert repository.get_lead(lead.id) == enriched


def test_known_email_is_not_replaced_by_model_proposal():
    repository = InMemoryLeadRepository()
    lead = _insert(
        repository,
        contact_name="Jane Doe",
        contact_email="jane@acme.com",
        lead_type="Acquirer",
        company_size_employees="500-5000",
    )
    llm = StubLLM([{"contact_email": "other@x.com", "key_vp": ["Single API"]}])
    enricher = _build(repository, llm)

    enriched = enricher.enrich(lead.id)

    assert enriched.contact_email == "jane@acme.com"
    assert enriched.contact_email_inferred is False
    assert enriched.contact_email_verified is False
    assert len(llm.calls) == 1


def test_full_enrichment_merges_research_and_model_output(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(orchestrator_module, "metrics", stub_metrics)
    repository = InMemoryLeadRepository()
    lead = _insert(
        repository,
        company_website="https://www.acmepay.com",
        contact_name="Jane Doe",
        company_description="Existing description",
    )
    llm = StubLLM(
        [
            {"lead_type": "merchant", "company_size_employees": "500-5000"},
            {
                "lead_type": "Acquirer",
                "industry": "e-commerce & retail",
                "company_size_revenue": "$10-100M",
                "lead_priority": "high",
                "key_vp": ["Lower Fees", "New Revenue Stream", "Global Reach"],
                "strategic_priorities": {"company_content": [{"text": "Model guess"}]},
                "company_description": "Acme Pay runs online checkout for retailers.",
                "value_proposition": "Stablecoin checkout cuts Acme's card costs.",
                "contact_role": "Head of Payments",
                "secondary_contact_email": "not-an-email",
            },
        ]
    )
    research = StubResearchClient(
        ResearchAnswer(
            content='["Launching stablecoin settlement for EU merchants [1]"]',
            citations=["https://acmepay.com/blog/stablecoins"],
        )
    )
    search = StubSearchClient(handler=_search_handler)
    enricher = _build(repository, llm, search=search, research=research)

    enriched = enricher.enrich(lead.id)

    assert enriched.lead_type == "Merchant"
    assert enriched.company_size_employees == "500-5000"
    assert enriched.industry == "E-commerce & Retail"
    assert enriched.company_size_revenue == "$10-100M"
    assert enriched.lead_priority == "High"
    assert enriched.key_vp == "Lower Fees, Global Reach"
    assert enriched.company_description == "Existing description"
    assert enriched.value_proposition == "Stablecoin checkout cuts Acme's card costs."
    assert enriched.contact_role == "Head of Payments"
    assert enriched.secondary_contact_email is None

    priorities = enriched.strategic_priorities
    assert priorities.news_and_press == [
        PriorityItem(text="Acme Pay raises Series B", url="https://techwire.io/2025/02/acme-pay-series-b")
    ]
    assert priorities.company_content == [
        PriorityItem(text="Launching stablecoin settlement for EU merchants", url="https://acmepay.com/blog/stablecoins")
    ]
    assert priorities.social_media[0].url == "https://x.com/acmepay/status/1"
    assert enriched.news_sources == [
        NewsSource(title="Acme Pay raises Series B", url="https://techwire.io/2025/02/acme-pay-series-b")
    ]

    assert enriched.contact_email == "jane.doe@acmepay.com"
    assert enriched.contact_email_inferred is True
    assert enriched.contact_email_verified is False

    assert llm.calls[0]["max_tokens"] == settings.classification_max_tokens
    assert llm.calls[1]["max_tokens"] == settings.enrichment_max_tokens
    assert "Head of Payments" in llm.calls[1]["user_prompt"]
    assert stub_metrics.counted("enrichment.success")
    assert not stub_metrics.counted("enrichment.errors")


def test_classification_overwrites_category_only_when_it_ran():
    repository = InMemoryLeadRepository()
    lead = _insert(repository, lead_type="Other")
    llm = StubLLM(
        [
            {"lead_type": "Payment Gateway", "company_size_employees": "100-500"},
            {"lead_type": "Neobank", "key_vp": "Single API"},
        ]
    )

    enriched = _build(repository, llm).enrich(lead.id)

    assert enriched.lead_type == "Payment Gateway"
    assert enriched.company_size_employees == "100-500"


def test_known_category_and_size_skip_classification():
    repository = InMemoryLeadRepository()
    lead = _insert(repository, lead_type="Merchant", company_size_employees="5000+")
    llm = StubLLM([{"lead_type": "Acquirer", "key_vp": "Lower Fees", "industry": "Travel & Hospitality"}])

    enriched = _build(repository, llm).enrich(lead.id)

    assert len(llm.calls) == 1
    assert enriched.lead_type == "Merchant"
    assert enriched.key_vp == "Lower Fees"
    assert enriched.industry == "Travel & Hospitality"


def test_industry_is_dropped_for_non_merchants():
    repository = InMemoryLeadRepository()
    lead = _insert(repository, lead_type="Acquirer", company_size_employees="5000+")
    llm = StubLLM([{"industry": "Travel & Hospitality", "key_vp": "Compliance"}])

    enriched = _build(repository, llm).enrich(lead.id)

    assert enriched.industry is None
    assert enriched.key_vp == "Compliance"


def test_unparseable_classification_is_soft():
    repository = InMemoryLeadRepository()
    lead = _insert(repository)
    llm = StubLLM(["I think it's a merchant", {"key_vp": "Instant Settlement"}])

    enriched = _build(repository, llm).enrich(lead.id)

    assert enriched.lead_status == LeadStatus.ENRICHED
    assert enriched.lead_type is None


def test_decision_makers_are_searched_when_contact_unknown():
    repository = InMemoryLeadRepository()
    lead = _insert(repository, company_website="https://acmepay.com", lead_type="Merchant", company_size_employees="5000+")
    search = StubSearchClient(
        handler=lambda query, options: (
            [{"url": "https://acmepay.com/team", "title": "Team", "text": "Jane Doe, Head of Payments"}]
            if options.get("include_domains") == ["acmepay.com"]
            else []
        )
    )
    llm = StubLLM([{"contact_name": "Jane Doe", "contact_role": "Head of Payments", "key_vp": "Lower Fees"}])

    enriched = _build(repository, llm, search=search).enrich(lead.id)

    assert enriched.contact_name == "Jane Doe"
    assert enriched.contact_email == "jane.doe@acmepay.com"
    assert "Jane Doe, Head of Payments" in llm.calls[0]["user_prompt"]
    assert "Head of Payments, Director of Payments" in llm.calls[0]["user_prompt"]


def test_verify_email_uses_contact_lookup():
    repository = InMemoryLeadRepository()
    lead = _insert(
        repository,
        company_website="https://acmepay.com",
        contact_name="Jane Doe",
        lead_type="Merchant",
        company_size_employees="5000+",
    )

    class _Apollo:
        def match_person(self, *, name, company, domain=None, linkedin_url=None):
            assert domain == "acmepay.com"
            return ApolloPerson(email="jdoe@acmepay.com", linkedin_url="https://linkedin.com/in/jdoe")

    llm = StubLLM([{"key_vp": "Lower Fees"}])

    enriched = _build(repository, llm, apollo=_Apollo()).enrich(lead.id, verify_email=True)

    assert enriched.contact_email == "jdoe@acmepay.com"
    assert enriched.contact_email_verified is True
    assert enriched.contact_email_inferred is False
    assert enriched.contact_linkedin == "https://linkedin.com/in/jdoe"


def test_malformed_model_output_aborts_without_writing(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(orchestrator_module, "metrics", stub_metrics)
    repository = InMemoryLeadRepository()
    lead = _insert(repository, lead_type="Merchant", company_size_employees="5000+")
    llm = StubLLM(["Sorry, I cannot help with that."])

    with pytest.raises(ModelOutputError):
        _build(repository, llm).enrich(lead.id)

    assert repository.get_lead(lead.id) == lead
    assert stub_metrics.counted("enrichment.errors")[0]["tags"]["code"] == "502_MODEL_OUTPUT"


def test_provider_failure_aborts_without_writing():
    repository = InMemoryLeadRepository()
    lead = _insert(repository)
    llm = StubLLM([EmptyResponseError("no output")])

    with pytest.raises(ProviderError) as excinfo:
        _build(repository, llm).enrich(lead.id)

    assert excinfo.value.code == "502_LLM_UPSTREAM"
    assert repository.get_lead(lead.id).lead_status == LeadStatus.NEW


class _FailingWriteRepository(InMemoryLeadRepository):
    def __init__(self) -> None:
        super().__init__()
        self.write_attempts = 0

    def update_lead(self, lead_id, updates):
        self.write_attempts += 1
        raise PersistenceError("Failed to update lead.")


def test_persistence_failure_after_model_call_surfaces(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(orchestrator_module, "metrics", stub_metrics)
    repository = _FailingWriteRepository()
    lead = _insert(repository, lead_type="Merchant", company_size_employees="5000+")
    llm = StubLLM([{"key_vp": "Lower Fees"}])

    with pytest.raises(PersistenceError):
        _build(repository, llm).enrich(lead.id)

    assert len(llm.calls) == 1
    assert repository.write_attempts == 1
    assert repository.get_lead(lead.id) == lead
    assert stub_metrics.counted("enrichment.errors")[0]["tags"]["code"] == "500_INTERNAL"
    assert not stub_metrics.counted("enrichment.success")


def test_malformed_search_urls_degrade_to_empty_context():
    repository = InMemoryLeadRepository()
    lead = _insert(repository, lead_type="Merchant", company_size_employees="5000+")
    search = StubSearchClient([{"url": "https://[broken/2024/x", "title": "Broken"}])
    llm = StubLLM([{"key_vp": "Lower Fees"}])

    enriched = _build(repository, llm, search=search).enrich(lead.id)

    assert enriched.lead_status == LeadStatus.ENRICHED
    assert enriched.key_vp == "Lower Fees"
    assert enriched.news_sources == []
    assert enriched.company_website is None


def test_enrich_many_continues_past_failures():
    repository = InMemoryLeadRepository()
    first = _insert(repository, company="First", lead_type="Merchant", company_size_employees="5000+")
    second = _insert(repository, company="Second", lead_type="Merchant", company_size_employees="5000+")
    missing = uuid4()
    llm = StubLLM(["not json", {"key_vp": "Lower Fees"}])

    results = _build(repository, llm).enrich_many([first.id, missing, second.id])

    assert [(result.id, result.success) for result in results] == [
        (first.id, False),
        (missing, False),
        (second.id, True),
    ]
    assert "not found" in results[1].error
    assert repository.get_lead(second.id).lead_status == LeadStatus.ENRICHED
    assert repository.get_lead(first.id).lead_status == LeadStatus.NEW


def test_missing_lead_raises_not_found():
    with pytest.raises(LeadNotFoundError):
        _build(InMemoryLeadRepository(), StubLLM()).enrich(uuid4())
