import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.deps import Services, get_services
from app.main import app
from app.services.enrichment.orchestrator import LeadEnricher
from app.services.enrichment.sources import (
    DecisionMakerAdapter,
    NewsAdapter,
    PrioritiesAdapter,
    SocialAdapter,
    WebsiteResolver,
)
from app.services.leads.prospector import LeadProspector
from app.services.leads.repositories import InMemoryLeadRepository
from app.services.llm import LLMContext
from app.services.outreach.drafter import MessageDrafter
from tests.helpers.stubs import StubLLM, StubMailer


class _SyncASGIClient:
    """Minimal synchronous wrapper around httpx.AsyncClient for ASGI apps."""

    def __init__(self, app):
        transport = httpx.ASGITransport(app=app)
        self._client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._client.request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def patch(self, url: str, **kwargs):
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        asyncio.run(self._client.aclose())


@pytest.fixture
def llm_context() -> LLMContext:
    return LLMContext(system_prompt="system", model="stub-model", temperature=0.0)


@pytest.fixture
def repository() -> InMemoryLeadRepository:
    return InMemoryLeadRepository()


@pytest.fixture
def stub_llm() -> StubLLM:
    return StubLLM()


@pytest.fixture
def stub_mailer() -> StubMailer:
    return StubMailer()


@pytest.fixture
def services(repository, stub_llm, stub_mailer, llm_context) -> Services:
    """Fully wired services with every provider unconfigured and a stub model."""
    decision_makers = DecisionMakerAdapter(None)
    return Services(
        repository=repository,
        drafter=MessageDrafter(
            repository=repository,
            llm_client=stub_llm,
            context=llm_context,
            mailer_factory=lambda: stub_mailer,
        ),
        enricher=LeadEnricher(
            repository=repository,
            llm_client=stub_llm,
            context=llm_context,
            news=NewsAdapter(None),
            priorities=PrioritiesAdapter(None),
            social=SocialAdapter(None),
            decision_makers=decision_makers,
            website_resolver=WebsiteResolver(None),
        ),
        prospector=LeadProspector(llm_client=stub_llm, context=llm_context, decision_makers=decision_makers),
    )


@pytest.fixture
def client(services):
    """Create test client compatible with older/newer httpx releases."""
    app.dependency_overrides[get_services] = lambda: services
    try:
        try:
            test_client = TestClient(app)
            yield test_client
        except TypeError:
            fallback_client = _SyncASGIClient(app)
            try:
                yield fallback_client
            finally:
                fallback_client.close()
    finally:
        app.dependency_overrides.pop(get_services, None)
