"""Service construction and FastAPI dependencies.

Services are built once in the application lifespan and kept on
``app.state``; tests replace them through ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, HTTPException, Request, status

from app.clients.apollo import ApolloClient
from app.clients.exa import ExaClient
from app.clients.llm import OpenAIResponseClient
from app.clients.perplexity import PerplexityClient
from app.config import settings
from app.services.enrichment.orchestrator import LeadEnricher
from app.services.enrichment.sources import (
    ContactLookup,
    DecisionMakerAdapter,
    NewsAdapter,
    PrioritiesAdapter,
    SocialAdapter,
    WebsiteResolver,
)
from app.services.leads.prospector import LeadProspector
from app.services.leads.repositories import LeadRepository, build_lead_repository
from app.services.llm import LLMContext, build_llm_context
from app.services.outreach.drafter import MessageDrafter

logger = logging.getLogger(__name__)


@dataclass
class Services:
    repository: LeadRepository
    drafter: MessageDrafter
    enricher: LeadEnricher | None = None
    prospector: LeadProspector | None = None
    closeables: list[Any] = field(default_factory=list)

    def close(self) -> None:
        for resource in self.closeables:
            resource.close()
        dispose = getattr(self.repository, "dispose", None)
        if dispose is not None:
            dispose()


def build_services() -> Services:
    """Wire providers from settings. Missing provider keys degrade to empty adapters."""
    repository = build_lead_repository()
    exa = ExaClient.from_settings()
    perplexity = PerplexityClient.from_settings()
    apollo = ApolloClient.from_settings()
    logger.info(
        "services.providers",
        extra={
            "exa": exa is not None,
            "perplexity": perplexity is not None,
            "apollo": apollo is not None,
            "openai": settings.llm_configured,
        },
    )

    llm: OpenAIResponseClient | None = None
    context: LLMContext | None = None
    if settings.llm_configured:
        llm = OpenAIResponseClient(settings.openai_api_key, timeout=settings.provider_timeout_seconds * 3)
        context = build_llm_context()
    else:
        logger.warning("services.llm.unconfigured", extra={"env": "OPENAI_API_KEY"})

    services = Services(
        repository=repository,
        drafter=MessageDrafter(repository=repository, llm_client=llm, context=context),
        closeables=[client for client in (exa, perplexity, apollo) if client is not None],
    )
    if llm is None or context is None:
        return services

    decision_makers = DecisionMakerAdapter(exa)
    services.enricher = LeadEnricher(
        repository=repository,
        llm_client=llm,
        context=context,
        news=NewsAdapter(exa),
        priorities=PrioritiesAdapter(perplexity),
        social=SocialAdapter(exa),
        decision_makers=decision_makers,
        website_resolver=WebsiteResolver(exa),
        contact_lookup=ContactLookup(apollo),
    )
    services.prospector = LeadProspector(llm_client=llm, context=context, decision_makers=decision_makers)
    return services


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def get_repository(services: Services = Depends(get_services)) -> LeadRepository:
    return services.repository


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} is unavailable: OPENAI_API_KEY is not configured.",
        )
    return component


def get_enricher(services: Services = Depends(get_services)) -> LeadEnricher:
    return _require(services.enricher, "Enrichment")


def get_drafter(services: Services = Depends(get_services)) -> MessageDrafter:
    return services.drafter


def get_prospector(services: Services = Depends(get_services)) -> LeadProspector:
    return _require(services.prospector, "Lead generation")
