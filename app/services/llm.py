"""Shared language-model invocation used by enrichment, drafting, and prospecting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from openai import APIError as OpenAIAPIError
from openai import OpenAIError as OpenAIBaseError

from app.clients.llm import EmptyResponseError, LLMClient
from app.config import settings
from app.observability.metrics import metrics
from app.services.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMContext:
    """Configuration bundle for model calls."""

    system_prompt: str
    model: str
    temperature: float


def build_llm_context() -> LLMContext:
    prompt_path = Path(settings.llm_system_prompt_path).expanduser()
    if not prompt_path.exists():
        raise FileNotFoundError(f"System prompt not found at {prompt_path}")
    return LLMContext(
        system_prompt=prompt_path.read_text(encoding="utf-8").strip(),
        model=settings.llm_model,
        temperature=settings.llm_temperature,
    )


def invoke_model(
    client: LLMClient,
    context: LLMContext,
    user_prompt: str,
    *,
    purpose: str,
    max_tokens: int | None = None,
    system_prompt: str | None = None,
) -> str:
    """Run one model call; provider failures become ProviderError. Never retried."""
    tags = {"purpose": purpose, "model": context.model}
    with metrics.timer("llm.latency_ms", tags=tags):
        try:
            return client.generate(
                system_prompt=system_prompt or context.system_prompt,
                user_prompt=user_prompt,
                model=context.model,
                temperature=context.temperature,
                max_tokens=max_tokens,
            )
        except OpenAIAPIError as exc:  # pragma: no cover - depends on SDK
            code = "429_RATE_LIMIT" if getattr(exc, "status_code", 500) == 429 else "502_LLM_UPSTREAM"
            metrics.increment("llm.errors", tags={**tags, "code": code})
            raise ProviderError(f"Language model request failed: {exc}", code=code) from exc
        except (OpenAIBaseError, EmptyResponseError) as exc:
            metrics.increment("llm.errors", tags={**tags, "code": "502_LLM_UPSTREAM"})
            raise ProviderError(f"Language model request failed: {exc}") from exc
