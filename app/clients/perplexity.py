"""Client for the Perplexity chat-completions research API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from app.config import settings


class PerplexityError(RuntimeError):
    """Base error for Perplexity client failures."""

    def __init__(self, message: str, code: str = "PERPLEXITY_ERROR") -> None:
        super().__init__(message)
        self.code = code


class PerplexityRateLimitError(PerplexityError):
    """Raised when Perplexity responds with HTTP 429."""

    def __init__(self, message: str = "Rate limited by Perplexity") -> None:
        super().__init__(message, code="PERPLEXITY_429")


class PerplexityTimeoutError(PerplexityError):
    """Raised when a Perplexity request times out."""

    def __init__(self, message: str = "Perplexity request timed out") -> None:
        super().__init__(message, code="PERPLEXITY_TIMEOUT")


class PerplexitySchemaError(PerplexityError):
    """Raised when the Perplexity response does not carry a message."""

    def __init__(self, message: str = "Unexpected Perplexity response schema") -> None:
        super().__init__(message, code="PERPLEXITY_SCHEMA_ERR")


@dataclass(frozen=True)
class ResearchAnswer:
    """Answer text plus the citation URLs referenced by inline ``[n]`` markers."""

    content: str
    citations: list[str] = field(default_factory=list)


class PerplexityClient:
    """Lightweight Perplexity API client."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "sonar",
        base_url: str = "https://api.perplexity.ai",
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("PERPLEXITY_API_KEY is required to create a PerplexityClient.")
        self._api_key = api_key
        self._model = model
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_settings(cls) -> PerplexityClient | None:
        if not settings.perplexity_api_key:
            return None
        return cls(
            settings.perplexity_api_key,
            model=settings.perplexity_model,
            timeout=settings.provider_timeout_seconds,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            self._http.close()

    def ask(self, *, system_prompt: str, user_prompt: str, max_tokens: int = 400) -> ResearchAnswer:
        """Send a single chat turn and return the answer with its citations."""
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            response = self._http.post("/chat/completions", json=payload, headers=headers)
        except httpx.TimeoutException as exc:  # pragma: no cover - network failure
            raise PerplexityTimeoutError() from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            raise PerplexityError(f"HTTP error calling Perplexity: {exc}") from exc

        if response.status_code == 429:
            raise PerplexityRateLimitError()
        if response.status_code in (408, 504):
            raise PerplexityTimeoutError()
        if response.status_code >= 400:
            raise PerplexityError(
                f"Perplexity request failed: {response.status_code} - {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise PerplexitySchemaError("Failed to decode Perplexity response JSON.") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise PerplexitySchemaError() from exc
        if not isinstance(content, str):
            raise PerplexitySchemaError("Perplexity message content must be a string.")

        citations = data.get("citations") or []
        return ResearchAnswer(
            content=content,
            citations=[url for url in citations if isinstance(url, str)],
        )

    def __enter__(self) -> "PerplexityClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
