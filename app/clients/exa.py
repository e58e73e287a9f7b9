"""Client for the Exa web search API."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from app.config import settings


class ExaError(RuntimeError):
    """Base error for Exa client failures."""

    def __init__(self, message: str, code: str = "EXA_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ExaRateLimitError(ExaError):
    def __init__(self, message: str = "Rate limited by Exa") -> None:
        super().__init__(message, code="EXA_429")


class ExaTimeoutError(ExaError):
    def __init__(self, message: str = "Exa request timed out") -> None:
        super().__init__(message, code="EXA_TIMEOUT")


class ExaSchemaError(ExaError):
    def __init__(self, message: str = "Unexpected Exa response schema") -> None:
        super().__init__(message, code="EXA_SCHEMA_ERR")


class ExaClient:
    """Search-only Exa client returning raw result entries.

    Each entry is a dict with at least ``url`` and usually ``title``,
    ``text``, and ``published_date``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.exa.ai",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("EXA_API_KEY is required to create an ExaClient.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_settings(cls) -> ExaClient | None:
        if not settings.exa_api_key:
            return None
        return cls(settings.exa_api_key, timeout=settings.provider_timeout_seconds)

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def search(
        self,
        query: str,
        *,
        num_results: int = 3,
        start_published_date: datetime | None = None,
        include_domains: Sequence[str] | None = None,
        exclude_domains: Sequence[str] | None = None,
        max_characters: int = 500,
        use_autoprompt: bool = True,
    ) -> list[dict[str, Any]]:
        if num_results <= 0:
            raise ValueError("num_results must be a positive integer.")
        payload: dict[str, Any] = {
            "query": query,
            "num_results": num_results,
            "use_autoprompt": use_autoprompt,
            "contents": {"text": {"max_characters": max_characters}},
        }
        if start_published_date is not None:
            payload["start_published_date"] = start_published_date.isoformat()
        if include_domains:
            payload["include_domains"] = list(include_domains)
        if exclude_domains:
            payload["exclude_domains"] = list(exclude_domains)
        return self._results(self._post("/search", payload))

    def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        try:
            response = self._http.post(path, json=payload, headers={"X-API-KEY": self._api_key})
        except httpx.TimeoutException as exc:  # pragma: no cover - network failures
            raise ExaTimeoutError() from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failures
            raise ExaError(f"HTTP error calling Exa: {exc}") from exc
        if response.status_code >= 400:
            raise self._error_for(response)
        return response

    @staticmethod
    def _error_for(response: httpx.Response) -> ExaError:
        if response.status_code == 429:
            return ExaRateLimitError()
        if response.status_code in (408, 504):
            return ExaTimeoutError()
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = None
        if isinstance(body, dict):
            detail = body.get("message") or body.get("detail") or body.get("error")
        message = f"Exa request failed: {response.status_code}"
        if detail:
            message = f"{message} - {detail}"
        return ExaError(message, code=response.headers.get("x-exa-error-code", "EXA_ERROR"))

    @staticmethod
    def _results(response: httpx.Response) -> list[dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ExaSchemaError("Failed to decode Exa response JSON.") from exc
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list) or not all(isinstance(entry, dict) for entry in results):
            raise ExaSchemaError("`results` must be a list of JSON objects.")
        return results

    def __enter__(self) -> ExaClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
