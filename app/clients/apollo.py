"""Client for the Apollo people-match (contact verification) API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from app.config import settings


class ApolloError(RuntimeError):
    """Base error for Apollo client failures."""

    def __init__(self, message: str, code: str = "APOLLO_ERROR") -> None:
        super().__init__(message)
        self.code = code


class ApolloRateLimitError(ApolloError):
    """Raised when Apollo responds with HTTP 429."""

    def __init__(self, message: str = "Rate limited by Apollo") -> None:
        super().__init__(message, code="APOLLO_429")


class ApolloAuthError(ApolloError):
    """Raised when Apollo rejects the API key."""

    def __init__(self, message: str = "Apollo rejected the API key") -> None:
        super().__init__(message, code="APOLLO_AUTH")


class ApolloTimeoutError(ApolloError):
    """Raised when an Apollo request times out."""

    def __init__(self, message: str = "Apollo request timed out") -> None:
        super().__init__(message, code="APOLLO_TIMEOUT")


@dataclass(frozen=True)
class ApolloPerson:
    email: str
    linkedin_url: str | None = None
    title: str | None = None


class ApolloClient:
    """Minimal Apollo API client."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.apollo.io/api/v1",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("APOLLO_API_KEY is required to create an ApolloClient.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_settings(cls) -> ApolloClient | None:
        if not settings.apollo_api_key:
            return None
        return cls(settings.apollo_api_key, timeout=settings.provider_timeout_seconds)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            self._http.close()

    def match_person(
        self,
        *,
        name: str,
        company: str,
        domain: str | None = None,
        linkedin_url: str | None = None,
    ) -> ApolloPerson | None:
        """Match one person; None when Apollo has no record or no email for them."""
        params: dict[str, Any] = {
            "name": name.strip(),
            "organization_name": company,
            "reveal_personal_emails": "true",
        }
        if domain:
            params["domain"] = domain
        if linkedin_url:
            params["linkedin_url"] = linkedin_url
        headers = {"x-api-key": self._api_key}

        try:
            response = self._http.post("/people/match", params=params, headers=headers)
        except httpx.TimeoutException as exc:  # pragma: no cover - network failure
            raise ApolloTimeoutError() from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            raise ApolloError(f"HTTP error calling Apollo: {exc}") from exc

        if response.status_code == 429:
            raise ApolloRateLimitError()
        if response.status_code in (401, 403):
            raise ApolloAuthError()
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise ApolloError(f"Apollo request failed: {response.status_code} - {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ApolloError("Failed to decode Apollo response JSON.", code="APOLLO_SCHEMA_ERR") from exc

        person = data.get("person") if isinstance(data, dict) else None
        if not isinstance(person, dict) or not person.get("email"):
            return None
        return ApolloPerson(
            email=person["email"],
            linkedin_url=person.get("linkedin_url") or None,
            title=person.get("title") or None,
        )

    def __enter__(self) -> "ApolloClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
