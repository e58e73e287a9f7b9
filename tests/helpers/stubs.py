from __future__ import annotations

import json
from collections.abc import Callable
from threading import Lock
from typing import Any

from app.clients.apollo import ApolloPerson
from app.clients.perplexity import ResearchAnswer


class StubLLM:
    """LLMClient double: replays queued responses or delegates to a responder.

    Dict/list responses are JSON-encoded; exception instances are raised.
    """

    def __init__(
        self,
        responses: list[Any] | None = None,
        *,
        responder: Callable[[str], Any] | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._responder = responder
        self._lock = Lock()
        self.calls: list[dict[str, Any]] = []

    def queue(self, *responses: Any) -> None:
        self._responses.extend(responses)

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        with self._lock:
            self.calls.append(
                {
                    "system_prompt": system_prompt,
                    "user_prompt": user_prompt,
                    "model": model,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                }
            )
            if self._responder is not None:
                result = self._responder(user_prompt)
            elif self._responses:
                result = self._responses.pop(0)
            else:
                raise AssertionError("StubLLM received an unexpected call")
        if isinstance(result, BaseException):
            raise result
        if isinstance(result, (dict, list)):
            return json.dumps(result)
        return result


class StubSearchClient:
    """SearchClient double recording every query."""

    def __init__(
        self,
        results: list[dict[str, Any]] | None = None,
        *,
        handler: Callable[[str, dict[str, Any]], list[dict[str, Any]]] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._results = results or []
        self._handler = handler
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def search(self, query: str, **options: Any) -> list[dict[str, Any]]:
        self.calls.append({"query": query, **options})
        if self._error is not None:
            raise self._error
        if self._handler is not None:
            return self._handler(query, options)
        return [dict(result) for result in self._results]


class StubResearchClient:
    def __init__(self, answer: ResearchAnswer | None = None, *, error: Exception | None = None) -> None:
        self._answer = answer or ResearchAnswer(content="[]")
        self._error = error
        self.calls: list[dict[str, Any]] = []

    def ask(self, *, system_prompt: str, user_prompt: str, max_tokens: int = 400) -> ResearchAnswer:
        self.calls.append({"system_prompt": system_prompt, "user_prompt": user_prompt})
        if self._error is not None:
            raise self._error
        return self._answer


class StubLookup:
    """VerifiedContactLookup double."""

    def __init__(self, person: ApolloPerson | None = None) -> None:
        self._person = person
        self.calls: list[dict[str, Any]] = []

    def lookup(self, *, name: str, company: str, domain: str | None, linkedin_url: str | None) -> ApolloPerson | None:
        self.calls.append({"name": name, "company": company, "domain": domain, "linkedin_url": linkedin_url})
        return self._person


class StubMailer:
    def __init__(self, *, error: Exception | None = None) -> None:
        self._error = error
        self.sent: list[dict[str, str]] = []

    def send(self, *, to_address: str, subject: str, body: str) -> str:
        if self._error is not None:
            raise self._error
        self.sent.append({"to_address": to_address, "subject": subject, "body": body})
        return f"<stub-{len(self.sent)}@mail.test>"
