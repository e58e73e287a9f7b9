"""Language-model client contract and the OpenAI implementation."""

from __future__ import annotations

from typing import Any, Protocol

from openai import OpenAI


class LLMClient(Protocol):
    """Text in, text out."""

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        ...


class EmptyResponseError(RuntimeError):
    """Raised when the provider returns a response without any text output."""


class OpenAIResponseClient:
    """Thin wrapper around the official OpenAI Responses API."""

    def __init__(self, api_key: str, *, timeout: float | None = None) -> None:
        if not api_key:
            raise ValueError("OPENAI_API_KEY is required to call the language model.")
        self._client = OpenAI(api_key=api_key, timeout=timeout)

    def generate(
        self,
        *,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        request: dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "input": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if max_tokens:
            request["max_output_tokens"] = max_tokens
        response = self._client.responses.create(**request)
        return _extract_response_text(response)


def _extract_response_text(response: Any) -> str:
    """Normalize OpenAI responses across SDK versions."""
    output_text = getattr(response, "output_text", None)
    if isinstance(output_text, str) and output_text.strip():
        return output_text.strip()

    if hasattr(response, "output"):
        text_chunks: list[str] = []
        for item in getattr(response, "output", []) or []:
            for content in getattr(item, "content", []) or []:
                if getattr(content, "type", None) == "output_text":
                    text_chunks.append(getattr(content, "text", ""))
        if text_chunks:
            return "".join(text_chunks).strip()

    if hasattr(response, "choices"):  # ChatCompletions fallback
        choices = getattr(response, "choices", [])
        if choices:
            content = getattr(choices[0].message, "content", "")
            if isinstance(content, list):
                return "".join(part.get("text", "") for part in content if isinstance(part, dict)).strip()
            if isinstance(content, str):
                return content.strip()

    raise EmptyResponseError("OpenAI response did not include text output.")
