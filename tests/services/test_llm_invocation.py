from __future__ import annotations

import pytest

from app.clients.llm import EmptyResponseError
from app.config import settings
from app.services import llm as llm_module
from app.services.errors import ProviderError
from app.services.llm import LLMContext, build_llm_context, invoke_model
from tests.helpers.metrics_stub import StubMetrics
from tests.helpers.stubs import StubLLM

CONTEXT = LLMContext(system_prompt="default system", model="stub-model", temperature=0.3)


def test_invoke_model_passes_context_and_records_latency(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(llm_module, "metrics", stub_metrics)
    llm = StubLLM(['{"ok": true}'])

    result = invoke_model(llm, CONTEXT, "user prompt", purpose="drafting", max_tokens=99)

    assert result == '{"ok": true}'
    assert llm.calls == [
        {
            "system_prompt": "default system",
            "user_prompt": "user prompt",
            "model": "stub-model",
            "temperature": 0.3,
            "max_tokens": 99,
        }
    ]
    assert stub_metrics.timed("llm.latency_ms")[0]["tags"] == {"purpose": "drafting", "model": "stub-model"}


def test_invoke_model_allows_system_prompt_override():
    llm = StubLLM(["[]"])

    invoke_model(llm, CONTEXT, "u", purpose="prospecting", system_prompt="override")

    assert llm.calls[0]["system_prompt"] == "override"


def test_empty_provider_response_becomes_provider_error(monkeypatch):
    stub_metrics = StubMetrics()
    monkeypatch.setattr(llm_module, "metrics", stub_metrics)

    with pytest.raises(ProviderError) as excinfo:
        invoke_model(StubLLM([EmptyResponseError("empty")]), CONTEXT, "u", purpose="enrichment")

    assert excinfo.value.code == "502_LLM_UPSTREAM"
    assert stub_metrics.counted("llm.errors")[0]["tags"]["code"] == "502_LLM_UPSTREAM"


def test_build_llm_context_reads_prompt_file(tmp_path, monkeypatch):
    prompt = tmp_path / "system.md"
    prompt.write_text("  You sell WalletConnect Pay.\n", encoding="utf-8")
    monkeypatch.setattr(settings, "llm_system_prompt_path", str(prompt))

    context = build_llm_context()

    assert context.system_prompt == "You sell WalletConnect Pay."
    assert context.model == settings.llm_model


def test_build_llm_context_requires_prompt_file(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "llm_system_prompt_path", str(tmp_path / "missing.md"))

    with pytest.raises(FileNotFoundError):
        build_llm_context()
