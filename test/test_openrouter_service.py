import json
from types import SimpleNamespace

import pytest

from models.book import TextLocation
from services.openrouter_service import OpenRouterService, build_citation_guidelines


class FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **params):
        self.calls.append(params)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service(content):
    service = OpenRouterService(api_key="test-key", model="test/model")
    completions = FakeCompletions(content)
    service.client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return service, completions


def test_missing_key_is_rejected():
    with pytest.raises(ValueError):
        OpenRouterService(api_key="")


def test_citation_guidelines_follow_location_kind():
    pages = build_citation_guidelines("James Clear", [TextLocation(0, 10, page=1)], 2018)
    assert any("(Clear, 2018, p. XX)" in line for line in pages)
    lines = build_citation_guidelines("James Clear", [TextLocation(0, 10, line=3)], 2018)
    assert any("line XX" in line for line in lines)
    assert build_citation_guidelines(None, [TextLocation(0, 10, page=1)]) == []


def test_complete_passes_json_mode_and_limits():
    service, completions = _service('{"chapters": []}')
    assert service.complete("prompt", temperature=0.1, json_mode=True, max_tokens=2000) == '{"chapters": []}'
    params = completions.calls[0]
    assert params["model"] == "test/model"
    assert params["response_format"] == {"type": "json_object"}
    assert params["max_tokens"] == 2000


def test_structured_summary_from_custom_prompt():
    service, completions = _service(json.dumps({"quick_summary": "Q", "quotes": ["q"]}))

    summary = service.generate_structured_summary("text", title="Book", custom_prompt="Return JSON please")

    assert summary["quick_summary"] == "Q"
    assert summary["ai_provider"] == "OpenRouter (test/model)"
    assert completions.calls[0]["messages"] == [{"role": "user", "content": "Return JSON please"}]


def test_default_prompt_asks_for_prose_with_citations():
    service, completions = _service("A long prose summary.")

    summary = service.generate_structured_summary(
        "Book body", title="Book", author="James Clear", locations=[TextLocation(0, 9, page=1)]
    )

    assert summary == {"raw_text": "A long prose summary.", "ai_provider": "OpenRouter (test/model)"}
    system, user = completions.calls[0]["messages"]
    assert system["role"] == "system"
    assert "CITATION GUIDELINES" in user["content"]
    assert "Do not return JSON" in user["content"]


def test_empty_text_and_empty_response_raise():
    service, _ = _service("")
    with pytest.raises(ValueError):
        service.generate_structured_summary("   ")
    with pytest.raises(ValueError):
        service.generate_structured_summary("Book body")
