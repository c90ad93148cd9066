# tests/bridge/test_translator.py
from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from schedcheck.bridge.translator import NullTranslator, OpenAITranslator, build_translator
from schedcheck.errors import TranslationError
from schedcheck.schemas.models import TranslatorConfig


class _FakeCompletions:
    def __init__(self, content: str | None) -> None:
        self.content = content
        self.kwargs: list[dict] = []

    async def create(self, **kwargs):
        self.kwargs.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=_FakeCompletions(content)))


def test_null_translator_is_unavailable():
    t = NullTranslator()
    assert t.available is False
    assert asyncio.run(t.translate_to_rule("x", {})) is None
    with pytest.raises(TranslationError):
        asyncio.run(t.translate_to_predicate("x", [], []))


def test_build_translator_by_provider():
    assert isinstance(build_translator(None), NullTranslator)
    assert isinstance(build_translator(TranslatorConfig()), NullTranslator)
    assert isinstance(build_translator(TranslatorConfig(provider="openai")), OpenAITranslator)


def test_availability_follows_api_key_env(monkeypatch: pytest.MonkeyPatch):
    cfg = TranslatorConfig(provider="openai", api_key_env="SCHEDCHECK_TEST_KEY")
    monkeypatch.delenv("SCHEDCHECK_TEST_KEY", raising=False)
    assert OpenAITranslator(cfg).available is False

    monkeypatch.setenv("SCHEDCHECK_TEST_KEY", "sk-test")
    assert OpenAITranslator(cfg).available is True


def test_missing_key_raises_translation_error(monkeypatch: pytest.MonkeyPatch):
    cfg = TranslatorConfig(provider="openai", api_key_env="SCHEDCHECK_TEST_KEY")
    monkeypatch.delenv("SCHEDCHECK_TEST_KEY", raising=False)
    with pytest.raises(TranslationError):
        asyncio.run(OpenAITranslator(cfg).translate_to_predicate("q", [], ["Duration"]))


def test_predicate_request_uses_config_and_strips_fences():
    # --- Arrange ---
    client = _client("```\nDuration > 1\n```")
    cfg = TranslatorConfig(provider="openai", model="gpt-4o-mini", temperature=0.0, max_tokens=50)
    translator = OpenAITranslator(cfg, client=client)

    # --- Act ---
    text = asyncio.run(
        translator.translate_to_predicate("long tasks", [{"TaskID": "T1"}], ["TaskID", "Duration"])
    )

    # --- Assert ---
    assert text == "Duration > 1"
    (call,) = client.chat.completions.kwargs
    assert call["model"] == "gpt-4o-mini"
    assert call["temperature"] == 0.0
    assert call["max_tokens"] == 50
    prompt = call["messages"][0]["content"]
    assert '"long tasks"' in prompt
    assert '"TaskID": "T1"' in prompt
    assert "TaskID, Duration" in prompt


def test_empty_predicate_reply_raises():
    translator = OpenAITranslator(TranslatorConfig(provider="openai"), client=_client(None))
    with pytest.raises(TranslationError):
        asyncio.run(translator.translate_to_predicate("q", [], []))


def test_rule_reply_is_parsed_as_json():
    client = _client('```json\n{"type": "coRun", "tasks": ["T1", "T2"]}\n```')
    translator = OpenAITranslator(TranslatorConfig(provider="openai"), client=client)

    payload = asyncio.run(translator.translate_to_rule("T1 with T2", {"tasks": []}))

    assert payload == {"type": "coRun", "tasks": ["T1", "T2"]}
    assert client.chat.completions.kwargs[0]["temperature"] == 0.2


@pytest.mark.parametrize("reply", ["not json", "[1, 2]"])
def test_bad_rule_reply_raises(reply: str):
    translator = OpenAITranslator(TranslatorConfig(provider="openai"), client=_client(reply))
    with pytest.raises(TranslationError):
        asyncio.run(translator.translate_to_rule("x", {}))
