# src/schedcheck/bridge/translator.py
"""
@brief
Pluggable natural-language translators.

@details
A translator turns free text into either a predicate expression (for search)
or a loosely structured rule mapping. The bridge treats translators as
unreliable: their output is parsed and validated before use, and any failure
is absorbed there.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from openai import AsyncOpenAI, OpenAIError

from schedcheck.errors import TranslationError
from schedcheck.schemas.models import TranslatorConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class Translator(Protocol):
    """Interface consumed by NaturalLanguageBridge."""

    @property
    def available(self) -> bool: ...

    async def translate_to_predicate(
        self, query: str, sample: Sequence[Mapping[str, Any]], fields: Sequence[str]
    ) -> str: ...

    async def translate_to_rule(
        self, description: str, context: Mapping[str, Any]
    ) -> dict[str, Any] | None: ...


class NullTranslator:
    """Translator used when no provider is configured; never available."""

    @property
    def available(self) -> bool:
        return False

    async def translate_to_predicate(
        self, query: str, sample: Sequence[Mapping[str, Any]], fields: Sequence[str]
    ) -> str:
        raise TranslationError("No translator configured", source="NullTranslator")

    async def translate_to_rule(
        self, description: str, context: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        return None


_SEARCH_PROMPT = """\
Given this data structure: {sample}

Convert this natural language query to a filter expression:
"{query}"

Available fields: {fields}
Use comparisons (== != < <= > >=), `in`, `not in`, `contains`, `and`, `or`, `not`,
parentheses, numbers, quoted strings and [lists].
Return only the expression, nothing else.
Example: Duration > 1 and 2 in PreferredPhases
"""

_RULE_PROMPT = """\
Convert this business rule description to a structured rule object:
"{description}"

Available rule types:
- coRun: {{ "type": "coRun", "tasks": ["T1", "T2"], "description": "..." }}
- slotRestriction: {{ "type": "slotRestriction", "group": "...", "minCommonSlots": 2, "description": "..." }}
- loadLimit: {{ "type": "loadLimit", "workerGroup": "...", "maxSlotsPerPhase": 3, "description": "..." }}
- phaseWindow: {{ "type": "phaseWindow", "taskId": "...", "allowedPhases": [1,2,3], "description": "..." }}

Context data: {context}

Return only a valid JSON object.
"""

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _strip_fences(text: str) -> str:
    """Model replies sometimes wrap the payload in a markdown code fence."""
    return _FENCE_RE.sub("", text.strip()).strip()


class OpenAITranslator:
    """
    @brief
    Translator backed by OpenAI chat completions.

    @details
    The API key is read from the environment variable named in the config.
    A client can be injected (tests); otherwise an AsyncOpenAI client is
    created lazily on first use.
    """

    def __init__(self, cfg: TranslatorConfig, client: Any | None = None) -> None:
        self.cfg = cfg
        self._client = client

    @property
    def available(self) -> bool:
        if self._client is not None:
            return True
        key = os.getenv(self.cfg.api_key_env)
        return bool(key and key.strip())

    async def translate_to_predicate(
        self, query: str, sample: Sequence[Mapping[str, Any]], fields: Sequence[str]
    ) -> str:
        prompt = _SEARCH_PROMPT.format(
            sample=json.dumps(list(sample), indent=2, ensure_ascii=False),
            query=query,
            fields=", ".join(fields),
        )
        text = _strip_fences(await self._complete(prompt, self.cfg.temperature))
        if not text:
            raise TranslationError("Empty filter expression from model", source="OpenAITranslator")
        return text

    async def translate_to_rule(
        self, description: str, context: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        prompt = _RULE_PROMPT.format(
            description=description,
            context=json.dumps(dict(context), indent=2, ensure_ascii=False, default=str),
        )
        text = _strip_fences(await self._complete(prompt, self.cfg.rule_temperature))
        try:
            payload = json.loads(text or "{}")
        except json.JSONDecodeError as e:
            raise TranslationError(
                f"Model returned invalid JSON: {e}",
                source="OpenAITranslator.translate_to_rule",
            ) from e
        if not isinstance(payload, dict):
            raise TranslationError(
                f"Expected a JSON object, got {type(payload).__name__}",
                source="OpenAITranslator.translate_to_rule",
            )
        return payload

    # ----------------- internal -----------------

    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        key = os.getenv(self.cfg.api_key_env)
        if not key or not key.strip():
            raise TranslationError(
                f"Missing API key in environment variable {self.cfg.api_key_env}",
                source="OpenAITranslator",
                suggested_action=f"Export {self.cfg.api_key_env} or set translator.provider to 'none'.",
            )
        kwargs: dict[str, Any] = {"api_key": key}
        if self.cfg.base_url is not None:
            kwargs["base_url"] = self.cfg.base_url
        if self.cfg.timeout_seconds is not None:
            kwargs["timeout"] = self.cfg.timeout_seconds
        self._client = AsyncOpenAI(**kwargs)
        return self._client

    async def _complete(self, prompt: str, temperature: float) -> str:
        client = self._ensure_client()
        try:
            response = await client.chat.completions.create(
                model=self.cfg.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=self.cfg.max_tokens,
            )
        except OpenAIError as e:
            raise TranslationError(
                f"OpenAI request failed: {e}", source="OpenAITranslator"
            ) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise TranslationError(
                "Malformed completion response", source="OpenAITranslator"
            ) from e
        logger.debug("Translator reply: %r", content)
        return content or ""


def build_translator(cfg: TranslatorConfig | None) -> Translator:
    """Translator for the configured provider; NullTranslator when disabled."""
    if cfg is None or cfg.provider == "none":
        return NullTranslator()
    if cfg.provider == "openai":
        return OpenAITranslator(cfg)
    raise TranslationError(
        f"Unknown translator provider: {cfg.provider!r}",
        source="build_translator",
        suggested_action="Use 'none' or 'openai'.",
    )


__all__ = ["NullTranslator", "OpenAITranslator", "Translator", "build_translator"]
