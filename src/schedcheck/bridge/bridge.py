# src/schedcheck/bridge/bridge.py
"""
@brief
Natural-language search and rule translation over in-memory records.

@details
The bridge never raises to its caller. Search degrades to a case-insensitive
substring match over each record's JSON serialisation when the translator is
unavailable or its output cannot be parsed; rule translation degrades to
None. The record collection is copied at call time, so later edits do not
affect an in-flight search.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from schedcheck.bridge.expression import compile_predicate
from schedcheck.bridge.translator import NullTranslator, Translator
from schedcheck.rules.builder import parse_rule
from schedcheck.schemas.models import Rule

logger = logging.getLogger(__name__)


def _as_dict(record: Any) -> dict[str, Any]:
    if hasattr(record, "model_dump"):
        return record.model_dump(mode="json")
    return dict(record)


def _serialize(record: Any) -> str:
    # compact separators, matching what a browser JSON.stringify produces
    return json.dumps(_as_dict(record), ensure_ascii=False, separators=(",", ":"), default=str)


def _field_names(records: Sequence[Any]) -> list[str]:
    first = records[0]
    model_fields = getattr(type(first), "model_fields", None)
    if model_fields:
        return list(model_fields)
    return list(_as_dict(first))


class NaturalLanguageBridge:
    def __init__(self, translator: Translator | None = None, sample_size: int = 2) -> None:
        self.translator: Translator = translator or NullTranslator()
        self.sample_size = sample_size

    @staticmethod
    def substring_search(query: str, records: Sequence[Any]) -> list[Any]:
        """Records whose JSON text contains `query`, case-insensitively."""
        needle = query.lower()
        return [r for r in records if needle in _serialize(r).lower()]

    async def search(self, query: str, records: Sequence[Any]) -> list[Any]:
        """
        @brief
        Best-effort filter of `records` by a free-text query.

        @returns
            Matching records in their original order; [] for a blank query.
        """
        snapshot = list(records)
        if not query or not query.strip():
            return []
        if not snapshot:
            return []

        if not self.translator.available:
            logger.info("Translator unavailable, using substring search")
            return self.substring_search(query, snapshot)

        fields = _field_names(snapshot)
        sample = [_as_dict(r) for r in snapshot[: self.sample_size]]
        try:
            expression = await self.translator.translate_to_predicate(query, sample, fields)
            predicate = compile_predicate(expression, fields)
        except Exception as e:  # translator output is untrusted; any failure falls back
            logger.warning("Search translation failed (%s), using substring search", e)
            return self.substring_search(query, snapshot)

        matched = predicate.filter(snapshot)
        logger.info("Search %r via %r: %d/%d matched", query, predicate.source, len(matched), len(snapshot))
        return matched

    async def rule_from_text(
        self, description: str, context: Mapping[str, Sequence[Any]] | None = None
    ) -> Rule | None:
        """
        @brief
        Translate a free-text business rule into a Rule with a fresh id.

        @details
        `context` maps entity names to record collections; only the first
        `sample_size` records of each are sent to the translator.

        @returns
            The Rule, or None when translation or validation fails.
        """
        if not description or not description.strip():
            return None
        if not self.translator.available:
            logger.info("Translator unavailable, cannot build rule from text")
            return None

        grounding = {
            name: [_as_dict(r) for r in list(recs)[: self.sample_size]]
            for name, recs in (context or {}).items()
        }
        try:
            payload = await self.translator.translate_to_rule(description, grounding)
            if payload is None:
                return None
            rule = parse_rule(payload)
        except Exception as e:  # absorbed: callers only see None
            logger.warning("Rule translation failed: %s", e)
            return None

        logger.info("Rule %s (%s) created from text", rule.id, rule.type)
        return rule


__all__ = ["NaturalLanguageBridge"]
