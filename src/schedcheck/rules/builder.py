# src/schedcheck/rules/builder.py
"""
@brief
Manual rule builder: create, update and delete business rules.

@details
Rules are kept in a user-ordered list. Newly created rules get default params
for their kind and the description "<type> rule". Referenced ids (coRun.tasks,
phaseWindow.taskId) are not checked against the current records; only the
shape of the params is validated.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from schedcheck.errors import RuleError
from schedcheck.schemas.models import RULE_PARAMS_MODELS, Rule, RuleType

logger = logging.getLogger(__name__)


class RuleIdGenerator:
    """
    @brief
    Issues unique, strictly increasing rule ids.

    @details
    Ids are millisecond timestamps rendered as strings. When two ids are
    requested within the same millisecond (or the clock goes backwards) the
    previous value is bumped by one, so ids never repeat within a process.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or (lambda: time.time_ns() // 1_000_000)
        self._last = 0

    def next_id(self) -> str:
        candidate = int(self._clock())
        if candidate <= self._last:
            candidate = self._last + 1
        self._last = candidate
        return str(candidate)


_default_ids = RuleIdGenerator()


def new_rule_id() -> str:
    """Fresh id from the process-wide generator."""
    return _default_ids.next_id()


def default_params(rule_type: RuleType | str) -> dict[str, Any]:
    """
    @brief
    Default params for a rule kind.

    @details
    coRun → {tasks: []}; slotRestriction → {group: "", minCommonSlots: 1};
    loadLimit → {workerGroup: "", maxSlotsPerPhase: 1};
    phaseWindow → {taskId: "", allowedPhases: []}; patternMatch → {}.
    """
    kind = _rule_type(rule_type)
    if kind == RuleType.PATTERN_MATCH:
        return {}
    return RULE_PARAMS_MODELS[kind.value]().model_dump()


def _rule_type(value: RuleType | str) -> RuleType:
    try:
        return RuleType(value)
    except ValueError as e:
        raise RuleError(
            message=f"Unknown rule type: {value!r}",
            source="rules.builder",
            suggested_action=f"Use one of: {', '.join(t.value for t in RuleType)}.",
        ) from e


def check_params(rule_type: RuleType | str, params: Mapping[str, Any]) -> dict[str, Any]:
    """
    @brief
    Validate params against the typed shape of their rule kind.

    @returns
        Params as a plain dict with defaults filled in.

    @raises
        RuleError
            On unknown keys, wrong types or bounds (e.g. minCommonSlots < 1).
    """
    kind = _rule_type(rule_type)
    model = RULE_PARAMS_MODELS[kind.value]
    try:
        return model(**dict(params)).model_dump()
    except (TypeError, ValidationError) as e:
        raise RuleError(
            message=f"Invalid params for {kind.value} rule: {e}",
            source="rules.builder.check_params",
            suggested_action="Provide params matching the rule kind's shape.",
        ) from e


_RULE_ENVELOPE_KEYS = {"id", "type", "params", "description"}


def parse_rule(payload: Mapping[str, Any], rule_id: str | None = None) -> Rule:
    """
    @brief
    Build a Rule from a loosely structured mapping (e.g. translator output).

    @details
    Accepts both the nested form {type, params: {...}, description} and the
    flat form {type, tasks: [...], description} where params sit next to type.
    The id is always replaced by `rule_id` (or a fresh one).

    @raises
        RuleError
            If type is missing/unknown or params do not fit the rule kind.
    """
    if not isinstance(payload, Mapping):
        raise RuleError(
            message=f"Rule payload must be a mapping, got {type(payload).__name__}",
            source="rules.builder.parse_rule",
        )

    kind = _rule_type(payload.get("type", ""))
    nested = payload.get("params")
    if isinstance(nested, Mapping):
        raw_params: Mapping[str, Any] = nested
    else:
        raw_params = {k: v for k, v in payload.items() if k not in _RULE_ENVELOPE_KEYS}

    description = payload.get("description")
    return Rule(
        id=rule_id or new_rule_id(),
        type=kind,
        params=check_params(kind, raw_params),
        description=str(description) if description else f"{kind.value} rule",
    )


class RuleBuilder:
    """
    @brief
    Ordered, user-editable rule list.

    @details
    All mutations replace Rule instances rather than editing them in place;
    `rules` returns an immutable snapshot. Unknown ids raise RuleError.
    """

    def __init__(
        self,
        rules: Iterable[Rule] | None = None,
        ids: RuleIdGenerator | None = None,
    ) -> None:
        self._ids = ids or _default_ids
        self._rules: list[Rule] = []
        for rule in rules or ():
            self.add(rule)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def create(self, rule_type: RuleType | str) -> Rule:
        """Append a new rule of the given kind with default params."""
        kind = _rule_type(rule_type)
        rule = Rule(
            id=self._ids.next_id(),
            type=kind,
            params=default_params(kind),
            description=f"{kind.value} rule",
        )
        self._rules.append(rule)
        logger.debug("Rule created: %s (%s)", rule.id, rule.type)
        return rule

    def add(self, rule: Rule) -> Rule:
        """
        @brief
        Append an externally produced rule (e.g. from the natural-language bridge).

        @details
        A rule whose id is already present is re-issued with a fresh id so
        that ids stay unique within the list.
        """
        if any(r.id == rule.id for r in self._rules):
            rule = rule.model_copy(update={"id": self._ids.next_id()})
        self._rules.append(rule)
        return rule

    def get(self, rule_id: str) -> Rule:
        return self._rules[self._index(rule_id)]

    def update_params(self, rule_id: str, params: Mapping[str, Any]) -> Rule:
        """Replace the whole params object; partial merges are the caller's job."""
        idx = self._index(rule_id)
        current = self._rules[idx]
        updated = current.model_copy(update={"params": check_params(current.type, params)})
        self._rules[idx] = updated
        return updated

    def update_description(self, rule_id: str, description: str) -> Rule:
        idx = self._index(rule_id)
        updated = self._rules[idx].model_copy(update={"description": description})
        self._rules[idx] = updated
        return updated

    def delete(self, rule_id: str) -> Rule:
        idx = self._index(rule_id)
        removed = self._rules.pop(idx)
        logger.debug("Rule deleted: %s", rule_id)
        return removed

    def to_dicts(self) -> list[dict[str, Any]]:
        return [r.model_dump(mode="json") for r in self._rules]

    def _index(self, rule_id: str) -> int:
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return i
        raise RuleError(
            message=f"Unknown rule id: {rule_id}",
            source="RuleBuilder",
            suggested_action="List current rules and use one of their ids.",
        )


__all__ = [
    "RuleBuilder",
    "RuleIdGenerator",
    "check_params",
    "default_params",
    "new_rule_id",
    "parse_rule",
]
