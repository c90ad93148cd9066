# src/schedcheck/rules/priorities.py
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from schedcheck.errors import RuleError
from schedcheck.schemas.models import Priority

DEFAULT_PRIORITIES: tuple[Priority, ...] = (
    Priority(name="Priority Level", weight=70, description="Client priority importance"),
    Priority(name="Fairness", weight=60, description="Equal distribution across workers"),
    Priority(name="Workload Balance", weight=50, description="Balanced task distribution"),
    Priority(name="Cost Efficiency", weight=40, description="Resource optimization"),
)

PRESETS: dict[str, dict[str, int]] = {
    "Maximize Fulfillment": {
        "Priority Level": 80,
        "Fairness": 60,
        "Workload Balance": 40,
        "Cost Efficiency": 30,
    },
    "Fair Distribution": {
        "Priority Level": 50,
        "Fairness": 90,
        "Workload Balance": 70,
        "Cost Efficiency": 40,
    },
    "Minimize Workload": {
        "Priority Level": 40,
        "Fairness": 60,
        "Workload Balance": 90,
        "Cost Efficiency": 60,
    },
    "Cost Efficient": {
        "Priority Level": 60,
        "Fairness": 40,
        "Workload Balance": 50,
        "Cost Efficiency": 90,
    },
}


class PriorityConfig:
    """
    @brief
    Fixed-size, ordered vector of weighted criteria.

    @details
    Weights are integers in [0, 100] and are never normalized; they need not
    sum to 100. Criteria are not added or removed after construction. The
    weights are terminal configuration for a downstream allocation process.
    """

    def __init__(self, priorities: Iterable[Priority] | None = None) -> None:
        self._priorities: list[Priority] = list(
            priorities if priorities is not None else DEFAULT_PRIORITIES
        )

    @property
    def priorities(self) -> tuple[Priority, ...]:
        return tuple(self._priorities)

    def __len__(self) -> int:
        return len(self._priorities)

    def set_weight(self, index: int, weight: int) -> Priority:
        """Overwrite the weight at `index`; no normalization of the others."""
        if not 0 <= index < len(self._priorities):
            raise RuleError(
                message=f"Priority index out of range: {index}",
                source="PriorityConfig.set_weight",
                suggested_action=f"Use an index in [0, {len(self._priorities) - 1}].",
            )
        current = self._priorities[index]
        try:
            updated = Priority(name=current.name, weight=weight, description=current.description)
        except ValidationError as e:
            raise RuleError(
                message=f"Invalid weight for {current.name}: {weight!r}",
                source="PriorityConfig.set_weight",
                suggested_action="Weights are integers between 0 and 100.",
            ) from e
        self._priorities[index] = updated
        return updated

    def apply_preset(self, name: str, presets: Mapping[str, Mapping[str, int]] | None = None) -> None:
        """
        @brief
        Apply a named preset.

        @details
        Only criteria named in the preset are overwritten; criteria the preset
        does not mention keep their current weight.
        """
        table = presets if presets is not None else PRESETS
        if name not in table:
            raise RuleError(
                message=f"Unknown priority preset: {name!r}",
                source="PriorityConfig.apply_preset",
                suggested_action=f"Use one of: {', '.join(table)}.",
            )
        preset = table[name]
        for i, p in enumerate(self._priorities):
            if p.name in preset:
                self.set_weight(i, preset[p.name])

    def as_dicts(self) -> list[dict[str, Any]]:
        return [p.model_dump() for p in self._priorities]


__all__ = ["DEFAULT_PRIORITIES", "PRESETS", "PriorityConfig"]
