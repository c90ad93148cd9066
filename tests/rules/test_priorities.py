# tests/rules/test_priorities.py
import pytest

from schedcheck.errors import RuleError
from schedcheck.rules.priorities import DEFAULT_PRIORITIES, PRESETS, PriorityConfig
from schedcheck.schemas.models import Priority


def weights(cfg: PriorityConfig) -> dict[str, int]:
    return {p.name: p.weight for p in cfg.priorities}


def test_defaults():
    cfg = PriorityConfig()
    assert weights(cfg) == {
        "Priority Level": 70,
        "Fairness": 60,
        "Workload Balance": 50,
        "Cost Efficiency": 40,
    }
    assert cfg.priorities == DEFAULT_PRIORITIES


def test_set_weight_does_not_normalize_others():
    cfg = PriorityConfig()
    cfg.set_weight(1, 100)
    assert weights(cfg) == {
        "Priority Level": 70,
        "Fairness": 100,
        "Workload Balance": 50,
        "Cost Efficiency": 40,
    }


@pytest.mark.parametrize("weight", [-1, 101])
def test_set_weight_rejects_out_of_range(weight: int):
    cfg = PriorityConfig()
    with pytest.raises(RuleError):
        cfg.set_weight(0, weight)
    assert cfg.priorities[0].weight == 70


@pytest.mark.parametrize("index", [-1, 4])
def test_set_weight_rejects_bad_index(index: int):
    with pytest.raises(RuleError):
        PriorityConfig().set_weight(index, 10)


@pytest.mark.parametrize("name", list(PRESETS))
def test_apply_preset(name: str):
    cfg = PriorityConfig()
    cfg.apply_preset(name)
    assert weights(cfg) == PRESETS[name]


def test_preset_only_touches_named_criteria():
    cfg = PriorityConfig(
        [Priority(name="Fairness", weight=1), Priority(name="Custom", weight=33)]
    )
    cfg.apply_preset("Fair Distribution")
    assert weights(cfg) == {"Fairness": 90, "Custom": 33}


def test_unknown_preset_raises():
    with pytest.raises(RuleError):
        PriorityConfig().apply_preset("Make It Fast")


def test_as_dicts():
    assert PriorityConfig().as_dicts()[0] == {
        "name": "Priority Level",
        "weight": 70,
        "description": "Client priority importance",
    }
