# tests/rules/test_builder.py
import pytest

from schedcheck.errors import RuleError
from schedcheck.rules.builder import (
    RuleBuilder,
    RuleIdGenerator,
    check_params,
    default_params,
    parse_rule,
)
from schedcheck.schemas.models import Rule, RuleType


class _FrozenClock:
    """Always returns the same millisecond timestamp."""

    def __init__(self, value: int = 1_700_000_000_000) -> None:
        self.value = value

    def __call__(self) -> int:
        return self.value


@pytest.mark.parametrize(
    "kind, expected",
    [
        ("coRun", {"tasks": []}),
        ("slotRestriction", {"group": "", "minCommonSlots": 1}),
        ("loadLimit", {"workerGroup": "", "maxSlotsPerPhase": 1}),
        ("phaseWindow", {"taskId": "", "allowedPhases": []}),
        ("patternMatch", {}),
    ],
)
def test_default_params(kind: str, expected: dict):
    assert default_params(kind) == expected


def test_unknown_rule_type_raises():
    with pytest.raises(RuleError):
        default_params("teleport")


def test_id_generator_is_strictly_increasing_under_a_frozen_clock():
    # --- Arrange ---
    ids = RuleIdGenerator(clock=_FrozenClock())

    # --- Act ---
    issued = [ids.next_id() for _ in range(5)]

    # --- Assert ---
    assert issued[0] == "1700000000000"
    assert [int(i) for i in issued] == list(range(1_700_000_000_000, 1_700_000_000_005))


def test_create_assigns_unique_ids_and_defaults():
    """
    @brief
    Created rules get fresh unique ids, default params and "<type> rule".
    """
    # --- Arrange ---
    builder = RuleBuilder(ids=RuleIdGenerator(clock=_FrozenClock()))

    # --- Act ---
    created = [builder.create(kind) for kind in ("coRun", "loadLimit", "coRun")]

    # --- Assert ---
    assert len({r.id for r in created}) == 3
    assert created[0].type == "coRun"
    assert created[0].params == {"tasks": []}
    assert created[1].description == "loadLimit rule"
    assert [r.id for r in builder.rules] == [r.id for r in created]


def test_update_params_replaces_whole_object():
    builder = RuleBuilder()
    rule = builder.create(RuleType.SLOT_RESTRICTION)

    updated = builder.update_params(rule.id, {"group": "GroupA", "minCommonSlots": 3})
    assert updated.params == {"group": "GroupA", "minCommonSlots": 3}

    # omitted keys fall back to defaults, not to the previous values
    updated = builder.update_params(rule.id, {"group": "GroupB"})
    assert updated.params == {"group": "GroupB", "minCommonSlots": 1}
    assert builder.get(rule.id).params == updated.params


def test_update_params_rejects_bad_shape():
    builder = RuleBuilder()
    rule = builder.create("loadLimit")

    with pytest.raises(RuleError):
        builder.update_params(rule.id, {"workerGroup": "A", "maxSlotsPerPhase": 0})
    with pytest.raises(RuleError):
        builder.update_params(rule.id, {"unknownKey": 1})
    assert builder.get(rule.id).params == {"workerGroup": "", "maxSlotsPerPhase": 1}


def test_references_to_unknown_tasks_are_accepted():
    builder = RuleBuilder()
    rule = builder.create("coRun")
    updated = builder.update_params(rule.id, {"tasks": ["T404", "T405"]})
    assert updated.params["tasks"] == ["T404", "T405"]


def test_update_description_and_delete():
    builder = RuleBuilder()
    a = builder.create("coRun")
    b = builder.create("phaseWindow")

    builder.update_description(a.id, "T1 and T2 run together")
    assert builder.get(a.id).description == "T1 and T2 run together"

    removed = builder.delete(a.id)
    assert removed.id == a.id
    assert [r.id for r in builder.rules] == [b.id]
    assert len(builder) == 1


@pytest.mark.parametrize("op", ["get", "delete"])
def test_unknown_id_raises(op: str):
    builder = RuleBuilder()
    with pytest.raises(RuleError):
        getattr(builder, op)("missing")


def test_add_reissues_colliding_id():
    builder = RuleBuilder()
    first = builder.add(Rule(id="42", type="coRun", params={"tasks": []}))
    second = builder.add(Rule(id="42", type="coRun", params={"tasks": ["T1"]}))

    assert first.id == "42"
    assert second.id != "42"
    assert len({r.id for r in builder.rules}) == 2


def test_parse_rule_accepts_flat_form():
    rule = parse_rule(
        {"type": "phaseWindow", "taskId": "T1", "allowedPhases": [1, 2], "description": "early"},
        rule_id="7",
    )
    assert rule.id == "7"
    assert rule.type == "phaseWindow"
    assert rule.params == {"taskId": "T1", "allowedPhases": [1, 2]}
    assert rule.description == "early"


def test_parse_rule_accepts_nested_form_and_replaces_id():
    rule = parse_rule({"id": "from-model", "type": "coRun", "params": {"tasks": ["T1", "T2"]}})
    assert rule.id != "from-model"
    assert rule.params == {"tasks": ["T1", "T2"]}
    assert rule.description == "coRun rule"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"type": "nope"},
        {"type": "loadLimit", "maxSlotsPerPhase": "many"},
        ["coRun"],
    ],
)
def test_parse_rule_rejects_malformed(payload):
    with pytest.raises(RuleError):
        parse_rule(payload)  # type: ignore[arg-type]


def test_check_params_fills_defaults():
    assert check_params("phaseWindow", {"taskId": "T3"}) == {"taskId": "T3", "allowedPhases": []}
