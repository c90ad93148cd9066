import pytest
from pydantic import ValidationError

from schedcheck.schemas.models import (
    Client,
    Config,
    EntityType,
    Finding,
    FindingType,
    Priority,
    Rule,
    RuleType,
    Severity,
    Task,
    TranslatorConfig,
    Worker,
)


def test_record_defaults():
    c = Client()
    w = Worker()
    t = Task()

    assert c.ClientName == "Unknown Client"
    assert c.PriorityLevel == 1
    assert c.RequestedTaskIDs == []
    assert c.GroupTag == "Default"
    assert c.AttributesJSON == "{}"

    assert w.WorkerName == "Unknown Worker"
    assert w.AvailableSlots == []
    assert w.MaxLoadPerPhase == 1

    assert t.Category == "General"
    assert t.Duration == 1
    assert t.PreferredPhases == []
    assert t.MaxConcurrent == 1


def test_record_rejects_unknown_fields():
    with pytest.raises(ValidationError):
        Client(ClientID="C1", Extra="x")


def test_finding_is_frozen_and_serializes_by_alias():
    f = Finding(
        type=FindingType.RANGE,
        message="PriorityLevel must be between 1-5, got 0",
        entity=EntityType.CLIENTS,
        field="PriorityLevel",
        row_index=0,
        severity=Severity.ERROR,
    )

    data = f.model_dump(by_alias=True, exclude_none=True)
    assert data == {
        "type": "range",
        "message": "PriorityLevel must be between 1-5, got 0",
        "entity": "clients",
        "field": "PriorityLevel",
        "rowIndex": 0,
        "severity": "error",
    }

    with pytest.raises(ValidationError):
        f.message = "changed"  # type: ignore[misc]


def test_aggregate_finding_has_no_row():
    f = Finding(
        type=FindingType.SATURATION,
        message="Phase 1 is oversaturated: workload 3 > capacity 2",
        entity=EntityType.TASKS,
        severity=Severity.WARNING,
    )
    assert "rowIndex" not in f.model_dump(by_alias=True, exclude_none=True)


def test_rule_and_priority_bounds():
    r = Rule(id="1", type=RuleType.CO_RUN, params={"tasks": ["T1"]}, description="coRun rule")
    assert r.type == "coRun"

    with pytest.raises(ValidationError):
        Rule(id="", type=RuleType.CO_RUN)
    with pytest.raises(ValidationError):
        Rule(id="1", type="notARule")
    with pytest.raises(ValidationError):
        Priority(name="Fairness", weight=101)
    with pytest.raises(ValidationError):
        Priority(name="Fairness", weight=-1)


def test_config_defaults():
    cfg = Config()
    assert cfg.validation.write_report is True
    assert cfg.export.version == "1.0.0"
    assert cfg.export.array_separator == ","
    assert cfg.translator.provider == "none"
    assert cfg.translator.model == "gpt-3.5-turbo"
    assert cfg.translator.sample_size == 2
    assert cfg.priorities is None

    schema = Config.model_json_schema()
    assert "properties" in schema


def test_translator_provider_is_restricted():
    with pytest.raises(ValidationError):
        TranslatorConfig(provider="anthropic")
