# tests/export/test_exporter.py
from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from schedcheck.dataloader.records_loader import RecordsLoader
from schedcheck.errors import ExportBlockedError
from schedcheck.export.exporter import (
    build_rules_config,
    export_package,
    to_delimited_text,
    write_entity_csv,
    write_rules_config,
)
from schedcheck.rules.priorities import DEFAULT_PRIORITIES
from schedcheck.schemas.models import Client, Finding, Rule, Task, Worker


def _clients() -> list[Client]:
    return [
        Client(
            ClientID="C1",
            ClientName='Acme, "Inc"',
            PriorityLevel=3,
            RequestedTaskIDs=["T1", "T2"],
            GroupTag="GroupA",
            AttributesJSON='{"location": "NY"}',
        ),
        Client(ClientID="C2", ClientName="Globex", PriorityLevel=5),
    ]


def _error() -> Finding:
    return Finding(
        type="duplicate", message="Duplicate ClientID: C1", entity="clients", row_index=1, severity="error"
    )


def _warning() -> Finding:
    return Finding(
        type="saturation",
        message="Phase 1 is oversaturated: workload 3 > capacity 2",
        entity="tasks",
        severity="warning",
    )


# --------------------------
# to_delimited_text
# --------------------------
def test_delimited_text_quotes_and_joins():
    """
    @brief
    Header from field order, arrays joined, values quoted only when needed.
    """
    # --- Act ---
    text = to_delimited_text(_clients())

    # --- Assert ---
    lines = text.split("\n")
    assert lines[0] == "ClientID,ClientName,PriorityLevel,RequestedTaskIDs,GroupTag,AttributesJSON"
    assert lines[1] == 'C1,"Acme, ""Inc""",3,"T1,T2",GroupA,"{""location"": ""NY""}"'
    assert lines[2] == "C2,Globex,5,,Default,{}"
    assert text.endswith("\n")


def test_delimited_text_custom_separator():
    text = to_delimited_text([Worker(WorkerID="W1", Skills=["a", "b"], AvailableSlots=[1, 2])], "|")
    assert text.split("\n")[1].startswith("W1,Unknown Worker,a|b,1|2,")


def test_empty_collection_renders_empty_string():
    assert to_delimited_text([]) == ""


def test_csv_round_trips_through_loader(tmp_path: Path):
    """
    @brief
    Exported CSV re-loads into equivalent records.

    @details
    Array fields come back as sequences split on commas.
    """
    # --- Arrange ---
    tasks = [
        Task(TaskID="T1", TaskName="Clean, then load", Duration=2, RequiredSkills=["python", "sql"], PreferredPhases=[1, 3]),
        Task(TaskID="T2", TaskName="Train", Category="ML", PreferredPhases=[2], MaxConcurrent=2),
    ]
    path = write_entity_csv(tasks, tmp_path / "tasks-cleaned.csv")

    # --- Act ---
    result = RecordsLoader().load(path, "tasks")

    # --- Assert ---
    assert result.success
    assert result.records == tasks


def test_clients_round_trip(tmp_path: Path):
    path = write_entity_csv(_clients(), tmp_path / "clients-cleaned.csv")
    assert RecordsLoader().load(path, "clients").records == _clients()


# --------------------------
# rules config
# --------------------------
def test_build_rules_config_shape():
    rules = [Rule(id="1", type="coRun", params={"tasks": ["T1", "T2"]}, description="together")]
    now = datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    doc = build_rules_config(rules, DEFAULT_PRIORITIES, now=now)

    assert doc["rules"] == [
        {"id": "1", "type": "coRun", "params": {"tasks": ["T1", "T2"]}, "description": "together"}
    ]
    assert doc["priorities"][0] == {
        "name": "Priority Level",
        "weight": 70,
        "description": "Client priority importance",
    }
    assert doc["metadata"] == {"exportedAt": "2025-01-02T03:04:05.000Z", "version": "1.0.0"}


def test_write_rules_config(tmp_path: Path):
    path = write_rules_config([], DEFAULT_PRIORITIES, tmp_path, version="2.1.0")
    doc = json.loads(path.read_text(encoding="utf-8"))
    assert path.name == "rules-config.json"
    assert doc["rules"] == []
    assert doc["metadata"]["version"] == "2.1.0"


# --------------------------
# export_package
# --------------------------
def test_export_blocked_by_errors(tmp_path: Path):
    with pytest.raises(ExportBlockedError):
        export_package(_clients(), [], [], [], DEFAULT_PRIORITIES, [_error()], tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_export_with_warnings_skips_empty_collections(tmp_path: Path):
    # --- Act ---
    written = export_package(
        _clients(), [], [Task(TaskID="T1")], [], DEFAULT_PRIORITIES, [_warning()], tmp_path
    )

    # --- Assert ---
    assert [p.name for p in written] == ["clients-cleaned.csv", "tasks-cleaned.csv", "rules-config.json"]
    assert not (tmp_path / "workers-cleaned.csv").exists()
