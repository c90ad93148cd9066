# src/schedcheck/dataloader/normalizer.py
"""
@brief
Raw spreadsheet rows → typed Client / Worker / Task records.

@details
Implements the input contract consumed by the validation engine:
    - missing keys get a generated id (C001, W001, T001 ... by 1-based row position)
    - missing text fields get a fixed default ("Unknown Client", "Default", ...)
    - integer fields use a leading-integer parse; unparsable, empty or zero → 1
    - list fields accept real lists, "a, b" comma text, or "[1,2]" JSON text

Range problems are left in place (e.g. PriorityLevel=9) so the
validator can report them.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

from schedcheck.errors import DataError
from schedcheck.schemas.models import Client, EntityType, Record, Task, Worker

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

_ID_PREFIX = {
    EntityType.CLIENTS.value: "C",
    EntityType.WORKERS.value: "W",
    EntityType.TASKS.value: "T",
}


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value is False or value == 0


def _text(value: Any, default: str) -> str:
    if _is_blank(value):
        return default
    return str(value)


def parse_int(value: Any, default: int = 1) -> int:
    """
    @brief
    Leading-integer parse with a fallback default.

    @details
    "3" → 3, "3.7" → 3, "-2" → -2, "12abc" → 12. Anything without a leading
    integer, and zero itself, yields `default`.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value or default
    if isinstance(value, float):
        if value != value:  # NaN
            return default
        return int(value) or default
    m = _LEADING_INT.match(str(value) if value is not None else "")
    if not m:
        return default
    return int(m.group(1)) or default


def _maybe_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return None if value != value else int(value)
    m = _LEADING_INT.match(str(value))
    return int(m.group(1)) if m else None


def parse_string_list(value: Any) -> list[str]:
    """Comma-separated text (or a real list) → trimmed, non-empty strings."""
    if _is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    text = str(value)
    if "," in text:
        return [part.strip() for part in text.split(",") if part.strip()]
    return [text.strip()] if text.strip() else []


def parse_int_list(value: Any) -> list[int]:
    """
    @brief
    Parse a phase list.

    @details
    Accepts a real list, JSON-style "[1,2,3]", comma-separated "1,2,3" or a
    single number. Items that are not numbers are dropped.
    """
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        items: Sequence[Any] = value
    else:
        text = str(value).strip()
        if text.startswith("[") and text.endswith("]"):
            try:
                parsed = json.loads(text)
                items = parsed if isinstance(parsed, list) else [parsed]
            except (ValueError, RecursionError):
                items = text[1:-1].split(",")
        elif "," in text:
            items = text.split(",")
        else:
            items = [text]

    out: list[int] = []
    for item in items:
        n = _maybe_int(item)
        if n is not None:
            out.append(n)
    return out


def _generated_id(entity: str, index: int) -> str:
    return f"{_ID_PREFIX[entity]}{index + 1:03d}"


def normalize_client(row: Mapping[str, Any], index: int) -> Client:
    return Client(
        ClientID=_text(row.get("ClientID"), _generated_id("clients", index)),
        ClientName=_text(row.get("ClientName"), "Unknown Client"),
        PriorityLevel=parse_int(row.get("PriorityLevel")),
        RequestedTaskIDs=parse_string_list(row.get("RequestedTaskIDs")),
        GroupTag=_text(row.get("GroupTag"), "Default"),
        AttributesJSON=_text(row.get("AttributesJSON"), "{}"),
    )


def normalize_worker(row: Mapping[str, Any], index: int) -> Worker:
    return Worker(
        WorkerID=_text(row.get("WorkerID"), _generated_id("workers", index)),
        WorkerName=_text(row.get("WorkerName"), "Unknown Worker"),
        Skills=parse_string_list(row.get("Skills")),
        AvailableSlots=parse_int_list(row.get("AvailableSlots")),
        MaxLoadPerPhase=parse_int(row.get("MaxLoadPerPhase")),
        WorkerGroup=_text(row.get("WorkerGroup"), "Default"),
        QualificationLevel=parse_int(row.get("QualificationLevel")),
    )


def normalize_task(row: Mapping[str, Any], index: int) -> Task:
    return Task(
        TaskID=_text(row.get("TaskID"), _generated_id("tasks", index)),
        TaskName=_text(row.get("TaskName"), "Unknown Task"),
        Category=_text(row.get("Category"), "General"),
        Duration=parse_int(row.get("Duration")),
        RequiredSkills=parse_string_list(row.get("RequiredSkills")),
        PreferredPhases=parse_int_list(row.get("PreferredPhases")),
        MaxConcurrent=parse_int(row.get("MaxConcurrent")),
    )


_NORMALIZERS = {
    EntityType.CLIENTS.value: normalize_client,
    EntityType.WORKERS.value: normalize_worker,
    EntityType.TASKS.value: normalize_task,
}


def normalize_row(row: Mapping[str, Any], entity: str, index: int) -> Record:
    """
    @brief
    Normalize one raw row of the given entity collection.

    @params
        row : Mapping[str, Any]
            Raw column → cell mapping (unknown columns are ignored).
        entity : str
            One of "clients", "workers", "tasks".
        index : int
            Zero-based row position, used for generated ids.

    @raises
        DataError
            If the entity name is unknown.
    """
    try:
        normalizer = _NORMALIZERS[EntityType(entity).value]
    except ValueError as e:
        raise DataError(
            message=f"Unknown entity type: {entity!r}",
            source="normalizer.normalize_row",
            suggested_action="Use one of: clients, workers, tasks.",
        ) from e
    return normalizer(row, index)


def normalize_rows(rows: Sequence[Mapping[str, Any]], entity: str) -> list[Record]:
    """Normalize a whole collection, preserving row order."""
    return [normalize_row(row, entity, i) for i, row in enumerate(rows)]


__all__ = [
    "normalize_row",
    "normalize_rows",
    "parse_int",
    "parse_int_list",
    "parse_string_list",
]
