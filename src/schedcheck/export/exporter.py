# src/schedcheck/export/exporter.py
from __future__ import annotations

import csv
import io
import json
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from schedcheck.errors import DataError, ExportBlockedError
from schedcheck.metrics.logger import _atomic_write_text
from schedcheck.schemas.models import (
    Client,
    EntityType,
    Finding,
    Priority,
    Record,
    Rule,
    Task,
    Worker,
)
from schedcheck.validator.validator import can_export, count_errors

logger = logging.getLogger(__name__)

ENTITY_FILENAMES = {
    EntityType.CLIENTS: "clients-cleaned.csv",
    EntityType.WORKERS: "workers-cleaned.csv",
    EntityType.TASKS: "tasks-cleaned.csv",
}
RULES_CONFIG_FILENAME = "rules-config.json"


def _cell(value: Any, separator: str) -> str:
    if isinstance(value, (list, tuple)):
        return separator.join(str(v) for v in value)
    if value is None:
        return ""
    return str(value)


def _as_row(record: Any) -> dict[str, Any]:
    if hasattr(record, "model_dump"):
        return record.model_dump()
    if isinstance(record, Mapping):
        return dict(record)
    raise DataError(
        f"Unsupported record type: {type(record).__name__}",
        source="export.to_delimited_text",
        suggested_action="Pass Client/Worker/Task models or mappings.",
    )


def to_delimited_text(records: Sequence[Record | Mapping[str, Any]], separator: str = ",") -> str:
    """
    @brief
    Render records as comma-delimited text with a header row.

    @details
    Columns follow the first record's field order. List-valued fields are
    joined with `separator`. A value is quoted when it contains the delimiter,
    a double quote or a newline; embedded quotes are doubled. Rows end with
    "\\n". An empty collection renders as "".

    @params
        records : Sequence
            Homogeneous record collection.
        separator : str
            Joiner for list-valued fields (default ",").
    """
    if not records:
        return ""

    rows = [_as_row(r) for r in records]
    headers = list(rows[0])

    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(row.get(h), separator) for h in headers])
    return buf.getvalue()


def write_entity_csv(
    records: Sequence[Record | Mapping[str, Any]], out_path: Path, separator: str = ","
) -> Path:
    """Atomically write one entity collection as delimited text."""
    out_path = Path(out_path)
    _atomic_write_text(out_path, to_delimited_text(records, separator), encoding="utf-8")
    logger.info("Exported %d record(s) to %s", len(records), out_path)
    return out_path


def build_rules_config(
    rules: Sequence[Rule],
    priorities: Sequence[Priority],
    version: str = "1.0.0",
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    @brief
    Assemble the rules configuration document.

    @returns
        {"rules": [...], "priorities": [...],
         "metadata": {"exportedAt": ISO-8601 UTC, "version": version}}
    """
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return {
        "rules": [r.model_dump(mode="json") for r in rules],
        "priorities": [p.model_dump(mode="json") for p in priorities],
        "metadata": {
            "exportedAt": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "version": version,
        },
    }


def write_rules_config(
    rules: Sequence[Rule],
    priorities: Sequence[Priority],
    out_dir: Path,
    version: str = "1.0.0",
    now: datetime | None = None,
) -> Path:
    document = build_rules_config(rules, priorities, version=version, now=now)
    target = Path(out_dir) / RULES_CONFIG_FILENAME
    _atomic_write_text(target, json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
    logger.info("Rules config written: %s (%d rule(s))", target, len(rules))
    return target


def export_package(
    clients: Sequence[Client],
    workers: Sequence[Worker],
    tasks: Sequence[Task],
    rules: Sequence[Rule],
    priorities: Sequence[Priority],
    findings: Sequence[Finding],
    out_dir: Path,
    version: str = "1.0.0",
    separator: str = ",",
) -> list[Path]:
    """
    @brief
    Write the cleaned data and rules configuration.

    @details
    Refused while any error-severity finding exists; warnings never block.
    Empty collections produce no CSV file. rules-config.json is always
    written.

    @returns
        Paths of all written files, CSVs first.

    @raises
        ExportBlockedError
            If findings contain errors.
        DataError
            On write failure.
    """
    if not can_export(findings):
        raise ExportBlockedError(
            f"Export blocked: {count_errors(findings)} validation error(s)",
            source="export.export_package",
            suggested_action="Fix all validation errors before exporting.",
        )

    out_dir = Path(out_dir)
    written: list[Path] = []
    collections = {
        EntityType.CLIENTS: clients,
        EntityType.WORKERS: workers,
        EntityType.TASKS: tasks,
    }
    for entity, records in collections.items():
        if not records:
            logger.debug("Skipping empty %s collection", entity.value)
            continue
        written.append(write_entity_csv(records, out_dir / ENTITY_FILENAMES[entity], separator))

    written.append(write_rules_config(rules, priorities, out_dir, version=version))
    return written


__all__ = [
    "ENTITY_FILENAMES",
    "RULES_CONFIG_FILENAME",
    "build_rules_config",
    "export_package",
    "to_delimited_text",
    "write_entity_csv",
    "write_rules_config",
]
