# src/schedcheck/dataloader/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from schedcheck.schemas.models import Record


@dataclass(slots=True)
class LoadResult:
    """
    Structured result of a data loading step.

    Fields:
        entity: Collection name ("clients", "workers" or "tasks").
        success: True if no row-level issues were found, False otherwise.
        records: Normalized records ready for validation (empty if success=False).
        errors: List of issue dicts with per-row context (used for reporting).
                Each item contains at least: kind, line_no, message.
        total_rows: Total number of data rows observed in the file (excludes header).
        kept_rows: Number of successfully normalized records (len(records)).
    """

    entity: str
    success: bool
    records: list[Record] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)
    total_rows: int = 0
    kept_rows: int = 0
