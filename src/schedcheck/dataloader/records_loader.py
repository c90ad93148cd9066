# src/schedcheck/dataloader/records_loader.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import pandas as pd
from schedcheck.dataloader.normalizer import normalize_row
from schedcheck.dataloader.types import LoadResult
from schedcheck.errors import DataError
from schedcheck.schemas.models import RECORD_MODELS, EntityType, Record

logger = logging.getLogger(__name__)


class RecordsLoader:
    """
    Spreadsheet (CSV / Excel) → LoadResult[Client | Worker | Task].

    Rules:
      - Supported formats: .csv (UTF-8), .xlsx (first sheet only)
      - Every cell is read as text; blank cells become ""
      - Cell values are stripped, then passed through the normalizer
      - A header sharing no column with the entity's fields → issue
        (typically the wrong file for this entity); rows are not normalised
      - On completion:
          * issues present → success=False, records=[], errors=[...]
          * otherwise      → success=True, records in original row order

    Fatal errors (raise DataError immediately):
      - missing / unreadable file
      - unsupported extension
      - unknown entity name
    """

    SUPPORTED_SUFFIXES = (".csv", ".xlsx")

    def load(self, path: Path, entity: str) -> LoadResult:
        entity = self._check_entity(entity)
        columns, rows = self._read_rows(path)
        result = self._rows_to_result(columns, rows, entity)
        self._report_summary(path, result)
        return result

    # ------------------------------
    # Internal helpers
    # ------------------------------
    def _check_entity(self, entity: str) -> str:
        try:
            return EntityType(entity).value
        except ValueError as e:
            raise DataError(
                message=f"Unknown entity type: {entity!r}",
                source="RecordsLoader.load",
                suggested_action="Use one of: clients, workers, tasks.",
            ) from e

    def _read_rows(self, path: Path) -> tuple[list[str], list[dict[str, Any]]]:
        if not isinstance(path, Path):
            raise DataError(
                message=f"Invalid path type: expected pathlib.Path, got {type(path).__name__}",
                source="RecordsLoader._read_rows",
                suggested_action="Pass a pathlib.Path pointing to the spreadsheet.",
            )
        if not path.exists():
            raise DataError(
                message=f"Input file not found: {path}",
                source="RecordsLoader._read_rows",
                suggested_action="Verify file path and ensure the file is present.",
            )

        suffix = path.suffix.lower()
        if suffix not in self.SUPPORTED_SUFFIXES:
            raise DataError(
                message=f"Unsupported file extension: {path.suffix}",
                source="RecordsLoader._read_rows",
                suggested_action="Provide a .csv or .xlsx file.",
            )

        try:
            if suffix == ".csv":
                df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
            else:
                df = pd.read_excel(path, sheet_name=0, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return [], []
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise DataError(
                message=f"Unable to read spreadsheet: {e}",
                source="RecordsLoader._read_rows",
                suggested_action="Check the file format and that the file is not locked.",
            ) from e

        df.columns = [str(c).strip() for c in df.columns]
        return list(df.columns), [self._strip_row(r) for r in df.to_dict(orient="records")]

    def _strip_row(self, row: dict[str, Any]) -> dict[str, Any]:
        return {k: (v.strip() if isinstance(v, str) else v) for k, v in row.items()}

    def _header_issues(self, columns: list[str], entity: str) -> list[dict[str, Any]]:
        expected = RECORD_MODELS[entity].model_fields
        if not columns or any(c in expected for c in columns):
            return []
        return [
            {
                "kind": "unrecognised_header",
                "line_no": 1,
                "message": (
                    f"No {entity} columns found in header {columns}; "
                    f"expected some of: {', '.join(expected)}"
                ),
            }
        ]

    def _rows_to_result(
        self, columns: list[str], rows: list[dict[str, Any]], entity: str
    ) -> LoadResult:
        issues = self._header_issues(columns, entity)
        if issues:
            return LoadResult(
                entity=entity,
                success=False,
                records=[],
                errors=issues,
                total_rows=len(rows),
                kept_rows=0,
            )

        records: list[Record] = [normalize_row(row, entity, idx) for idx, row in enumerate(rows)]
        return LoadResult(
            entity=entity,
            success=True,
            records=records,
            errors=[],
            total_rows=len(rows),
            kept_rows=len(records),
        )

    def _report_summary(self, path: Path, result: LoadResult) -> None:
        if result.success:
            logger.info(
                "RecordsLoader OK: %s kept=%d/%d from %s",
                result.entity,
                result.kept_rows,
                result.total_rows,
                path,
            )
        else:
            logger.error(
                "RecordsLoader failed: %d issue(s) across %d %s row(s) in %s",
                len(result.errors),
                result.total_rows,
                result.entity,
                path,
            )


__all__ = ["RecordsLoader"]
