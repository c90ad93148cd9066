# src/schedcheck/dataloader/postload_handler.py
from __future__ import annotations

import json
import logging
from pathlib import Path

from schedcheck.dataloader.types import LoadResult
from schedcheck.schemas.models import Record

logger = logging.getLogger(__name__)


class LoadResultHandler:
    """
    @brief
    Handles the LoadResult after spreadsheet parsing and writes diagnostic reports if needed.

    @details
    If the load succeeded, returns the normalized records. If the load failed,
    writes a JSON error report named '<entity>_load_errors.json' and returns None,
    so the caller can stop before validation while keeping per-row context.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def handle(self, result: LoadResult) -> list[Record] | None:
        """
        @brief
        Processes LoadResult and produces either records for validation or an error report.

        @details
        Any I/O failure during report creation is logged but does not raise further.
        """
        # (1) Success path: pass records downstream
        if result.success:
            logger.info("PostLoad: %d %s record(s) ready for validation.", result.kept_rows, result.entity)
            return result.records

        # (2) Failure path: ensure directory and prepare JSON report
        self.output_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.output_dir / f"{result.entity}_load_errors.json"

        try:
            with out_path.open("w", encoding="utf-8") as f:
                json.dump(result.errors, f, ensure_ascii=False, indent=2)

            logger.error(
                "PostLoad: %s load failed, %d issue(s). See %s",
                result.entity,
                len(result.errors),
                out_path,
            )
        except OSError as e:
            logger.error("PostLoad: failed to write error report: %s", e)

        return None
