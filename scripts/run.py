# scripts/run.py
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
import traceback
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from schedcheck.dataloader.config_loader import ConfigLoader
from schedcheck.errors import DataError, ExportBlockedError, SchedcheckError
from schedcheck.metrics.logger import write_metrics
from schedcheck.metrics.metrics import collect_metrics
from schedcheck.rules.builder import parse_rule
from schedcheck.schemas.models import EntityType
from schedcheck.session import Session
from schedcheck.validator.validator import Validator


def _setup_logging() -> None:
    """
    @brief
    Initializes global logging configuration.

    @details
    Sets the default logging level to INFO and defines a simple console format.
    """
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _parse_args() -> argparse.Namespace:
    """
    @brief
    Parses command-line arguments for the schedcheck pipeline.

    @details
    Any of --clients, --workers, --tasks may be omitted; validation then runs
    on the collections that were given (cross-checks need both sides).
    """
    parser = argparse.ArgumentParser(
        prog="schedcheck-run",
        description="Load scheduling inputs, validate them and export the cleaned package: load → validate → metrics → export",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config YAML, e.g. config/config.yaml (default: built-in settings)",
    )
    parser.add_argument("--clients", type=str, default=None, help="Clients CSV/XLSX")
    parser.add_argument("--workers", type=str, default=None, help="Workers CSV/XLSX")
    parser.add_argument("--tasks", type=str, default=None, help="Tasks CSV/XLSX")
    parser.add_argument(
        "--rules",
        type=str,
        default=None,
        help="Optional JSON file with a list of rules to include in rules-config.json",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output directory for artifacts (default: export.output_dir from config)",
    )

    return parser.parse_args()


def _load_rules(path: Path) -> list[dict[str, Any]]:
    """Reads a rules file: either a JSON list or an object with a "rules" list."""
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise DataError(
            message=f"Cannot read rules file {path}: {e}",
            source="scripts.run",
            suggested_action="Provide a JSON list of rule objects.",
        ) from e
    if isinstance(payload, dict):
        payload = payload.get("rules", [])
    if not isinstance(payload, list):
        raise DataError(
            message=f"Rules file {path} must contain a list of rules",
            source="scripts.run",
        )
    for i, item in enumerate(payload):
        if not isinstance(item, Mapping):
            raise DataError(
                message=f"Rule #{i} in {path} is not an object: {item!r}",
                source="scripts.run",
                suggested_action="Each rule must be a JSON object with at least a \"type\" key.",
            )
    return payload


def run_pipeline(
    config_path: Path | None,
    inputs: dict[str, Path | None],
    output_dir: Path | None = None,
    rules_path: Path | None = None,
) -> dict[str, Any]:
    """
    @brief
    Executes the full schedcheck pipeline.

    @details
    (1) Load configuration and the given record files.
    (2) Validate and write validation_report.json.
    (3) Collect metrics into metrics.json.
    (4) Export cleaned CSVs and rules-config.json when no errors remain.

    @returns
        Dictionary with the export gate, finding counts and artifact paths.

    @raises
        SchedcheckError
            On configuration or data issues. A blocked export is not raised;
            it is reported through `exported=False`.
    """
    t0 = time.perf_counter()

    # (1) Configuration and session
    logging.info("Loading config: %s", config_path or "<defaults>")
    cfg = ConfigLoader().load(config_path)
    if output_dir is not None:
        cfg = cfg.model_copy(update={"export": cfg.export.model_copy(update={"output_dir": str(output_dir)})})
    out_dir = Path(cfg.export.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    session = Session(cfg)

    # (2) Records
    for entity in EntityType:
        path = inputs.get(entity.value)
        if path is None:
            continue
        logging.info("Loading %s: %s", entity.value, path)
        session.load_file(entity, path)

    if rules_path is not None:
        for payload in _load_rules(rules_path):
            session.rule_builder.add(parse_rule(payload, rule_id=payload.get("id") or None))
        logging.info("Loaded %d rule(s) from %s", len(session.rule_builder), rules_path)

    # (3) Validation report
    logging.info("Validating records…")
    validator = Validator(session.clients, session.workers, session.tasks)
    validator.run_all_checks()
    report_path: Path | None = None
    if cfg.validation.write_report:
        report_path = validator.save_report(
            validator.build_report(), out_dir=out_dir, filename=cfg.validation.report_filename
        )

    # (4) Metrics
    logging.info("Collecting metrics…")
    metrics = collect_metrics(
        session.clients,
        session.workers,
        session.tasks,
        session.findings,
        rules=session.rule_builder.rules,
        priorities=session.priority_config.priorities,
    )
    metrics_path = write_metrics(metrics, out_dir=out_dir)

    # (5) Export
    exported: list[Path] = []
    try:
        exported = session.export(out_dir)
    except ExportBlockedError as e:
        logging.warning(str(e))

    logging.info("Pipeline finished in %.2f s", time.perf_counter() - t0)

    return {
        "exported": bool(exported),
        "num_errors": metrics["num_errors"],
        "num_warnings": metrics["num_warnings"],
        "artifacts": {
            "validation_report": report_path,
            "metrics": metrics_path,
            "export": exported,
        },
    }


def main() -> int:
    """
    @brief
    CLI entry point for the schedcheck pipeline.

    @details
    Exit codes:
      0 – package exported
      1 – controlled failure (config/data) or export blocked by errors
      2 – unexpected crash
    """
    _setup_logging()
    args = _parse_args()

    inputs = {
        EntityType.CLIENTS.value: Path(args.clients) if args.clients else None,
        EntityType.WORKERS.value: Path(args.workers) if args.workers else None,
        EntityType.TASKS.value: Path(args.tasks) if args.tasks else None,
    }

    try:
        result = run_pipeline(
            Path(args.config) if args.config else None,
            inputs,
            output_dir=Path(args.output) if args.output else None,
            rules_path=Path(args.rules) if args.rules else None,
        )
        logging.info(
            "Findings: %d error(s), %d warning(s); exported %d file(s)",
            result["num_errors"],
            result["num_warnings"],
            len(result["artifacts"]["export"]),
        )
        return 0 if result["exported"] else 1

    except SchedcheckError as e:
        logging.error(str(e))
        return 1
    except Exception:
        logging.error("Unexpected error occurred:")
        traceback.print_exc()
        return 2


if __name__ == "__main__":
    sys.exit(main())
