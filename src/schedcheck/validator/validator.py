# src/schedcheck/validator/validator.py
from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from schedcheck.errors import DataError
from schedcheck.metrics.logger import _atomic_write_text
from schedcheck.schemas.models import (
    Client,
    EntityType,
    Finding,
    FindingType,
    Severity,
    Task,
    Worker,
)

logger = logging.getLogger(__name__)

PRIORITY_MIN, PRIORITY_MAX = 1, 5
PHASE_MIN, PHASE_MAX = 1, 10


# ----------------------------
# AUXILIARY FUNCTIONS
# ----------------------------
def _finding(
    kind: FindingType,
    message: str,
    entity: EntityType,
    severity: Severity = Severity.ERROR,
    field: str | None = None,
    row_index: int | None = None,
) -> Finding:
    return Finding(
        type=kind,
        message=message,
        entity=entity,
        field=field,
        row_index=row_index,
        severity=severity,
    )


def _reject_constant(name: str) -> Any:
    # json.loads accepts NaN / Infinity, which are not valid JSON text
    raise ValueError(f"invalid JSON constant {name}")


def _is_json_text(text: str) -> bool:
    try:
        json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return False
    return True


def _key_checks(
    keys: Sequence[str], key_field: str, entity: EntityType, label: str
) -> list[list[Finding]]:
    """
    @brief
    Missing-key and duplicate-key findings, grouped per row.

    @details
    Keys are scanned in original order. The first occurrence of a key is never
    flagged; every later repeat yields its own `duplicate` finding, so a key
    seen n times produces n-1 findings.
    """
    seen: set[str] = set()
    per_row: list[list[Finding]] = []
    for index, key in enumerate(keys):
        row: list[Finding] = []
        if not key:
            row.append(
                _finding(
                    FindingType.MISSING,
                    f"{key_field} is required",
                    entity,
                    field=key_field,
                    row_index=index,
                )
            )
        elif key in seen:
            row.append(
                _finding(
                    FindingType.DUPLICATE,
                    f"Duplicate {label}: {key}",
                    entity,
                    field=key_field,
                    row_index=index,
                )
            )
        if key:
            seen.add(key)
        per_row.append(row)
    return per_row


# ----------------------------
# PER-ENTITY STRUCTURAL CHECKS
# ----------------------------
def validate_clients_individual(clients: Sequence[Client]) -> list[Finding]:
    """
    @brief
    Structural checks on the clients collection (no cross-references).

    @details
    Missing/duplicate ClientID, PriorityLevel in [1, 5], AttributesJSON
    well-formedness when non-empty.
    """
    entity = EntityType.CLIENTS
    findings: list[Finding] = []
    key_rows = _key_checks([c.ClientID for c in clients], "ClientID", entity, "ClientID")

    for index, client in enumerate(clients):
        findings.extend(key_rows[index])

        if client.PriorityLevel < PRIORITY_MIN or client.PriorityLevel > PRIORITY_MAX:
            findings.append(
                _finding(
                    FindingType.RANGE,
                    f"PriorityLevel must be between {PRIORITY_MIN}-{PRIORITY_MAX}, "
                    f"got {client.PriorityLevel}",
                    entity,
                    field="PriorityLevel",
                    row_index=index,
                )
            )

        if client.AttributesJSON and not _is_json_text(client.AttributesJSON):
            findings.append(
                _finding(
                    FindingType.JSON,
                    "Invalid JSON in AttributesJSON",
                    entity,
                    field="AttributesJSON",
                    row_index=index,
                )
            )

    return findings


def validate_workers_individual(workers: Sequence[Worker]) -> list[Finding]:
    """
    @brief
    Structural checks on the workers collection.

    @details
    Missing/duplicate WorkerID, non-empty AvailableSlots, MaxLoadPerPhase >= 1,
    and every slot within [1, 10] (one finding per offending slot).
    """
    entity = EntityType.WORKERS
    findings: list[Finding] = []
    key_rows = _key_checks([w.WorkerID for w in workers], "WorkerID", entity, "WorkerID")

    for index, worker in enumerate(workers):
        findings.extend(key_rows[index])

        if not worker.AvailableSlots:
            findings.append(
                _finding(
                    FindingType.MISSING,
                    "AvailableSlots cannot be empty",
                    entity,
                    field="AvailableSlots",
                    row_index=index,
                )
            )

        if worker.MaxLoadPerPhase < 1:
            findings.append(
                _finding(
                    FindingType.RANGE,
                    f"MaxLoadPerPhase must be >= 1, got {worker.MaxLoadPerPhase}",
                    entity,
                    field="MaxLoadPerPhase",
                    row_index=index,
                )
            )

        for slot in worker.AvailableSlots:
            if slot < PHASE_MIN or slot > PHASE_MAX:
                findings.append(
                    _finding(
                        FindingType.RANGE,
                        f"Invalid phase number: {slot} (must be {PHASE_MIN}-{PHASE_MAX})",
                        entity,
                        field="AvailableSlots",
                        row_index=index,
                    )
                )

    return findings


def validate_tasks_individual(tasks: Sequence[Task]) -> list[Finding]:
    """
    @brief
    Structural checks on the tasks collection.

    @details
    Missing/duplicate TaskID, Duration >= 1, MaxConcurrent >= 1.
    Empty PreferredPhases is only a warning: the task stays schedulable.
    """
    entity = EntityType.TASKS
    findings: list[Finding] = []
    key_rows = _key_checks([t.TaskID for t in tasks], "TaskID", entity, "TaskID")

    for index, task in enumerate(tasks):
        findings.extend(key_rows[index])

        if task.Duration < 1:
            findings.append(
                _finding(
                    FindingType.RANGE,
                    f"Duration must be >= 1, got {task.Duration}",
                    entity,
                    field="Duration",
                    row_index=index,
                )
            )

        if task.MaxConcurrent < 1:
            findings.append(
                _finding(
                    FindingType.RANGE,
                    f"MaxConcurrent must be >= 1, got {task.MaxConcurrent}",
                    entity,
                    field="MaxConcurrent",
                    row_index=index,
                )
            )

        if not task.PreferredPhases:
            findings.append(
                _finding(
                    FindingType.MISSING,
                    "PreferredPhases cannot be empty",
                    entity,
                    severity=Severity.WARNING,
                    field="PreferredPhases",
                    row_index=index,
                )
            )

    return findings


# ----------------------------
# CROSS-REFERENCE PASSES
# ----------------------------
def validate_client_task_references(
    clients: Sequence[Client], tasks: Sequence[Task]
) -> list[Finding]:
    """Every RequestedTaskIDs entry must name an existing TaskID."""
    task_ids = {t.TaskID for t in tasks}
    findings: list[Finding] = []

    for index, client in enumerate(clients):
        for task_id in client.RequestedTaskIDs:
            if task_id and task_id not in task_ids:
                findings.append(
                    _finding(
                        FindingType.REFERENCE,
                        f"Unknown TaskID referenced: {task_id}",
                        EntityType.CLIENTS,
                        field="RequestedTaskIDs",
                        row_index=index,
                    )
                )

    return findings


def qualified_workers(task: Task, workers: Iterable[Worker]) -> list[Worker]:
    """Workers whose skill set is a superset of the task's RequiredSkills."""
    required = set(task.RequiredSkills)
    return [w for w in workers if required <= set(w.Skills)]


def validate_task_worker_references(
    tasks: Sequence[Task], workers: Sequence[Worker]
) -> list[Finding]:
    """
    @brief
    Skill coverage and concurrency feasibility of tasks against the workforce.

    @details
    Both findings are warnings: an uncovered skill is a hiring gap rather than
    a data error, and MaxConcurrent above the number of qualified workers only
    caps achievable parallelism.
    """
    entity = EntityType.TASKS
    all_skills = {skill for w in workers for skill in w.Skills}
    findings: list[Finding] = []

    for index, task in enumerate(tasks):
        for skill in task.RequiredSkills:
            if skill and skill not in all_skills:
                findings.append(
                    _finding(
                        FindingType.SKILL_COVERAGE,
                        f"No worker has required skill: {skill}",
                        entity,
                        severity=Severity.WARNING,
                        field="RequiredSkills",
                        row_index=index,
                    )
                )

        qualified = len(qualified_workers(task, workers))
        if task.MaxConcurrent > qualified:
            findings.append(
                _finding(
                    FindingType.CONCURRENCY,
                    f"MaxConcurrent ({task.MaxConcurrent}) exceeds qualified workers ({qualified})",
                    entity,
                    severity=Severity.WARNING,
                    field="MaxConcurrent",
                    row_index=index,
                )
            )

    return findings


def compute_phase_load(
    workers: Sequence[Worker], tasks: Sequence[Task]
) -> list[dict[str, Any]]:
    """
    @brief
    Per-phase workload vs. capacity table.

    @details
    workload = Σ Duration of tasks listing the phase in PreferredPhases;
    capacity = Σ MaxLoadPerPhase of workers listing the phase in AvailableSlots.
    Rows cover every phase mentioned on either side, in ascending phase order.
    """
    workload: Counter[int] = Counter()
    capacity: Counter[int] = Counter()

    for task in tasks:
        for phase in task.PreferredPhases:
            workload[phase] += task.Duration

    for worker in workers:
        for phase in worker.AvailableSlots:
            capacity[phase] += worker.MaxLoadPerPhase

    rows: list[dict[str, Any]] = []
    for phase in sorted(set(workload) | set(capacity)):
        rows.append(
            {
                "phase": phase,
                "workload": workload.get(phase, 0),
                "capacity": capacity.get(phase, 0),
                "saturated": workload.get(phase, 0) > capacity.get(phase, 0),
            }
        )
    return rows


def validate_cross_references(
    clients: Sequence[Client], workers: Sequence[Worker], tasks: Sequence[Task]
) -> list[Finding]:
    """
    @brief
    Phase saturation across the full data set.

    @details
    One aggregate warning (entity=tasks, no row index) per phase whose
    workload exceeds capacity. Phases demanded by tasks but offered by no
    worker have capacity 0 and are reported the same way.
    """
    findings: list[Finding] = []
    for row in compute_phase_load(workers, tasks):
        if row["saturated"]:
            findings.append(
                _finding(
                    FindingType.SATURATION,
                    f"Phase {row['phase']} is oversaturated: "
                    f"workload {row['workload']} > capacity {row['capacity']}",
                    EntityType.TASKS,
                    severity=Severity.WARNING,
                )
            )
    return findings


# ----------------------------
# COMPOSITION
# ----------------------------
def validate_all(
    clients: Sequence[Client], workers: Sequence[Worker], tasks: Sequence[Task]
) -> list[Finding]:
    """
    @brief
    Run every applicable validation pass in fixed order.

    @details
    Per-entity checks always run. Cross-reference passes run only when every
    collection they read is non-empty, so partial uploads degrade gracefully.
    The result depends only on the inputs: identical inputs give an identical
    findings sequence.
    """
    findings: list[Finding] = []

    # (1) Per-entity structural checks
    findings.extend(validate_clients_individual(clients))
    findings.extend(validate_workers_individual(workers))
    findings.extend(validate_tasks_individual(tasks))

    # (2) Pairwise cross-references
    if clients and tasks:
        findings.extend(validate_client_task_references(clients, tasks))
    if tasks and workers:
        findings.extend(validate_task_worker_references(tasks, workers))

    # (3) Full tri-collection pass
    if clients and workers and tasks:
        findings.extend(validate_cross_references(clients, workers, tasks))

    return findings


def count_errors(findings: Iterable[Finding]) -> int:
    return sum(1 for f in findings if f.severity == Severity.ERROR)


def can_export(findings: Iterable[Finding]) -> bool:
    """Export is allowed iff there are no error-severity findings; warnings never block."""
    return count_errors(findings) == 0


def summarize(findings: Sequence[Finding]) -> dict[str, Any]:
    """Counts by severity, finding type and entity."""
    return {
        "total": len(findings),
        "errors": count_errors(findings),
        "warnings": sum(1 for f in findings if f.severity == Severity.WARNING),
        "by_type": dict(Counter(str(f.type) for f in findings)),
        "by_entity": dict(Counter(str(f.entity) for f in findings)),
    }


# ---------------------------
# VALIDATOR CLASS (report lifecycle)
# ----------------------------
class Validator:
    """
    @brief
    Input data validator with report lifecycle.

    @details
    Wraps `validate_all` and assembles a serializable report. Business-rule
    violations are collected as findings; the validator itself never raises
    for bad records. Only report persistence can fail (DataError).
    """

    def __init__(
        self,
        clients: Sequence[Client],
        workers: Sequence[Worker],
        tasks: Sequence[Task],
    ) -> None:
        self.clients = list(clients)
        self.workers = list(workers)
        self.tasks = list(tasks)
        self.findings: list[Finding] = []

    def run_all_checks(self) -> list[Finding]:
        self.findings = validate_all(self.clients, self.workers, self.tasks)
        logger.info(
            "Validation finished: %d error(s), %d warning(s)",
            count_errors(self.findings),
            len(self.findings) - count_errors(self.findings),
        )
        return self.findings

    def build_report(self) -> dict[str, Any]:
        """
        @brief
        Assemble validation results into a structured dictionary.

        @details
        Splits findings by severity and adds the export gate, a summary and
        the per-phase load table. No files are written at this stage.
        """
        dumped = [f.model_dump(mode="json", by_alias=True, exclude_none=True) for f in self.findings]
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "canExport": can_export(self.findings),
            "errors": [d for d in dumped if d["severity"] == Severity.ERROR.value],
            "warnings": [d for d in dumped if d["severity"] == Severity.WARNING.value],
            "summary": summarize(self.findings),
            "phaseLoad": compute_phase_load(self.workers, self.tasks),
        }

    def save_report(
        self,
        report: dict[str, Any],
        out_dir: Path | None = None,
        filename: str = "validation_report.json",
    ) -> Path:
        """
        Writes the report atomically to disk.

        Args:
            report: Validation report dictionary.
            out_dir: Target directory (defaults to 'data/output').
            filename: Target filename (default 'validation_report.json').

        Returns:
            Path to the written JSON file.
        """
        target_dir = out_dir or Path("data/output")
        final_path = target_dir / filename

        try:
            payload = json.dumps(report, indent=2, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise DataError(
                f"Validation report is not JSON-serializable: {e}",
                source="Validator.save_report",
            ) from e

        _atomic_write_text(final_path, payload)
        logger.info("Validation report saved: %s", final_path)
        return final_path


# ----------------------------
# THIN FACADE
# ----------------------------
def validate_records(
    clients: Sequence[Client],
    workers: Sequence[Worker],
    tasks: Sequence[Task],
    *,
    write_report: bool = False,
    out_dir: Path | None = None,
    filename: str = "validation_report.json",
) -> dict[str, Any]:
    """
    @brief
    High-level convenience wrapper: validate, build the report, optionally persist it.

    @returns
        Report dictionary (always returned, regardless of write mode).
    """
    validator = Validator(clients, workers, tasks)
    validator.run_all_checks()
    report = validator.build_report()
    if write_report:
        validator.save_report(report, out_dir=out_dir, filename=filename)
    return report
