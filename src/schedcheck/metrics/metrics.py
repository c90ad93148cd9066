# src/schedcheck/metrics/metrics.py
from __future__ import annotations

import json
import math
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from schedcheck.schemas.models import Client, Finding, Priority, Rule, Task, Worker
from schedcheck.validator.validator import compute_phase_load, summarize


def collect_metrics(
    clients: Sequence[Client],
    workers: Sequence[Worker],
    tasks: Sequence[Task],
    findings: Sequence[Finding],
    rules: Sequence[Rule] = (),
    priorities: Sequence[Priority] = (),
) -> dict[str, Any]:
    """
    @brief
    Builds a JSON-serializable dictionary describing one data set.

    @details
    Combines record counts, the finding summary, configured rule kinds and
    per-phase load statistics (utilization = workload / capacity).
    """
    summary = summarize(findings)
    phase_df = _phase_dataframe(workers, tasks)

    metrics = {
        "timestamp": _utc_now_iso(),
        "num_clients": len(clients),
        "num_workers": len(workers),
        "num_tasks": len(tasks),
        "num_errors": summary["errors"],
        "num_warnings": summary["warnings"],
        "findings_by_type": summary["by_type"],
        "can_export": summary["errors"] == 0,
        "num_rules": len(rules),
        "rules_by_type": _count_rule_types(rules),
        "priority_weights": {p.name: p.weight for p in priorities},
        "phases": _phase_stats(phase_df),
    }

    json.dumps(metrics, ensure_ascii=False)
    return metrics


# ----------------- internal -----------------


def _phase_dataframe(workers: Sequence[Worker], tasks: Sequence[Task]) -> pd.DataFrame:
    df = pd.DataFrame(
        compute_phase_load(workers, tasks),
        columns=["phase", "workload", "capacity", "saturated"],
    )
    if df.empty:
        df["utilization"] = pd.Series(dtype=float)
        return df
    cap = df["capacity"].where(df["capacity"] > 0)
    df["utilization"] = (df["workload"] / cap).astype(float)
    return df


def _phase_stats(df: pd.DataFrame) -> dict[str, Any]:
    """
    @brief
    Aggregate phase statistics.

    @details
    Phases without capacity have undefined utilization; they are excluded
    from mean/peak but still counted as saturated when workload > 0.
    """
    if df.empty:
        return {
            "num_phases": 0,
            "num_saturated": 0,
            "total_workload": 0,
            "total_capacity": 0,
            "mean_utilization": None,
            "peak_phase": None,
        }

    util = df["utilization"].dropna()
    peak_phase = None
    if not util.empty:
        peak_phase = int(df.loc[util.idxmax(), "phase"])

    return {
        "num_phases": int(len(df)),
        "num_saturated": int(df["saturated"].sum()),
        "total_workload": int(df["workload"].sum()),
        "total_capacity": int(df["capacity"].sum()),
        "mean_utilization": _f(util.mean()) if not util.empty else None,
        "peak_phase": peak_phase,
    }


def _count_rule_types(rules: Sequence[Rule]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for rule in rules:
        counts[str(rule.type)] = counts.get(str(rule.type), 0) + 1
    return counts


def _f(x: Any) -> float | None:
    """Rounds floats for stable JSON output; NaN/inf become None."""
    v = float(x)
    if math.isnan(v) or math.isinf(v):
        return None
    return round(v, 6)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")
