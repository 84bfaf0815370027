"""
report.py
---------
Build the single export document for the current derived state.

The document is a plain dict (JSON-ready) and depends only on the state
passed in, apart from the ``month`` label which falls back to the current
month when not supplied.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from engine import DerivedState
from logging_setup import get_logger

logger = get_logger("budget_coach.report")


def build_report(state: DerivedState, month: Optional[str] = None) -> dict:
    """Serialize budgets, both totals views, subscriptions and overspend.

    ``overspent`` follows whichever basis (actual or simulated) is active.
    ``transactions`` carries the categorized working set so the report can
    be imported back as a structured list.
    """

    if month is None:
        month = datetime.now().strftime("%Y-%m")

    return {
        "month": month,
        "monthlyBudget": state.budget.monthly_total,
        "categoryBudgets": dict(state.budget.per_category),
        "totals": dict(state.totals),
        "simulatedTotals": dict(state.simulated_totals),
        "usingSimulation": state.using_simulation,
        "totalSpend": state.total_spend,
        "subscriptions": [
            {"merchant": s["merchant"], "estMonthly": s["est_monthly"]} for s in state.subscriptions
        ],
        "overspent": [
            {"category": row["category"], "overBy": row["over_by"]} for row in state.comparison["over_budget"]
        ],
        "transactions": [t.to_record() for t in state.categorized],
    }


def report_to_json(report: dict) -> str:
    return json.dumps(report, indent=2)


def export_report(report: dict, path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report_to_json(report), encoding="utf-8")
    logger.info("Wrote report for %s to %s", report.get("month"), path)
    return path
