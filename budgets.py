"""
budgets.py
----------
Compare category totals against the user's caps and turn the result into
short advice.

Both functions here are basis-agnostic: callers pass either actual or
simulated totals, and the suggestions are built only from the comparison so
every view shows the same basis.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional

from logging_setup import get_logger
from models import BudgetConfig
from money import dollars, round2

logger = get_logger("budget_coach.budgets")

WEEKS_PER_MONTH = 4.3


def _ordered_categories(totals: Mapping[str, float], budget: BudgetConfig, categories: Optional[Iterable[str]]) -> List[str]:
    if categories is not None:
        known = list(categories)
        for cat in totals:
            if cat not in known:
                known.append(cat)
        return known
    ordered = list(totals)
    for cat in budget.per_category:
        if cat not in ordered:
            ordered.append(cat)
    return ordered


def compute_budget_status(
    totals: Mapping[str, float],
    budget: BudgetConfig,
    categories: Optional[Iterable[str]] = None,
) -> List[dict]:
    """One row per category that has a cap above zero.

    When ``categories`` is given, caps on names outside it stay dormant.
    """

    known = set(categories) if categories is not None else None
    status = []
    for cat in _ordered_categories(totals, budget, categories):
        limit = float(budget.per_category.get(cat, 0) or 0)
        if limit <= 0:
            continue
        if known is not None and cat not in known:
            logger.warning("Ignoring budget for unknown category %r", cat)
            continue

        spent = float(totals.get(cat, 0.0))
        remaining = round2(limit - spent)
        is_over = spent > limit
        over_by = round2(spent - limit) if is_over else 0.0
        status.append({
            "category": cat,
            "limit": limit,
            "spent": spent,
            "remaining": remaining,
            "pct": spent / limit,
            "is_over": is_over,
            "over_by": over_by,
            "per_week": round2(over_by / WEEKS_PER_MONTH) if is_over else 0.0,
        })

    if known is not None:
        for cat, cap in budget.per_category.items():
            if cap > 0 and cat not in known and cat not in totals:
                logger.warning("Ignoring budget for unknown category %r", cat)
    return status


def compare_budgets(
    totals: Mapping[str, float],
    budget: BudgetConfig,
    categories: Optional[Iterable[str]] = None,
) -> dict:
    """Flag category and monthly overages for the given basis totals."""

    categories = list(categories) if categories is not None else None
    status = compute_budget_status(totals, budget, categories)
    basis_total = round2(sum(totals.values()))

    monthly_over_by = None
    if budget.monthly_total > 0 and basis_total > budget.monthly_total:
        monthly_over_by = round2(basis_total - budget.monthly_total)

    return {
        "status": status,
        "over_budget": [row for row in status if row["is_over"]],
        "total_spend": basis_total,
        "monthly_limit": float(budget.monthly_total),
        "monthly_over_by": monthly_over_by,
    }


def generate_suggestions(comparison: dict) -> List[dict]:
    """Advice derived from ``compare_budgets`` output, in display order."""

    items = []
    for row in comparison["over_budget"]:
        items.append({
            "kind": "category",
            "category": row["category"],
            "title": f"Over budget in {row['category']} by {dollars(row['over_by'])}",
            "detail": f"Aim to cut about {dollars(row['per_week'])}/week for the rest of the month.",
        })

    if comparison.get("monthly_over_by") is not None:
        items.append({
            "kind": "monthly",
            "category": None,
            "title": f"Monthly target exceeded by {dollars(comparison['monthly_over_by'])}",
            "detail": "Focus reductions on your top categories, or preview cuts with the what-if simulator.",
        })

    if not items:
        items.append({
            "kind": "on_track",
            "category": None,
            "title": "On track, looking good",
            "detail": "Consider auto-sweeping the surplus to savings or investing.",
        })
    return items


def summarize_budget_watch(status: List[dict], warn_pct: float = 0.8) -> List[str]:
    """Human-readable alerts for over-budget and nearly-spent categories."""

    alerts = []
    for entry in status or []:
        if entry["limit"] <= 0:
            continue
        if entry["is_over"]:
            alerts.append(
                f"{entry['category']} is over budget by {dollars(entry['over_by'])} "
                f"(spent {dollars(entry['spent'])} of {dollars(entry['limit'])})."
            )
        elif entry["pct"] >= warn_pct:
            alerts.append(
                f"{entry['category']} is at {entry['pct'] * 100:.0f}% of its {dollars(entry['limit'])} limit."
            )
    return alerts
