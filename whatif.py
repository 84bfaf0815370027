"""
whatif.py
---------
Preview per-category spending cuts without touching the actual totals.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from logging_setup import get_logger
from models import BudgetConfig
from money import round2

logger = get_logger("budget_coach.whatif")


def _clamp_pct(category: str, pct: float) -> float:
    if pct < 0 or pct > 100:
        logger.warning("Clamping reduction for %r from %s to [0, 100]", category, pct)
        return min(max(pct, 0.0), 100.0)
    return pct


def simulate(
    totals: Mapping[str, float],
    reductions: Mapping[str, float],
    categories: Optional[Iterable[str]] = None,
) -> Dict[str, float]:
    """Apply ``reductions`` (percent per category) to ``totals``.

    Every category in ``totals`` is present in the result; ones without a
    reduction keep their actual value. When ``categories`` is given, each of
    them is present too, at 0.0 if it has no spend, and reductions naming a
    category outside it are ignored.
    """

    known = None
    names = list(totals)
    if categories is not None:
        known = list(categories)
        names = known + [c for c in totals if c not in known]
    simulated = {}
    for cat in names:
        actual = totals.get(cat, 0.0)
        pct = reductions.get(cat, 0) or 0
        if pct and known is not None and cat not in known:
            logger.warning("Ignoring what-if reduction for unknown category %r", cat)
            pct = 0
        pct = _clamp_pct(cat, float(pct))
        simulated[cat] = round2(actual * (1 - pct / 100))
    return simulated


def basis_totals(totals: Mapping[str, float], simulated: Mapping[str, float], using_simulation: bool) -> Dict[str, float]:
    return dict(simulated if using_simulation else totals)


def budget_vs_actual(
    totals: Mapping[str, float],
    simulated: Mapping[str, float],
    budget: BudgetConfig,
    categories: Iterable[str],
) -> List[dict]:
    """Actual, simulated and target spend for every known category."""

    rows = []
    for cat in categories:
        actual = totals.get(cat, 0.0)
        rows.append({
            "category": cat,
            "actual": round2(actual),
            "simulated": round2(simulated.get(cat, actual)),
            "target": round2(budget.per_category.get(cat, 0.0)),
        })
    return rows


def burn_rate(basis: Mapping[str, float], budget: BudgetConfig) -> dict:
    """Spend on the active basis against the monthly budget."""

    spent = round2(sum(basis.values()))
    limit = round2(budget.monthly_total)
    return {
        "spent": spent,
        "budget": limit,
        "remaining": round2(limit - spent),
        "pct": spent / limit if limit > 0 else 0.0,
    }
