"""Spending aggregation, merchant grouping and subscription detection."""

import re
from typing import Dict, List, Optional, Sequence

import pandas as pd

from categorizer import RuleTable, categorize
from logging_setup import get_logger
from models import Transaction
from money import round2

logger = get_logger("budget_coach.insights")

COLUMNS = ["Date", "Description", "Amount", "Category"]

# Category drill-down wants more specificity than recurring-charge matching.
BREAKDOWN_TOKENS = 3
SUBSCRIPTION_TOKENS = 2

_NON_ALNUM = re.compile(r"[^a-z0-9 ]")


def merchant_key(description: str, tokens: int = BREAKDOWN_TOKENS) -> str:
    """Normalize a description to its first ``tokens`` words.

    Lower-cases, drops everything but ``[a-z0-9 ]`` and splits on runs of
    whitespace, so "Starbucks - Cold Brew" becomes "starbucks cold" for two
    tokens.
    """
    cleaned = _NON_ALNUM.sub("", (description or "").lower())
    return " ".join(cleaned.split()[:tokens])


def transactions_to_df(transactions: Sequence[Transaction]) -> pd.DataFrame:
    if not transactions:
        return pd.DataFrame(columns=COLUMNS)

    df = pd.DataFrame(
        [
            {
                "Date": t.date,
                "Description": t.description,
                "Amount": t.amount,
                "Category": t.category,
            }
            for t in transactions
        ],
        columns=COLUMNS,
    )
    df["Amount"] = df["Amount"].astype(float)
    return df


def _spend_frame(df: pd.DataFrame, tokens: int) -> pd.DataFrame:
    spend = df[df["Amount"] < 0].copy()
    spend["AbsExpense"] = spend["Amount"].abs()
    spend["Merchant"] = spend["Description"].map(lambda d: merchant_key(d, tokens))
    return spend


def aggregate(transactions: Sequence[Transaction], rules: RuleTable) -> dict:
    """Categorize and total the working set.

    Returns ``categorized`` (every transaction, income included),
    ``totals`` (category -> spend), ``merchant_breakdown``
    (category -> merchant -> spend) and ``total_spend``. Sums accumulate
    unrounded and are rounded to cents once at the end. Categories appear in
    the order their first spend was seen.
    """

    categorized = categorize(transactions, rules)
    df = transactions_to_df(categorized)
    spend = _spend_frame(df, BREAKDOWN_TOKENS)

    if spend.empty:
        return {"categorized": categorized, "totals": {}, "merchant_breakdown": {}, "total_spend": 0.0}

    by_cat = spend.groupby("Category", sort=False)["AbsExpense"].sum()
    totals = {cat: round2(value) for cat, value in by_cat.items()}

    breakdown: Dict[str, Dict[str, float]] = {}
    by_merchant = spend.groupby(["Category", "Merchant"], sort=False)["AbsExpense"].sum()
    for (cat, merchant), value in by_merchant.items():
        breakdown.setdefault(cat, {})[merchant] = round2(value)

    total_spend = round2(sum(totals.values()))
    logger.debug("Aggregated %d spend rows into %d categories", len(spend), len(totals))
    return {
        "categorized": categorized,
        "totals": totals,
        "merchant_breakdown": breakdown,
        "total_spend": total_spend,
    }


def top_merchants(breakdown: Dict[str, Dict[str, float]], category: str, limit: int = 5) -> List[dict]:
    """Largest merchants inside one category, for drill-down."""
    merchants = breakdown.get(category) or {}
    ranked = sorted(merchants.items(), key=lambda item: item[1], reverse=True)
    return [{"merchant": m, "amount": amt} for m, amt in ranked[:limit]]


def filter_transactions(
    categorized: Sequence[Transaction],
    category: Optional[str] = None,
    query: str = "",
) -> List[Transaction]:
    q = (query or "").strip().lower()
    return [
        t
        for t in categorized
        if (category is None or t.category == category) and (not q or q in t.description.lower())
    ]


def detect_subscriptions(transactions: Sequence[Transaction], limit: int = 5, min_count: int = 2) -> List[dict]:
    """Merchants charged at least ``min_count`` times, largest average first.

    Grouping uses the two-word merchant key. The estimate is the mean charge;
    no weekly or monthly cadence is inferred.
    """

    spend = _spend_frame(transactions_to_df(transactions), SUBSCRIPTION_TOKENS)
    if spend.empty:
        return []

    grouped = spend.groupby("Merchant", sort=False)["AbsExpense"].agg(["count", "mean"])
    recurring = grouped[grouped["count"] >= min_count].copy()
    if recurring.empty:
        return []

    recurring["est_monthly"] = recurring["mean"].map(round2)
    recurring = recurring.sort_values("est_monthly", ascending=False, kind="stable").head(limit)

    return [
        {"merchant": merchant, "est_monthly": float(row["est_monthly"]), "occurrences": int(row["count"])}
        for merchant, row in recurring.iterrows()
    ]


def compute_highlights(categorized: Sequence[Transaction]) -> dict:
    """Summarize income, spend and the heaviest category of the working set."""

    df = transactions_to_df(categorized)
    if df.empty:
        return {}

    dates = pd.to_datetime(df["Date"], errors="coerce")
    month = dates.max().strftime("%Y-%m") if dates.notna().any() else None

    income = df[df["Amount"] > 0]["Amount"].sum()
    expense_rows = df[df["Amount"] < 0]
    expenses = expense_rows["Amount"].sum()

    top_category = None
    top_category_spend = 0.0
    if not expense_rows.empty:
        by_cat = expense_rows.groupby("Category", sort=False)["Amount"].sum().abs().sort_values(
            ascending=False, kind="stable"
        )
        top_category = by_cat.index[0]
        top_category_spend = by_cat.iloc[0]

    return {
        "month": month,
        "income": round2(income),
        "spend": round2(abs(expenses)),
        "net": round2(income + expenses),
        "top_category": top_category,
        "top_category_spend": round2(top_category_spend),
        "avg_ticket": round2(abs(expense_rows["Amount"].mean())) if not expense_rows.empty else 0.0,
    }
