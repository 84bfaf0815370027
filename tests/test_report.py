"""Tests for the export document."""

import json
import re

from conftest import txn
from engine import derive_all
from insights import aggregate
from models import BudgetConfig, WhatIfConfig
from process_transactions import parse_records
from report import build_report, export_report, report_to_json

EXPORT_FIELDS = {
    "month",
    "monthlyBudget",
    "categoryBudgets",
    "totals",
    "simulatedTotals",
    "usingSimulation",
    "totalSpend",
    "subscriptions",
    "overspent",
    "transactions",
}


def _state(rules, transactions, budget=None, what_if=None):
    return derive_all(transactions, rules, budget or BudgetConfig(), what_if or WhatIfConfig())


def test_document_fields(sample_transactions, rules):
    budget = BudgetConfig(monthly_total=800, per_category={"Food": 50})
    report = build_report(_state(rules, sample_transactions, budget), month="2025-10")
    assert set(report) == EXPORT_FIELDS
    assert report["month"] == "2025-10"
    assert report["monthlyBudget"] == 800
    assert report["categoryBudgets"] == {"Food": 50}
    assert report["totalSpend"] == 235.28
    assert report["usingSimulation"] is False
    assert report["overspent"] == [{"category": "Food", "overBy": 19.90}]


def test_default_month_label(sample_transactions, rules):
    report = build_report(_state(rules, sample_transactions))
    assert re.fullmatch(r"\d{4}-\d{2}", report["month"])


def test_overspent_follows_active_basis(rules):
    transactions = [txn("Whole Foods", -250.0)]
    budget = BudgetConfig(per_category={"Food": 220})

    actual = build_report(_state(rules, transactions, budget, WhatIfConfig(reductions={"Food": 20})), month="2025-10")
    assert actual["overspent"] == [{"category": "Food", "overBy": 30.0}]
    assert actual["simulatedTotals"]["Food"] == 200.0

    simulated = build_report(
        _state(rules, transactions, budget, WhatIfConfig(reductions={"Food": 20}, using_simulation=True)),
        month="2025-10",
    )
    assert simulated["overspent"] == []
    assert simulated["usingSimulation"] is True


def test_subscriptions_use_export_names(rules):
    transactions = [txn("Netflix Standard", -15.49), txn("Netflix Standard", -15.49)]
    report = build_report(_state(rules, transactions), month="2025-10")
    assert report["subscriptions"] == [{"merchant": "netflix standard", "estMonthly": 15.49}]


def test_round_trip_through_structured_import(sample_transactions, rules):
    report = build_report(_state(rules, sample_transactions), month="2025-10")
    decoded = json.loads(report_to_json(report))
    reimported = parse_records(decoded["transactions"])
    assert aggregate(reimported, rules)["totals"] == report["totals"]


def test_same_state_same_document(sample_transactions, rules):
    state = _state(rules, sample_transactions)
    assert build_report(state, month="2025-10") == build_report(state, month="2025-10")


def test_export_report_writes_json(tmp_path, sample_transactions, rules):
    report = build_report(_state(rules, sample_transactions), month="2025-10")
    path = export_report(report, tmp_path / "out" / "capwise-report.json")
    assert json.loads(path.read_text())["totals"]["Food"] == 69.90


def test_simulated_totals_list_every_known_category(rules):
    budget = BudgetConfig(per_category={"Health": 40})
    report = build_report(_state(rules, [txn("Whole Foods", -25.0)], budget), month="2025-10")
    assert report["totals"] == {"Food": 25.0}
    assert report["simulatedTotals"]["Health"] == 0.0
    assert set(report["simulatedTotals"]) >= {"Food", "Transport", "Shopping", "Entertainment", "Bills", "Health", "Other"}
