"""
engine.py
---------
Full recomputation of every derived view, and the session object hosts use
to hold the user's data between edits.

``derive_all`` is pure: it is rerun from scratch after any change to the
transactions, categories, rules, budgets or what-if settings. ``BudgetSession``
owns those inputs, persists each one under its own store key, and swaps the
transaction set in a single assignment on import.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from budgets import compare_budgets, generate_suggestions
from categorizer import FALLBACK_CATEGORY, RuleTable, infer_category
from errors import InvalidImportPayload
from insights import aggregate, compute_highlights, detect_subscriptions
from logging_setup import get_logger
from models import BudgetConfig, Transaction, WhatIfConfig
from process_transactions import ParseResult, parse_payload_with_stats
from storage import (
    KEY_CATEGORIES,
    KEY_CATEGORY_BUDGETS,
    KEY_MONTHLY_BUDGET,
    KEY_RULES,
    KEY_TRANSACTIONS,
    KEY_USE_SIMULATION,
    KEY_WHAT_IF,
    KeyValueStore,
    MemoryStore,
    load_snapshot,
    save_value,
)
from whatif import basis_totals, budget_vs_actual, burn_rate, simulate

logger = get_logger("budget_coach.engine")


@dataclass
class DerivedState:
    categories: List[str]
    categorized: List[Transaction]
    totals: Dict[str, float]
    merchant_breakdown: Dict[str, Dict[str, float]]
    total_spend: float
    simulated_totals: Dict[str, float]
    using_simulation: bool
    basis: Dict[str, float]
    comparison: dict
    suggestions: List[dict]
    subscriptions: List[dict]
    budget_rows: List[dict]
    burn: dict
    highlights: dict
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    what_if: WhatIfConfig = field(default_factory=WhatIfConfig)


def derive_all(
    transactions: Sequence[Transaction],
    rules: RuleTable,
    budget: BudgetConfig,
    what_if: WhatIfConfig,
    categories: Optional[Iterable[str]] = None,
) -> DerivedState:
    """Recompute every view from the current inputs.

    ``categories`` is the user's category list; budget and what-if entries
    for names outside it are ignored. It defaults to the rule table's
    categories plus the fallback.
    """

    if categories is None:
        categories = rules.categories + ([FALLBACK_CATEGORY] if FALLBACK_CATEGORY not in rules else [])
    categories = list(categories)

    agg = aggregate(transactions, rules)
    totals = agg["totals"]

    # Known categories first, then any name that only came in on import.
    ordered = categories + [c for c in totals if c not in categories]

    simulated = simulate(totals, what_if.reductions, categories)
    basis = basis_totals(totals, simulated, what_if.using_simulation)
    comparison = compare_budgets(basis, budget, categories)

    return DerivedState(
        categories=ordered,
        categorized=agg["categorized"],
        totals=totals,
        merchant_breakdown=agg["merchant_breakdown"],
        total_spend=agg["total_spend"],
        simulated_totals=simulated,
        using_simulation=what_if.using_simulation,
        basis=basis,
        comparison=comparison,
        suggestions=generate_suggestions(comparison),
        subscriptions=detect_subscriptions(agg["categorized"]),
        budget_rows=budget_vs_actual(totals, simulated, budget, ordered),
        burn=burn_rate(basis, budget),
        highlights=compute_highlights(agg["categorized"]),
        budget=budget,
        what_if=what_if,
    )


class BudgetSession:
    """The user's working data plus persistence.

    Reads and writes are serialized by one lock so a threaded host never sees
    a half-applied import.
    """

    def __init__(self, store: Optional[KeyValueStore] = None):
        self.store = store if store is not None else MemoryStore()
        self._lock = threading.RLock()
        snapshot = load_snapshot(self.store)
        self.transactions: List[Transaction] = snapshot[KEY_TRANSACTIONS]
        self.categories: List[str] = snapshot[KEY_CATEGORIES]
        self.rules: RuleTable = snapshot[KEY_RULES]
        self.budget = BudgetConfig(
            monthly_total=snapshot[KEY_MONTHLY_BUDGET],
            per_category=snapshot[KEY_CATEGORY_BUDGETS],
        )
        self.what_if = WhatIfConfig(
            reductions=snapshot[KEY_WHAT_IF],
            using_simulation=snapshot[KEY_USE_SIMULATION],
        )

    # --- reads ---

    @property
    def derived(self) -> DerivedState:
        with self._lock:
            return derive_all(self.transactions, self.rules, self.budget, self.what_if, self.categories)

    def categorize_description(self, description: str) -> str:
        with self._lock:
            return infer_category(description, self.rules)

    def rules_snapshot(self) -> RuleTable:
        """A copy of the rule table that later edits will not touch."""
        with self._lock:
            return self.rules.copy()

    def dormant_entries(self) -> Dict[str, List[str]]:
        """Budget and what-if entries naming categories not in the list."""
        with self._lock:
            return {
                "budgets": [c for c in self.budget.per_category if c not in self.categories],
                "what_if": [c for c in self.what_if.reductions if c not in self.categories],
            }

    # --- writes ---

    def replace_transactions(self, transactions: Sequence[Transaction]) -> None:
        with self._lock:
            self.transactions = list(transactions)
            save_value(self.store, KEY_TRANSACTIONS, self.transactions)
        logger.info("Replaced working set with %d transactions", len(transactions))

    def import_payload(
        self,
        content: Union[str, bytes, list],
        filename: Optional[str] = None,
        fmt: Optional[str] = None,
    ) -> ParseResult:
        """Parse ``content`` and swap it in as the whole working set.

        On ``InvalidImportPayload`` the current set is left as it was.
        """
        try:
            result = parse_payload_with_stats(content, filename=filename, fmt=fmt)
        except InvalidImportPayload as exc:
            logger.warning("Rejected import%s: %s", f" of {filename}" if filename else "", exc)
            raise
        self.replace_transactions(result.transactions)
        return result

    def add_category(self, name: str) -> bool:
        name = name.strip()
        if not name:
            raise ValueError("category name must not be empty")
        with self._lock:
            if name in self.categories:
                return False
            self.categories = self.categories + [name]
            self.rules.add_category(name)
            per_category = dict(self.budget.per_category)
            per_category.setdefault(name, 0.0)
            self.budget = self.budget.model_copy(update={"per_category": per_category})
            save_value(self.store, KEY_CATEGORIES, self.categories)
            save_value(self.store, KEY_RULES, self.rules)
            save_value(self.store, KEY_CATEGORY_BUDGETS, self.budget.per_category)
        logger.info("Added category %r", name)
        return True

    def set_rule_keywords(self, category: str, keywords: Union[str, Iterable[str]]) -> None:
        with self._lock:
            if category not in self.categories:
                raise ValueError(f"Unknown category {category!r}; add it first")
            if isinstance(keywords, str):
                self.rules.set_keywords_text(category, keywords)
            else:
                self.rules.set_keywords(category, keywords)
            save_value(self.store, KEY_RULES, self.rules)

    def set_monthly_budget(self, amount: float) -> None:
        with self._lock:
            self.budget = BudgetConfig(monthly_total=amount, per_category=self.budget.per_category)
            save_value(self.store, KEY_MONTHLY_BUDGET, self.budget.monthly_total)

    def set_category_budget(self, category: str, amount: float) -> None:
        """Set a category cap. Unknown categories are stored but stay dormant."""
        with self._lock:
            per_category = dict(self.budget.per_category)
            per_category[category] = amount
            self.budget = BudgetConfig(monthly_total=self.budget.monthly_total, per_category=per_category)
            save_value(self.store, KEY_CATEGORY_BUDGETS, self.budget.per_category)
        if category not in self.categories:
            logger.warning("Budget for %r is dormant until the category is created", category)

    def set_what_if(self, category: str, pct: float) -> None:
        """Set a reduction percentage. Unknown categories are stored but stay dormant."""
        with self._lock:
            reductions = dict(self.what_if.reductions)
            reductions[category] = pct
            self.what_if = WhatIfConfig(reductions=reductions, using_simulation=self.what_if.using_simulation)
            save_value(self.store, KEY_WHAT_IF, self.what_if.reductions)
        if category not in self.categories:
            logger.warning("What-if reduction for %r is dormant until the category is created", category)

    def set_using_simulation(self, enabled: bool) -> None:
        with self._lock:
            self.what_if = self.what_if.model_copy(update={"using_simulation": bool(enabled)})
            save_value(self.store, KEY_USE_SIMULATION, self.what_if.using_simulation)
