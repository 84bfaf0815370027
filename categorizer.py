"""
categorizer.py
--------------
Keyword rules that assign a spending category to each transaction.

The rule table is an ordered list of ``(category, keywords)`` pairs. A
description is lower-cased and matched against the table top to bottom; the
first category owning a keyword that appears anywhere in the description
wins. Nothing is scored and longer matches get no preference, so moving a
category up the table is the only way to change priority.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from logging_setup import get_logger
from models import Transaction

logger = get_logger("budget_coach.categorizer")

FALLBACK_CATEGORY = "Other"

DEFAULT_CATEGORIES = ["Food", "Transport", "Shopping", "Entertainment", "Bills", "Health", FALLBACK_CATEGORY]

DEFAULT_RULES: List[Tuple[str, List[str]]] = [
    ("Food", ["ubereats", "doordash", "grubhub", "mcdonald", "starbucks", "chipotle", "papa john",
              "cafe", "restaurant", "trader joe", "whole foods"]),
    ("Transport", ["uber", "lyft", "mta", "metro", "transit", "shell", "exxon", "bp", "gas"]),
    ("Shopping", ["amazon", "etsy", "target", "walmart", "nike", "best buy"]),
    ("Entertainment", ["spotify", "netflix", "hulu", "disney", "amc", "theatre", "steam"]),
    ("Bills", ["verizon", "t-mobile", "at&t", "coned", "electric", "utility", "rent"]),
    ("Health", ["pharmacy", "walgreens", "cvs", "rite aid", "clinic", "dentist"]),
]


def _clean_keywords(keywords: Iterable[str]) -> Tuple[str, ...]:
    cleaned: List[str] = []
    for keyword in keywords:
        k = str(keyword).strip().lower()
        if k and k not in cleaned:
            cleaned.append(k)
    return tuple(cleaned)


class RuleTable:
    """Ordered category -> keywords table. Earlier entries take priority."""

    def __init__(self, entries: Optional[Iterable[Tuple[str, Iterable[str]]]] = None):
        self._entries: List[Tuple[str, Tuple[str, ...]]] = []
        for category, keywords in entries or []:
            self.set_keywords(category, keywords)

    @classmethod
    def default(cls) -> "RuleTable":
        return cls(DEFAULT_RULES)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "RuleTable":
        """Build from a mapping; its iteration order becomes the priority order."""
        return cls(mapping.items())

    def to_mapping(self) -> Dict[str, List[str]]:
        return {category: list(keywords) for category, keywords in self._entries}

    def __iter__(self) -> Iterator[Tuple[str, Tuple[str, ...]]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, category: object) -> bool:
        return any(name == category for name, _ in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RuleTable):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"RuleTable({self._entries!r})"

    @property
    def categories(self) -> List[str]:
        return [category for category, _ in self._entries]

    def keywords_for(self, category: str) -> Tuple[str, ...]:
        for name, keywords in self._entries:
            if name == category:
                return keywords
        return ()

    def set_keywords(self, category: str, keywords: Iterable[str]) -> None:
        """Replace a category's keywords, appending the category if it is new."""
        cleaned = _clean_keywords(keywords)
        for idx, (name, _) in enumerate(self._entries):
            if name == category:
                self._entries[idx] = (name, cleaned)
                return
        self._entries.append((category, cleaned))

    def set_keywords_text(self, category: str, text: str) -> None:
        """Set keywords from the comma-separated form users type in."""
        self.set_keywords(category, text.split(","))

    def add_category(self, category: str) -> bool:
        """Append ``category`` with no keywords. Returns False if it already exists."""
        if category in self:
            return False
        self._entries.append((category, ()))
        return True

    def copy(self) -> "RuleTable":
        return RuleTable(self._entries)


def infer_category(description: str, rules: RuleTable) -> str:
    """Return the first category whose keyword occurs in ``description``."""

    if not description:
        return FALLBACK_CATEGORY

    desc_lower = description.lower()
    for category, keywords in rules:
        for keyword in keywords:
            if keyword in desc_lower:
                return category
    return FALLBACK_CATEGORY


def categorize(transactions: Sequence[Transaction], rules: RuleTable) -> List[Transaction]:
    """Return copies of ``transactions`` with a category on every record.

    A category supplied on import is kept as is.
    """

    categorized = []
    inferred = 0
    for txn in transactions:
        if txn.category:
            categorized.append(txn)
            continue
        categorized.append(txn.model_copy(update={"category": infer_category(txn.description, rules)}))
        inferred += 1
    logger.debug("Categorized %d transactions (%d inferred)", len(categorized), inferred)
    return categorized
