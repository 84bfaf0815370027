"""
storage.py
----------
Key-value stores for the settings snapshot and the per-key snapshot codec.

Every store offers ``get(key) -> bytes | None`` and ``set(key, bytes)``.
Values are JSON. Each snapshot key loads on its own: a missing or corrupt
key falls back to its default without affecting the others.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

import boto3
from botocore.exceptions import ClientError

from categorizer import DEFAULT_CATEGORIES, DEFAULT_RULES, RuleTable
from config import Settings
from errors import InvalidImportPayload
from logging_setup import get_logger
from models import BudgetConfig, Transaction, WhatIfConfig
from process_transactions import parse_records

logger = get_logger("budget_coach.storage")

KEY_TRANSACTIONS = "txns"
KEY_CATEGORIES = "categories"
KEY_RULES = "rules"
KEY_MONTHLY_BUDGET = "monthlyBudget"
KEY_CATEGORY_BUDGETS = "categoryBudgets"
KEY_WHAT_IF = "whatIf"
KEY_USE_SIMULATION = "useSimulation"

SNAPSHOT_KEYS = (
    KEY_TRANSACTIONS,
    KEY_CATEGORIES,
    KEY_RULES,
    KEY_MONTHLY_BUDGET,
    KEY_CATEGORY_BUDGETS,
    KEY_WHAT_IF,
    KEY_USE_SIMULATION,
)

SAMPLE_TRANSACTIONS = [
    {"date": "2025-10-01", "description": "Starbucks - Latte", "amount": -6.25},
    {"date": "2025-10-01", "description": "Uber trip", "amount": -18.30},
    {"date": "2025-10-02", "description": "Amazon marketplace", "amount": -42.10},
    {"date": "2025-10-02", "description": "Spotify", "amount": -10.99},
    {"date": "2025-10-03", "description": "Trader Joe's Groceries", "amount": -58.40},
    {"date": "2025-10-03", "description": "ConEd Electric", "amount": -64.00},
    {"date": "2025-10-03", "description": "Payroll", "amount": 850.00},
    {"date": "2025-10-03", "description": "Starbucks - Cold Brew", "amount": -5.25},
    {"date": "2025-10-04", "description": "Netflix", "amount": -15.49},
    {"date": "2025-10-04", "description": "Lyft", "amount": -14.50},
]


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.data[key] = value


class LocalStore:
    """One ``<key>.json`` file per key under ``folder``."""

    def __init__(self, folder: str | Path = ".budget_coach"):
        self.folder = Path(folder)

    def _path(self, key: str) -> Path:
        return self.folder / f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if path.exists():
            return path.read_bytes()
        return None

    def set(self, key: str, value: bytes) -> None:
        self.folder.mkdir(parents=True, exist_ok=True)
        tmp = self._path(key).with_suffix(".tmp")
        tmp.write_bytes(value)
        tmp.replace(self._path(key))


class S3Store:
    """One object per key under ``s3://bucket/prefix/``."""

    def __init__(self, bucket: str, prefix: str = "budget_coach", region: str = "us-east-1", client=None):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.client = client if client is not None else boto3.client("s3", region_name=region)

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}.json" if self.prefix else f"{key}.json"

    def get(self, key: str) -> Optional[bytes]:
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise
        return obj["Body"].read()

    def set(self, key: str, value: bytes) -> None:
        self.client.put_object(Bucket=self.bucket, Key=self._key(key), Body=value)


def get_store(settings: Settings) -> KeyValueStore:
    """Build the store selected by ``settings.store_backend``."""

    backend = settings.store_backend
    if backend == "memory":
        return MemoryStore()
    if backend in ("sqlite", "db"):
        from database import SqlStore

        return SqlStore(settings.database_url)
    if backend == "s3":
        if not settings.s3_bucket:
            raise ValueError("BUDGET_STORE=s3 requires S3_BUCKET")
        return S3Store(settings.s3_bucket, settings.s3_prefix, settings.aws_region)
    return LocalStore(settings.store_dir)


# --- Snapshot codec ---

def _decode_transactions(raw: Any) -> list[Transaction]:
    return parse_records(raw)


def _decode_categories(raw: Any) -> list[str]:
    if not isinstance(raw, list) or not all(isinstance(c, str) and c.strip() for c in raw):
        raise ValueError("categories must be a list of names")
    return [c.strip() for c in raw]


def _decode_rules(raw: Any) -> RuleTable:
    if isinstance(raw, dict):
        entries = raw.items()
    elif isinstance(raw, list):
        entries = [(item[0], item[1]) for item in raw]
    else:
        raise ValueError("rules must be an object or a list of pairs")
    for category, keywords in entries:
        if not isinstance(category, str) or not isinstance(keywords, list):
            raise ValueError("rules must map category names to keyword lists")
    return RuleTable(entries)


def _decode_amount(raw: Any) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw) or raw < 0:
        raise ValueError("monthly budget must be a non-negative number")
    return float(raw)


def _decode_budgets(raw: Any) -> Dict[str, float]:
    return BudgetConfig(per_category=raw).per_category


def _decode_what_if(raw: Any) -> Dict[str, float]:
    return WhatIfConfig(reductions=raw).reductions


def _decode_flag(raw: Any) -> bool:
    if not isinstance(raw, bool):
        raise ValueError("simulation flag must be a boolean")
    return raw


_DECODERS: Dict[str, Callable[[Any], Any]] = {
    KEY_TRANSACTIONS: _decode_transactions,
    KEY_CATEGORIES: _decode_categories,
    KEY_RULES: _decode_rules,
    KEY_MONTHLY_BUDGET: _decode_amount,
    KEY_CATEGORY_BUDGETS: _decode_budgets,
    KEY_WHAT_IF: _decode_what_if,
    KEY_USE_SIMULATION: _decode_flag,
}


def snapshot_defaults() -> Dict[str, Any]:
    return {
        KEY_TRANSACTIONS: parse_records(SAMPLE_TRANSACTIONS),
        KEY_CATEGORIES: list(DEFAULT_CATEGORIES),
        KEY_RULES: RuleTable(DEFAULT_RULES),
        KEY_MONTHLY_BUDGET: 0.0,
        KEY_CATEGORY_BUDGETS: {},
        KEY_WHAT_IF: {},
        KEY_USE_SIMULATION: False,
    }


def encode_value(key: str, value: Any) -> bytes:
    if key == KEY_TRANSACTIONS:
        value = [t.to_record() for t in value]
    elif key == KEY_RULES:
        value = [[category, list(keywords)] for category, keywords in value]
    return json.dumps(value, allow_nan=False).encode("utf-8")


def load_snapshot(store: KeyValueStore) -> Dict[str, Any]:
    """Read every snapshot key, substituting defaults key by key."""

    snapshot = snapshot_defaults()
    for key in SNAPSHOT_KEYS:
        try:
            raw = store.get(key)
        except (OSError, ClientError) as exc:
            logger.warning("Could not read %r from store, using default: %s", key, exc)
            continue
        if raw is None:
            continue
        try:
            snapshot[key] = _DECODERS[key](json.loads(raw))
        except (ValueError, TypeError, KeyError, IndexError, InvalidImportPayload) as exc:
            logger.warning("Stored %r is unreadable, using default: %s", key, exc)
    return snapshot


def save_value(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, encode_value(key, value))
