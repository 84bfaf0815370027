"""
process_transactions.py
-----------------------
Turn imported statement content into validated ``Transaction`` records.

Two shapes are accepted:

* comma-separated text whose header row names ``date``, ``description`` and
  ``amount`` (``category`` optional), with data rows mapped to the header by
  position;
* a list of objects carrying the same field names (usually decoded JSON).

Rows missing a date or description, or whose amount is not a finite number,
are dropped one by one. Content that is neither shape rejects the whole
import with ``InvalidImportPayload``. Categories are not inferred here.
"""

from __future__ import annotations

import io
import json
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

import pandas as pd

from errors import InvalidImportPayload, MalformedRow
from logging_setup import get_logger
from models import Transaction

logger = get_logger("budget_coach.process_transactions")

REQUIRED_COLUMNS = ("date", "description", "amount")
OPTIONAL_COLUMNS = ("category",)

JSON_SUFFIXES = {".json"}
CSV_SUFFIXES = {".csv", ".txt"}

_PARENS = re.compile(r"^\((.*)\)$")


@dataclass
class ParseResult:
    transactions: List[Transaction] = field(default_factory=list)
    dropped: int = 0


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def parse_amount(value: Any) -> float:
    """Parse a signed amount, accepting ``$``, thousands commas and ``(12.50)``."""

    if isinstance(value, bool) or value is None:
        raise MalformedRow("amount is not a number", value)

    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        raw = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
        match = _PARENS.match(raw)
        if match:
            raw = "-" + match.group(1)
        if not raw:
            raise MalformedRow("amount is empty", value)
        try:
            amount = float(raw)
        except ValueError:
            raise MalformedRow(f"amount {value!r} is not a number", value) from None

    if not math.isfinite(amount):
        raise MalformedRow(f"amount {value!r} is not finite", value)
    return amount


def coerce_row(row: Any) -> Transaction:
    """Validate one raw record. Raises ``MalformedRow`` when it must be dropped."""

    if not isinstance(row, Mapping):
        raise MalformedRow("record is not an object", row)

    date = _text(row.get("date"))
    description = _text(row.get("description"))
    if not date:
        raise MalformedRow("missing date", row)
    if not description:
        raise MalformedRow("missing description", row)

    amount = parse_amount(row.get("amount"))
    category = _text(row.get("category")) or None
    return Transaction(date=date, description=description, amount=amount, category=category)


def _collect(rows: Iterable[Any]) -> ParseResult:
    result = ParseResult()
    for idx, row in enumerate(rows):
        try:
            result.transactions.append(coerce_row(row))
        except MalformedRow as exc:
            result.dropped += 1
            logger.debug("Dropping row %d: %s", idx, exc.reason)
    if result.dropped:
        logger.info("Dropped %d malformed rows, kept %d", result.dropped, len(result.transactions))
    return result


def _read_csv_rows(text: str) -> List[dict]:
    text = text.lstrip("\ufeff")
    if not text.strip():
        raise InvalidImportPayload("Import is empty. Use CSV with date,description,amount[,category] or a JSON array.")

    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            index_col=False,
            on_bad_lines="skip",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise InvalidImportPayload(f"Could not read delimited text: {exc}") from exc

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise InvalidImportPayload(f"Header is missing required columns: {', '.join(missing)}")

    keep = [c for c in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if c in df.columns]
    return df[keep].to_dict("records")


def parse_csv_text_with_stats(text: str) -> ParseResult:
    return _collect(_read_csv_rows(text))


def parse_csv_text(text: str) -> List[Transaction]:
    """Parse comma-separated statement text into transactions."""
    return parse_csv_text_with_stats(text).transactions


def parse_records_with_stats(records: Any) -> ParseResult:
    if not isinstance(records, (list, tuple)):
        raise InvalidImportPayload("Structured import must be a list of transaction objects.")
    return _collect(records)


def parse_records(records: Any) -> List[Transaction]:
    """Parse a list of ``{date, description, amount[, category]}`` objects."""
    return parse_records_with_stats(records).transactions


def _detect_format(text: str, filename: Optional[str]) -> str:
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix in JSON_SUFFIXES:
            return "json"
        if suffix in CSV_SUFFIXES:
            return "csv"
    return "json" if text.lstrip().startswith(("[", "{")) else "csv"


def parse_payload_with_stats(
    content: Union[str, bytes, list],
    filename: Optional[str] = None,
    fmt: Optional[str] = None,
) -> ParseResult:
    """Parse an import of unknown shape.

    ``fmt`` ("csv" or "json") wins over the ``filename`` suffix, which wins
    over sniffing the first character.
    """

    if isinstance(content, (list, tuple)):
        return parse_records_with_stats(content)

    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InvalidImportPayload("Import is not UTF-8 text.") from exc

    if not isinstance(content, str):
        raise InvalidImportPayload(f"Unsupported import content of type {type(content).__name__}.")

    content = content.lstrip("\ufeff")
    kind = (fmt or _detect_format(content, filename)).lower()
    if kind == "json":
        try:
            decoded = json.loads(content)
        except json.JSONDecodeError as exc:
            raise InvalidImportPayload(f"Invalid JSON: {exc.msg}") from exc
        return parse_records_with_stats(decoded)
    if kind == "csv":
        return parse_csv_text_with_stats(content)
    raise InvalidImportPayload(f"Unknown import format {fmt!r}.")


def parse_payload(
    content: Union[str, bytes, list],
    filename: Optional[str] = None,
    fmt: Optional[str] = None,
) -> List[Transaction]:
    return parse_payload_with_stats(content, filename=filename, fmt=fmt).transactions


def read_import_file(path: Union[str, Path]) -> ParseResult:
    """Read a statement file from disk and parse it by its suffix."""
    path = Path(path)
    logger.info("Reading %s", path)
    return parse_payload_with_stats(path.read_bytes(), filename=path.name)
