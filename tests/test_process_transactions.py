"""Tests for statement parsing: CSV text, structured records and format dispatch."""

import json
import math

import pytest

from errors import InvalidImportPayload, MalformedRow
from process_transactions import (
    coerce_row,
    parse_amount,
    parse_csv_text,
    parse_csv_text_with_stats,
    parse_payload,
    parse_payload_with_stats,
    parse_records,
    parse_records_with_stats,
    read_import_file,
)


class TestParseAmount:
    def test_plain_numbers(self):
        assert parse_amount("-6.25") == -6.25
        assert parse_amount("850") == 850.0
        assert parse_amount(-12) == -12.0

    def test_currency_and_thousands(self):
        assert parse_amount("$1,234.50") == 1234.5
        assert parse_amount("-$42.10") == -42.1

    def test_accounting_parentheses_are_negative(self):
        assert parse_amount("(12.50)") == -12.5

    @pytest.mark.parametrize("value", ["", "abc", None, True, "nan", "inf", float("nan"), float("inf")])
    def test_rejects_non_finite_or_non_numeric(self, value):
        with pytest.raises(MalformedRow):
            parse_amount(value)


class TestCoerceRow:
    def test_strips_fields_and_blank_category_means_infer(self):
        t = coerce_row({"date": " 2025-10-01 ", "description": " Lyft ", "amount": "-14.50", "category": "  "})
        assert t.date == "2025-10-01"
        assert t.description == "Lyft"
        assert t.amount == -14.5
        assert t.category is None

    def test_keeps_explicit_category(self):
        t = coerce_row({"date": "2025-10-01", "description": "Paycheck", "amount": 1000, "category": "Income"})
        assert t.category == "Income"

    @pytest.mark.parametrize(
        "row",
        [
            {"date": "", "description": "x", "amount": -1},
            {"date": "2025-10-01", "description": "", "amount": -1},
            {"description": "x", "amount": -1},
            {"date": "2025-10-01", "description": "x", "amount": "ten"},
            "not a mapping",
        ],
    )
    def test_malformed_rows(self, row):
        with pytest.raises(MalformedRow):
            coerce_row(row)


class TestParseCsvText:
    def test_drops_bad_rows_and_keeps_the_rest(self):
        text = (
            "date,description,amount,category\n"
            "2025-10-01,Starbucks - Latte,-6.25,\n"
            "2025-10-02,,-3.00,\n"
            "2025-10-03,Rent,abc,\n"
            "2025-10-04,Paycheck,1000,Income\n"
        )
        result = parse_csv_text_with_stats(text)
        assert [t.description for t in result.transactions] == ["Starbucks - Latte", "Paycheck"]
        assert result.transactions[0].category is None
        assert result.transactions[1].category == "Income"
        assert result.dropped == 2

    def test_header_is_case_and_space_insensitive_and_positional(self):
        text = "Amount , Description,DATE\n-5.25,Starbucks - Cold Brew,2025-10-03\n"
        [t] = parse_csv_text(text)
        assert (t.date, t.description, t.amount) == ("2025-10-03", "Starbucks - Cold Brew", -5.25)

    def test_quoted_amount_with_thousands(self):
        text = 'date,description,amount\n2025-10-01,Laptop,"-1,299.99"\n'
        [t] = parse_csv_text(text)
        assert t.amount == -1299.99

    def test_short_row_is_dropped(self):
        text = "date,description,amount\n2025-10-01,Coffee\n2025-10-02,Tea,-2\n"
        result = parse_csv_text_with_stats(text)
        assert [t.description for t in result.transactions] == ["Tea"]
        assert result.dropped == 1

    def test_header_only_is_an_empty_import(self):
        assert parse_csv_text("date,description,amount\n") == []

    def test_missing_required_column_rejects_import(self):
        with pytest.raises(InvalidImportPayload, match="amount"):
            parse_csv_text("date,description\n2025-10-01,Coffee\n")

    def test_empty_content_rejects_import(self):
        with pytest.raises(InvalidImportPayload):
            parse_csv_text("   \n")


class TestParseRecords:
    def test_same_drop_rules_as_csv(self):
        records = [
            {"date": "2025-10-01", "description": "Netflix", "amount": -15.49},
            {"date": "2025-10-01", "description": "Bad", "amount": "?"},
            42,
        ]
        result = parse_records_with_stats(records)
        assert len(result.transactions) == 1
        assert result.dropped == 2

    def test_non_list_is_rejected(self):
        with pytest.raises(InvalidImportPayload):
            parse_records({"date": "2025-10-01"})


class TestParsePayload:
    def test_json_by_suffix(self):
        content = json.dumps([{"date": "2025-10-01", "description": "Spotify", "amount": "-10.99"}])
        [t] = parse_payload(content, filename="export.JSON")
        assert t.amount == -10.99

    def test_json_sniffed_without_filename(self):
        content = '[{"date": "2025-10-01", "description": "Spotify", "amount": -10.99}]'
        assert len(parse_payload(content)) == 1

    def test_invalid_json_rejects_import(self):
        with pytest.raises(InvalidImportPayload):
            parse_payload("[{oops", filename="bad.json")

    def test_json_object_is_not_a_list(self):
        with pytest.raises(InvalidImportPayload):
            parse_payload('{"date": "2025-10-01"}')

    def test_explicit_format_wins_over_suffix(self):
        text = "date,description,amount\n2025-10-01,Lyft,-14.50\n"
        assert len(parse_payload(text, filename="upload.json", fmt="csv")) == 1

    def test_bytes_with_bom(self):
        content = "date,description,amount\n2025-10-01,Lyft,-14.50\n".encode("utf-8-sig")
        result = parse_payload_with_stats(content, filename="x.csv")
        assert len(result.transactions) == 1

    def test_undecodable_bytes(self):
        with pytest.raises(InvalidImportPayload):
            parse_payload(b"\xff\xfe\xfa", filename="x.csv")

    def test_list_content_is_structured(self):
        assert len(parse_payload([{"date": "d", "description": "x", "amount": 1}])) == 1

    def test_unknown_format(self):
        with pytest.raises(InvalidImportPayload):
            parse_payload("date,description,amount\n", fmt="xml")


def test_read_import_file(tmp_path):
    path = tmp_path / "october.csv"
    path.write_text("date,description,amount\n2025-10-01,Uber trip,-18.30\n2025-10-01,,1\n")
    result = read_import_file(path)
    assert len(result.transactions) == 1
    assert result.dropped == 1
    assert math.isclose(result.transactions[0].amount, -18.3)
