"""
cli.py
------
Command line front end for the budget coach.

Usage:

    budget-coach import statements/october.csv
    budget-coach budget monthly 800
    budget-coach budget set Food 220
    budget-coach whatif Food 15
    budget-coach simulate on
    budget-coach suggest
    budget-coach report -o capwise-report.json

Settings (storage backend, log level) come from the environment; see
``config.py``.
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from config import load_settings
from engine import BudgetSession
from errors import InvalidImportPayload
from insights import top_merchants
from logging_setup import configure_logging
from money import dollars
from process_transactions import read_import_file
from report import build_report, export_report, report_to_json
from storage import get_store

EXIT_INVALID_IMPORT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="budget-coach", description="Categorize spending and coach a monthly budget")
    parser.add_argument("--log-level", default=None, help="Logging level (default: BUDGET_COACH_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Replace the working set with a CSV or JSON file")
    p_import.add_argument("path")

    sub.add_parser("summary", help="Totals per category on both bases")
    sub.add_parser("suggest", help="Budget advice on the active basis")
    sub.add_parser("subscriptions", help="Likely recurring charges")

    p_merch = sub.add_parser("merchants", help="Top merchants inside a category")
    p_merch.add_argument("category")
    p_merch.add_argument("--limit", type=int, default=5)

    p_report = sub.add_parser("report", help="Print or write the export document")
    p_report.add_argument("-o", "--output", default=None, help="Write JSON to this path instead of stdout")
    p_report.add_argument("--month", default=None, help="Report month label (YYYY-MM)")

    p_budget = sub.add_parser("budget", help="Set the monthly or a category budget")
    budget_sub = p_budget.add_subparsers(dest="budget_command", required=True)
    p_monthly = budget_sub.add_parser("monthly")
    p_monthly.add_argument("amount", type=float)
    p_cat = budget_sub.add_parser("set")
    p_cat.add_argument("category")
    p_cat.add_argument("amount", type=float)

    p_whatif = sub.add_parser("whatif", help="Set a what-if reduction percentage for a category")
    p_whatif.add_argument("category")
    p_whatif.add_argument("percent", type=float)

    p_sim = sub.add_parser("simulate", help="Use simulated totals for comparisons and advice")
    p_sim.add_argument("state", choices=["on", "off"])

    p_rules = sub.add_parser("rules", help="Show rules, or set a category's comma-separated keywords")
    p_rules.add_argument("category", nargs="?")
    p_rules.add_argument("keywords", nargs="?")

    p_category = sub.add_parser("category", help="Manage categories")
    category_sub = p_category.add_subparsers(dest="category_command", required=True)
    p_add = category_sub.add_parser("add")
    p_add.add_argument("name")

    p_classify = sub.add_parser("categorize", help="Show which category a description falls into")
    p_classify.add_argument("description")
    return parser


def _print_summary(session: BudgetSession) -> None:
    state = session.derived
    basis = "simulated" if state.using_simulation else "actual"
    print(f"Basis: {basis}")
    for row in state.budget_rows:
        target = dollars(row["target"]) if row["target"] else "-"
        print(f"  {row['category']:<16} actual {dollars(row['actual']):>10}  simulated {dollars(row['simulated']):>10}  budget {target:>10}")
    print(f"Spent {dollars(state.burn['spent'])} / {dollars(state.burn['budget'])}")


def run(args: argparse.Namespace, session: BudgetSession) -> int:
    if args.command == "import":
        try:
            result = read_import_file(args.path)
        except InvalidImportPayload as exc:
            print(f"Invalid file: {exc}", file=sys.stderr)
            return EXIT_INVALID_IMPORT
        except OSError as exc:
            print(f"Cannot read {args.path}: {exc}", file=sys.stderr)
            return 1
        session.replace_transactions(result.transactions)
        print(f"Imported {len(result.transactions)} transactions ({result.dropped} rows dropped).")
    elif args.command == "summary":
        _print_summary(session)
    elif args.command == "suggest":
        for item in session.derived.suggestions:
            print(f"- {item['title']}. {item['detail']}")
    elif args.command == "subscriptions":
        subs = session.derived.subscriptions
        if not subs:
            print("No recurring charges found.")
        for sub in subs:
            print(f"  {sub['merchant']:<24} ~{dollars(sub['est_monthly'])}/mo")
    elif args.command == "merchants":
        for entry in top_merchants(session.derived.merchant_breakdown, args.category, args.limit):
            print(f"  {entry['merchant']:<24} {dollars(entry['amount'])}")
    elif args.command == "report":
        report = build_report(session.derived, month=args.month)
        if args.output:
            path = export_report(report, args.output)
            print(f"Report written to {path}")
        else:
            print(report_to_json(report))
    elif args.command == "budget":
        if args.budget_command == "monthly":
            session.set_monthly_budget(args.amount)
        else:
            session.set_category_budget(args.category, args.amount)
    elif args.command == "whatif":
        session.set_what_if(args.category, args.percent)
    elif args.command == "simulate":
        session.set_using_simulation(args.state == "on")
    elif args.command == "rules":
        if args.category and args.keywords is not None:
            session.set_rule_keywords(args.category, args.keywords)
        for category, keywords in session.rules_snapshot():
            print(f"  {category}: {', '.join(keywords)}")
    elif args.command == "category":
        added = session.add_category(args.name)
        print(f"Added {args.name}." if added else f"{args.name} already exists.")
    elif args.command == "categorize":
        print(session.categorize_description(args.description))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(args.log_level or settings.log_level)
    session = BudgetSession(get_store(settings))
    try:
        return run(args, session)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
