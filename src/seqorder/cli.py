"""Command line checks for the order form engine.

Usage:
    python -m src.seqorder.cli catalog
    python -m src.seqorder.cli check order.json
    python -m src.seqorder.cli readiness --directory reference.xlsx
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .catalog import CatalogError, CatalogIndex
from .config import OrderFormConfig
from .engine import build_snapshot
from .gates import GateContext, evaluate_step
from .ingestion import ContractError
from .loaders import load_catalog, load_sales_directory
from .directory import SalesDirectory
from .manifest import sanitize_sample_name
from .pii_guard import redact_payload
from .readiness import run_readiness_review
from .state_schema import (
    ActivePackage,
    CategoryId,
    LibraryRow,
    ManifestTable,
    OrderDraft,
    SampleRow,
    SampleType,
    ServiceItem,
    ServiceLine,
    WizardStep,
)


def draft_from_document(data: dict) -> OrderDraft:
    """Build a draft from a JSON order document.

    Keys: ``sales_code``, ``sales_person``, ``profile`` (draft field names),
    ``categories``, ``package`` ({"package_id", "multiplier"}),
    ``service_items`` ({category: [[code, quantity], ...]}), ``sample_type``
    and ``manifest`` ({table: [row dicts]}).
    """
    draft = OrderDraft(session_id=str(data.get("session_id", "cli")))
    draft.sales_code = str(data.get("sales_code", "")).strip().upper()
    draft.sales_person = str(data.get("sales_person", ""))
    for name, value in data.get("profile", {}).items():
        if name in OrderDraft.__dataclass_fields__:
            setattr(draft, name, value)

    draft.selected_categories = {CategoryId(c) for c in data.get("categories", [])}
    package = data.get("package")
    if package:
        draft.active_package = ActivePackage(package["package_id"], int(package.get("multiplier", 1)))

    for category in draft.ordered_categories:
        lines = data.get("service_items", {}).get(category.value, [])
        draft.service_items.append(
            ServiceItem(category=category, services=[ServiceLine(code, qty) for code, qty in lines] or [ServiceLine()])
        )

    draft.sample_type = SampleType(data.get("sample_type", SampleType.NO_SAMPLE.value))
    for table_name, rows in data.get("manifest", {}).items():
        table = ManifestTable(table_name)
        row_type = LibraryRow if table == ManifestTable.LIBRARY_INDEXES else SampleRow
        parsed = []
        for row in rows:
            values = {k: v for k, v in row.items() if k in row_type.__dataclass_fields__}
            values["sample_name"] = sanitize_sample_name(values.get("sample_name", ""))
            if "expected_yield_gb" in values:
                values["expected_yield_gb"] = float(values["expected_yield_gb"] or 0)
            parsed.append(row_type(**values))
        draft.table_rows(table)[:] = parsed or [row_type()]
    return draft


def _load_catalog(config: OrderFormConfig) -> CatalogIndex:
    return load_catalog(config.catalog_workbook) if config.catalog_workbook else CatalogIndex.default()


def _cmd_catalog(args, config: OrderFormConfig) -> int:
    catalog = _load_catalog(config)
    for category in CategoryId:
        print(f"\n{category.label}")
        for item in catalog.items(category):
            yield_text = f"  [{item.yield_gb_per_unit:g} GB/unit]" if item.yield_gb_per_unit else ""
            print(f"  {item.code:<10} {item.description}{yield_text}")
    if catalog.presets:
        print("\nPackages")
        for preset in catalog.presets:
            print(f"  {preset.package_id:<12} {preset.name} ({', '.join(c.value for c in preset.categories)})")
    return 0


def _cmd_check(args, config: OrderFormConfig) -> int:
    catalog = _load_catalog(config)
    sales = load_sales_directory(config.directory_workbook) if config.directory_workbook else SalesDirectory({})
    if args.sales_code and args.sales_person:
        sales = SalesDirectory({args.sales_code: args.sales_person})

    data = json.loads(Path(args.draft).read_text(encoding="utf-8"))
    draft = draft_from_document(data)
    context = GateContext(catalog=catalog, sales=sales)

    all_passed = True
    for step in WizardStep:
        result = evaluate_step(draft, step, context)
        all_passed = all_passed and result.passed
        status = "PASS" if result.passed else f"FAIL ({', '.join(result.details.get('failures', [result.reason]))})"
        print(f"  {step.name.lower():<16} {status}")

    if args.snapshot:
        snapshot = build_snapshot(draft, catalog)
        snapshot["profile"] = redact_payload(snapshot["profile"])
        print(json.dumps(snapshot, ensure_ascii=False, indent=2))
    return 0 if all_passed else 1


def _cmd_readiness(args, config: OrderFormConfig) -> int:
    directory = args.directory or config.directory_workbook
    if directory is None:
        print("[ERROR] A directory workbook is required (--directory or SEQORDER_DIRECTORY_WORKBOOK).")
        return 2
    report = run_readiness_review(directory_path=directory, catalog_path=args.catalog or config.catalog_workbook)
    for gate in report.gates:
        print(f"  {'PASS' if gate.passed else 'FAIL'}  {gate.gate}: {gate.details}")
    return 0 if report.passed else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Sequencing order form engine CLI")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("catalog", help="List catalog items and packages")

    check = sub.add_parser("check", help="Run every step gate against an order document")
    check.add_argument("draft", help="Path to the order JSON document")
    check.add_argument("--snapshot", action="store_true", help="Print the derived snapshot")
    check.add_argument("--sales-code", default=None)
    check.add_argument("--sales-person", default=None)

    readiness = sub.add_parser("readiness", help="Validate contracts and reference workbooks")
    readiness.add_argument("--directory", default=None, help="Sales/customer directory workbook")
    readiness.add_argument("--catalog", default=None, help="Catalog workbook (defaults to the built-in catalog)")

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = OrderFormConfig.from_env(args.env_file)
        handlers = {"catalog": _cmd_catalog, "check": _cmd_check, "readiness": _cmd_readiness}
        return handlers[args.command](args, config)
    except (CatalogError, ContractError, ValueError, OSError) as exc:
        print(f"\n[ERROR] {exc}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
