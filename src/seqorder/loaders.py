from __future__ import annotations

import logging
from pathlib import Path

from openpyxl import load_workbook

from .catalog import (
    CatalogError,
    CatalogIndex,
    CatalogItem,
    DefaultService,
    PackageBinding,
    PackagePreset,
)
from .categories import normalize_categories
from .directory import CustomerDirectory, CustomerRecord, SalesDirectory
from .ingestion import ContractError, convert_workbook_to_records
from .state_schema import CategoryId, SampleType

logger = logging.getLogger(__name__)

CATALOG_SHEET = "Catalog"
PACKAGES_SHEET = "Packages"
PACKAGE_SERVICES_SHEET = "Package Services"
PACKAGE_FILTERS_SHEET = "Package Filters"
SALES_SHEET = "Sales"
CUSTOMERS_SHEET = "Customers"

_CATEGORY_ALIASES = {
    "q": CategoryId.QC,
    "qc": CategoryId.QC,
    "eq": CategoryId.EXTRACTION_QC,
    "extraction_qc": CategoryId.EXTRACTION_QC,
    "extraction/qc": CategoryId.EXTRACTION_QC,
    "l": CategoryId.LIBRARY,
    "library": CategoryId.LIBRARY,
    "s": CategoryId.SEQUENCING,
    "sequencing": CategoryId.SEQUENCING,
    "a": CategoryId.ANALYSIS,
    "analysis": CategoryId.ANALYSIS,
    "ap": CategoryId.PACKAGE,
    "package": CategoryId.PACKAGE,
}


def _norm(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_category(value: object) -> CategoryId:
    key = _norm(value)
    if key not in _CATEGORY_ALIASES:
        raise ContractError(f"Unknown category: {value}")
    return _CATEGORY_ALIASES[key]


def parse_sample_type(value: object) -> SampleType | None:
    key = _norm(value).replace(" ", "_")
    if not key:
        return None
    try:
        return SampleType(key)
    except ValueError as exc:
        raise ContractError(f"Unknown sample type: {value}") from exc


def _optional_float(value: object) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ContractError(f"Expected a number, got: {value}") from exc


def _flag(value: object) -> bool:
    return _norm(value) in {"1", "true", "yes", "y", "x"}


def _sheet_names(workbook_path: Path | str) -> list[str]:
    wb = load_workbook(workbook_path, read_only=True)
    return list(wb.sheetnames)


def load_catalog_items(workbook_path: Path | str) -> list[CatalogItem]:
    records = convert_workbook_to_records(
        workbook_path,
        CATALOG_SHEET,
        required_columns=("code", "category", "description"),
        required_non_empty_columns=("code", "category"),
        optional_columns=("yield_gb_per_unit", "bundle_sample_type", "bundle_yield_gb"),
    )
    items: list[CatalogItem] = []
    for record in records:
        binding = PackageBinding(
            sample_type=parse_sample_type(record.get("bundle_sample_type")),
            yield_per_sample_gb=_optional_float(record.get("bundle_yield_gb")),
        )
        items.append(
            CatalogItem(
                code=_text(record["code"]),
                category=parse_category(record["category"]),
                description=_text(record["description"]),
                yield_gb_per_unit=_optional_float(record.get("yield_gb_per_unit")),
                binding=None if binding.is_empty else binding,
            )
        )
    return items


def load_package_presets(workbook_path: Path | str, items: list[CatalogItem]) -> list[PackagePreset]:
    sheets = _sheet_names(workbook_path)
    if PACKAGES_SHEET not in sheets:
        return []

    packages = convert_workbook_to_records(
        workbook_path,
        PACKAGES_SHEET,
        required_columns=("package_id", "name", "categories"),
        required_non_empty_columns=("package_id", "categories"),
        optional_columns=("recommended_sample_type", "yield_per_sample_gb"),
    )

    services: dict[str, list[DefaultService]] = {}
    if PACKAGE_SERVICES_SHEET in sheets:
        for record in convert_workbook_to_records(
            workbook_path,
            PACKAGE_SERVICES_SHEET,
            required_columns=("package_id", "category", "catalog_code", "default_quantity"),
            required_non_empty_columns=("package_id", "category", "catalog_code", "default_quantity"),
            optional_columns=("exclude_from_multiplier",),
        ):
            services.setdefault(_text(record["package_id"]), []).append(
                DefaultService(
                    category=parse_category(record["category"]),
                    catalog_code=_text(record["catalog_code"]),
                    default_quantity=int(float(record["default_quantity"])),
                    exclude_from_multiplier=_flag(record.get("exclude_from_multiplier")),
                )
            )

    filters: dict[str, dict[CategoryId, list[str]]] = {}
    if PACKAGE_FILTERS_SHEET in sheets:
        for record in convert_workbook_to_records(
            workbook_path,
            PACKAGE_FILTERS_SHEET,
            required_columns=("package_id", "category", "catalog_code"),
            required_non_empty_columns=("package_id", "category", "catalog_code"),
        ):
            by_category = filters.setdefault(_text(record["package_id"]), {})
            by_category.setdefault(parse_category(record["category"]), []).append(_text(record["catalog_code"]))

    known_codes = {item.code for item in items}
    presets: list[PackagePreset] = []
    for record in packages:
        package_id = _text(record["package_id"])
        categories = tuple(
            parse_category(part) for part in _text(record["categories"]).replace(";", ",").split(",") if part.strip()
        )
        if normalize_categories(set(categories)) != set(categories):
            raise CatalogError(f"Package {package_id} has inconsistent categories: {[c.value for c in categories]}")

        defaults = tuple(services.get(package_id, []))
        unknown = sorted({d.catalog_code for d in defaults}.difference(known_codes))
        if unknown:
            raise CatalogError(f"Package {package_id} references unknown catalog codes: {unknown}")

        presets.append(
            PackagePreset(
                package_id=package_id,
                name=_text(record["name"]) or package_id,
                categories=categories,
                default_services=defaults,
                recommended_sample_type=parse_sample_type(record.get("recommended_sample_type")),
                yield_per_sample_gb=_optional_float(record.get("yield_per_sample_gb")),
                service_filters={k: tuple(v) for k, v in filters.get(package_id, {}).items()},
            )
        )

    orphans = sorted(set(services).union(filters).difference(p.package_id for p in presets))
    if orphans:
        raise CatalogError(f"Package rows reference unknown packages: {orphans}")
    return presets


def load_catalog(workbook_path: Path | str) -> CatalogIndex:
    items = load_catalog_items(workbook_path)
    presets = load_package_presets(workbook_path, items)
    logger.info("Loaded catalog from %s: %d items, %d packages", workbook_path, len(items), len(presets))
    return CatalogIndex(items, presets)


def load_sales_directory(workbook_path: Path | str) -> SalesDirectory:
    records = convert_workbook_to_records(
        workbook_path,
        SALES_SHEET,
        required_columns=("code", "name"),
        required_non_empty_columns=("code", "name"),
    )
    return SalesDirectory({_text(r["code"]): _text(r["name"]) for r in records})


def load_customer_directory(workbook_path: Path | str) -> CustomerDirectory:
    if CUSTOMERS_SHEET not in _sheet_names(workbook_path):
        return CustomerDirectory([])

    optional = tuple(f for f in CustomerRecord.__dataclass_fields__ if f not in ("code", "organization"))
    records = convert_workbook_to_records(
        workbook_path,
        CUSTOMERS_SHEET,
        required_columns=("code", "organization"),
        required_non_empty_columns=("code",),
        optional_columns=optional,
    )
    return CustomerDirectory(
        [CustomerRecord(**{key: _text(value) for key, value in record.items()}) for record in records]
    )
