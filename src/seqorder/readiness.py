from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .catalog import CatalogError, CatalogIndex
from .contracts import validate_contract_freeze
from .ingestion import ContractError
from .packages import preset_categories_valid
from .runtime import build_session_from_excels


@dataclass(frozen=True, slots=True)
class ReadinessGateResult:
    gate: str
    passed: bool
    details: str


@dataclass(frozen=True, slots=True)
class ReadinessReport:
    passed: bool
    gates: list[ReadinessGateResult]


def preset_problems(catalog: CatalogIndex) -> list[str]:
    problems: list[str] = []
    for preset in catalog.presets:
        if not preset_categories_valid(preset):
            problems.append(f"{preset.package_id}:categories")
        for default in preset.default_services:
            item = catalog.get(default.catalog_code)
            if item is None or item.category != default.category:
                problems.append(f"{preset.package_id}:unknown_code:{default.catalog_code}")
            if default.category not in preset.categories:
                problems.append(f"{preset.package_id}:category_not_in_package:{default.catalog_code}")
        for category, codes in preset.service_filters.items():
            for code in codes:
                if catalog.get(code) is None:
                    problems.append(f"{preset.package_id}:unknown_filter_code:{code}")
    return problems


def run_readiness_review(
    *,
    directory_path: Path | str,
    catalog_path: Path | str | None = None,
) -> ReadinessReport:
    gates: list[ReadinessGateResult] = []

    contract_result = validate_contract_freeze()
    gates.append(
        ReadinessGateResult(
            gate="contracts_frozen",
            passed=contract_result.is_valid,
            details="ok" if contract_result.is_valid else ";".join(contract_result.errors),
        )
    )

    try:
        session, assets = build_session_from_excels(catalog_path, directory_path)
    except (CatalogError, ContractError, OSError) as exc:
        gates.append(
            ReadinessGateResult(
                gate="runtime_assets_loaded",
                passed=False,
                details=f"error:{type(exc).__name__}:{exc}",
            )
        )
        return ReadinessReport(passed=False, gates=gates)

    asset_ok = assets.catalog_item_count > 0 and assets.sales_code_count > 0
    gates.append(
        ReadinessGateResult(
            gate="runtime_assets_loaded",
            passed=asset_ok,
            details=(
                f"catalog_items={assets.catalog_item_count},packages={assets.package_count},"
                f"sales_codes={assets.sales_code_count},customers={assets.customer_count}"
            ),
        )
    )

    problems = preset_problems(session.catalog)
    gates.append(
        ReadinessGateResult(
            gate="package_presets_consistent",
            passed=not problems,
            details="ok" if not problems else ";".join(problems),
        )
    )

    return ReadinessReport(passed=all(g.passed for g in gates), gates=gates)
