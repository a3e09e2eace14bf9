from __future__ import annotations

from dataclasses import dataclass

from .catalog import CatalogIndex, CatalogItem, PackagePreset
from .extraction import classify
from .policy_tables import NARROWING_RULES, NarrowingRule
from .state_schema import CategoryId, ExtractionType, OrderDraft


@dataclass(frozen=True, slots=True)
class SelectionFlag:
    category: CategoryId
    catalog_code: str
    reason: str


def passes_narrowing(rule: NarrowingRule, item: CatalogItem, extraction_type: ExtractionType) -> bool:
    is_rna = rule.rna_marker.matches(item.code, item.label)
    if extraction_type == ExtractionType.DNA:
        return not is_rna
    if extraction_type == ExtractionType.RNA:
        return is_rna
    return True


class ServiceCatalogFilter:
    """Legal catalog subset per category given extraction type and package preset."""

    def __init__(self, catalog: CatalogIndex):
        self.catalog = catalog

    def legal_items(
        self,
        category: CategoryId,
        extraction_type: ExtractionType = ExtractionType.NONE,
        preset: PackagePreset | None = None,
    ) -> list[CatalogItem]:
        items = self.catalog.items(category)

        if preset is not None:
            allowed = preset.allowed_codes(category)
            if allowed:
                allow_set = set(allowed)
                items = [i for i in items if i.code in allow_set]

        rule = NARROWING_RULES.get(category)
        if rule is not None:
            items = [i for i in items if passes_narrowing(rule, i, extraction_type)]
        return items

    def legal_codes(
        self,
        category: CategoryId,
        extraction_type: ExtractionType = ExtractionType.NONE,
        preset: PackagePreset | None = None,
    ) -> list[str]:
        return [i.code for i in self.legal_items(category, extraction_type, preset)]

    def flag_reason(
        self,
        category: CategoryId,
        code: str,
        extraction_type: ExtractionType,
        preset: PackagePreset | None,
    ) -> str | None:
        item = self.catalog.get(code)
        if item is None or item.category != category:
            return "not_in_catalog"
        if preset is not None:
            allowed = preset.allowed_codes(category)
            if allowed and code not in allowed:
                return "package_filter"
        rule = NARROWING_RULES.get(category)
        if rule is not None and not passes_narrowing(rule, item, extraction_type):
            return f"extraction_mismatch:{rule.name}"
        return None

    def flag_out_of_catalog(self, draft: OrderDraft) -> list[SelectionFlag]:
        """Chosen codes that fell outside the recomputed legal set. They are reported, never removed."""
        extraction_type = classify(draft.service_items, self.catalog)
        preset = self.catalog.find_preset(draft.active_package.package_id) if draft.active_package else None
        flags: list[SelectionFlag] = []
        for item in draft.service_items:
            for code in item.chosen_codes():
                reason = self.flag_reason(item.category, code, extraction_type, preset)
                if reason is not None:
                    flags.append(SelectionFlag(category=item.category, catalog_code=code, reason=reason))
        return flags
