from __future__ import annotations

from dataclasses import dataclass

from .catalog import CatalogIndex, DefaultService, PackagePreset
from .categories import normalize_categories
from .policy_tables import EXCLUSIVE_CATEGORY
from .state_schema import (
    ActivePackage,
    OrderDraft,
    Outcome,
    SampleType,
    ServiceItem,
    ServiceLine,
    Transition,
    locked_transition,
)


@dataclass(frozen=True, slots=True)
class ResolvedBinding:
    """Overrides a package imposes on the manifest step."""
    source: str
    sample_type: SampleType | None
    yield_per_sample_gb: float | None
    sample_slots: int | None = None


def active_preset(draft: OrderDraft, catalog: CatalogIndex) -> PackagePreset | None:
    if draft.active_package is None:
        return None
    return catalog.find_preset(draft.active_package.package_id)


def package_binding(draft: OrderDraft, catalog: CatalogIndex) -> ResolvedBinding | None:
    """Binding from the chosen bundled-package item, else from the active preset."""
    if EXCLUSIVE_CATEGORY in draft.selected_categories:
        bundle = draft.service_item(EXCLUSIVE_CATEGORY)
        if bundle is not None and bundle.services and bundle.services[0].catalog_code:
            line = bundle.services[0]
            item = catalog.get(line.catalog_code)
            if item is not None and item.binding is not None and not item.binding.is_empty:
                return ResolvedBinding(
                    source=f"bundle:{item.code}",
                    sample_type=item.binding.sample_type,
                    yield_per_sample_gb=item.binding.yield_per_sample_gb,
                    sample_slots=line.quantity or 1,
                )

    preset = active_preset(draft, catalog)
    if preset is not None and not preset.binding.is_empty:
        slots = draft.active_package.multiplier if preset.yield_per_sample_gb is not None else None
        return ResolvedBinding(
            source=f"preset:{preset.package_id}",
            sample_type=preset.recommended_sample_type,
            yield_per_sample_gb=preset.yield_per_sample_gb,
            sample_slots=slots,
        )
    return None


def scaled_quantity(default: DefaultService, multiplier: int) -> int:
    if default.exclude_from_multiplier:
        return default.default_quantity
    return default.default_quantity * multiplier


def apply_package(draft: OrderDraft, catalog: CatalogIndex, package_id: str) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    preset = catalog.find_preset(package_id)
    if preset is None:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason=f"unknown_package:{package_id}"))

    new = draft.clone()
    before = {
        "categories": sorted(c.value for c in draft.selected_categories),
        "package": draft.active_package.package_id if draft.active_package else None,
    }
    new.selected_categories = normalize_categories(set(preset.categories))
    new.active_package = ActivePackage(package_id=preset.package_id, multiplier=1)
    new.service_items = []
    if preset.recommended_sample_type is not None:
        new.sample_type = preset.recommended_sample_type
    new.log_update(
        "active_package",
        before,
        {
            "categories": sorted(c.value for c in new.selected_categories),
            "package": preset.package_id,
        },
        "apply_package",
    )
    return Transition(draft=new, outcome=Outcome(accepted=True, messages=(f"package_applied:{preset.package_id}",)))


def clear_package(draft: OrderDraft) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    if draft.active_package is None:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="no_active_package"))

    new = draft.clone()
    new.log_update("active_package", draft.active_package.package_id, None, "clear_package")
    new.active_package = None
    new.selected_categories = set()
    new.service_items = []
    return Transition(draft=new, outcome=Outcome(accepted=True))


def materialize_service_items(draft: OrderDraft, catalog: CatalogIndex) -> OrderDraft:
    """One entry per selected category in canonical order.

    Existing entries are kept; missing ones are built from the active preset's
    defaults, or left as a single blank line.
    """
    new = draft.clone()
    preset = active_preset(draft, catalog)
    multiplier = draft.active_package.multiplier if draft.active_package else 1

    items: list[ServiceItem] = []
    for category in draft.ordered_categories:
        existing = draft.service_item(category)
        if existing is not None:
            items.append(new.service_item(category))
            continue

        defaults = preset.defaults_for(category) if preset is not None else []
        if defaults:
            lines = [ServiceLine(d.catalog_code, scaled_quantity(d, multiplier)) for d in defaults]
        elif category == EXCLUSIVE_CATEGORY:
            lines = [ServiceLine("", 1)]
        else:
            lines = [ServiceLine()]
        items.append(ServiceItem(category=category, services=lines))

    before = [i.category.value for i in draft.service_items]
    after = [i.category.value for i in items]
    new.service_items = items
    if before != after:
        new.log_update("service_items", before, after, "materialize_service_items")
    return new


def rescale(draft: OrderDraft, catalog: CatalogIndex, multiplier: int) -> Transition:
    """Sets every preset-sourced quantity to default x multiplier. User-added lines are untouched."""
    if draft.locked:
        return locked_transition(draft)

    preset = active_preset(draft, catalog)
    if preset is None:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="no_active_package"))

    try:
        multiplier = int(multiplier)
    except (TypeError, ValueError):
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="invalid_multiplier"))
    if multiplier < 1:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="invalid_multiplier"))

    new = draft.clone()
    old_multiplier = new.active_package.multiplier
    new.active_package.multiplier = multiplier
    for item in new.service_items:
        for line in item.services:
            default = preset.default_for(item.category, line.catalog_code)
            if default is not None:
                line.quantity = scaled_quantity(default, multiplier)

    new.log_update("package_multiplier", old_multiplier, multiplier, f"rescale:{preset.package_id}")
    return Transition(draft=new, outcome=Outcome(accepted=True, messages=(f"multiplier:{multiplier}",)))


def preset_categories_valid(preset: PackagePreset) -> bool:
    return normalize_categories(set(preset.categories)) == set(preset.categories)

