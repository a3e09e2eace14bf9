from __future__ import annotations

from .catalog import CatalogIndex
from .packages import active_preset
from .policy_tables import MULTI_LINE_CATEGORIES
from .state_schema import (
    CategoryId,
    OrderDraft,
    Outcome,
    ServiceLine,
    Transition,
    locked_transition,
)


def parse_quantity(value: object) -> int | None:
    """Positive integer or None. Blank and non-numeric input both clear the quantity."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        number = int(float(text))
    except ValueError:
        return None
    return number if number > 0 else None


def _reject(draft: OrderDraft, reason: str) -> Transition:
    return Transition(draft=draft, outcome=Outcome(accepted=False, reason=reason))


def _locate(draft: OrderDraft, category: CategoryId, index: int):
    item = draft.service_item(category)
    if item is None:
        return None, "category_not_selected"
    if not 0 <= index < len(item.services):
        return None, "line_out_of_range"
    return item, None


def set_service_line(
    draft: OrderDraft,
    catalog: CatalogIndex,
    category: CategoryId,
    index: int,
    catalog_code: str | None = None,
    quantity: object = None,
) -> Transition:
    """Set the code and/or quantity of one service line.

    ``None`` leaves the corresponding value unchanged. Codes must exist in the
    category's catalog slice and, while a package preset is active, in its
    allowed list.
    """
    if draft.locked:
        return locked_transition(draft)

    category = CategoryId(category)
    item, problem = _locate(draft, category, index)
    if problem:
        return _reject(draft, problem)

    if catalog_code is not None and catalog_code != "":
        catalog_item = catalog.get(catalog_code)
        if catalog_item is None or catalog_item.category != category:
            return _reject(draft, f"not_in_catalog:{catalog_code}")
        preset = active_preset(draft, catalog)
        if preset is not None:
            allowed = preset.allowed_codes(category)
            if allowed and catalog_code not in allowed:
                return _reject(draft, f"package_filter:{catalog_code}")

    new = draft.clone()
    line = new.service_item(category).services[index]
    old = (line.catalog_code, line.quantity)
    if catalog_code is not None:
        line.catalog_code = catalog_code
    if quantity is not None:
        line.quantity = parse_quantity(quantity)
    new.log_update(
        f"service_items.{category.value}[{index}]",
        list(old),
        [line.catalog_code, line.quantity],
        "set_service_line",
    )
    return Transition(draft=new, outcome=Outcome(accepted=True))


def add_service_line(draft: OrderDraft, category: CategoryId) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    category = CategoryId(category)
    if category not in MULTI_LINE_CATEGORIES:
        return _reject(draft, f"single_line_category:{category.value}")
    if draft.service_item(category) is None:
        return _reject(draft, "category_not_selected")

    new = draft.clone()
    services = new.service_item(category).services
    services.append(ServiceLine())
    new.log_update(f"service_items.{category.value}", len(services) - 1, len(services), "add_service_line")
    return Transition(draft=new, outcome=Outcome(accepted=True))


def remove_service_line(draft: OrderDraft, category: CategoryId, index: int) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    category = CategoryId(category)
    item, problem = _locate(draft, category, index)
    if problem:
        return _reject(draft, problem)
    if len(item.services) <= 1:
        return _reject(draft, "last_line")

    new = draft.clone()
    services = new.service_item(category).services
    del services[index]
    new.log_update(f"service_items.{category.value}", len(item.services), len(services), "remove_service_line")
    return Transition(draft=new, outcome=Outcome(accepted=True))
