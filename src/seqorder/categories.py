from __future__ import annotations

from dataclasses import dataclass

from .policy_tables import CATEGORY_DEPENDENCIES, EXCLUSIVE_CATEGORY
from .state_schema import (
    CANONICAL_CATEGORY_ORDER,
    CategoryId,
    OrderDraft,
    Outcome,
    Transition,
    locked_transition,
)


@dataclass(frozen=True, slots=True)
class ToggleOutcome:
    accepted: bool
    category: CategoryId
    turned_on: bool = False
    auto_selected: tuple[CategoryId, ...] = ()
    package_dropped: bool = False
    reason: str | None = None

    @property
    def messages(self) -> tuple[str, ...]:
        out = [f"auto_selected:{c.value}" for c in self.auto_selected]
        if self.package_dropped:
            out.append("package_dropped")
        return tuple(out)


def required_by(category: CategoryId, selected: set[CategoryId]) -> list[CategoryId]:
    """Selected categories that force ``category`` to stay on."""
    return [
        owner
        for owner in CANONICAL_CATEGORY_ORDER
        if owner in selected and owner != category and category in CATEGORY_DEPENDENCIES.get(owner, ())
    ]


def dependency_closure(categories: set[CategoryId]) -> tuple[set[CategoryId], list[CategoryId]]:
    """Adds forced categories until stable. Returns the closed set and the additions in order."""
    closed = set(categories)
    added: list[CategoryId] = []
    changed = True
    while changed:
        changed = False
        for owner in CANONICAL_CATEGORY_ORDER:
            if owner not in closed:
                continue
            for dep in CATEGORY_DEPENDENCIES.get(owner, ()):
                if dep not in closed:
                    closed.add(dep)
                    added.append(dep)
                    changed = True
    return closed, added


def normalize_categories(categories: set[CategoryId]) -> set[CategoryId]:
    if EXCLUSIVE_CATEGORY in categories:
        return {EXCLUSIVE_CATEGORY}
    closed, _added = dependency_closure(categories)
    return closed


def violations(categories: set[CategoryId]) -> list[str]:
    errors: list[str] = []
    if EXCLUSIVE_CATEGORY in categories and len(categories) > 1:
        errors.append("package_not_exclusive")
    for owner, deps in CATEGORY_DEPENDENCIES.items():
        if owner not in categories:
            continue
        for dep in deps:
            if dep not in categories:
                errors.append(f"missing_dependency:{owner.value}->{dep.value}")
    return errors


def toggle(draft: OrderDraft, category: CategoryId) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    category = CategoryId(category)
    before = sorted(c.value for c in draft.selected_categories)

    if category in draft.selected_categories:
        blockers = required_by(category, draft.selected_categories)
        if blockers:
            return Transition(
                draft=draft,
                outcome=ToggleOutcome(
                    accepted=False,
                    category=category,
                    reason=f"required_by:{','.join(b.value for b in blockers)}",
                ),
            )
        new = draft.clone()
        new.selected_categories.discard(category)
        new.service_items = [i for i in new.service_items if i.category != category]
        if category == EXCLUSIVE_CATEGORY:
            new.active_package = None
        new.log_update(
            "selected_categories",
            before,
            sorted(c.value for c in new.selected_categories),
            f"toggle_off:{category.value}",
        )
        return Transition(draft=new, outcome=ToggleOutcome(accepted=True, category=category))

    new = draft.clone()

    if category == EXCLUSIVE_CATEGORY:
        new.selected_categories = {EXCLUSIVE_CATEGORY}
        new.active_package = None
        new.service_items = []
        new.log_update(
            "selected_categories",
            before,
            [EXCLUSIVE_CATEGORY.value],
            "toggle_on:package_exclusive",
        )
        return Transition(draft=new, outcome=ToggleOutcome(accepted=True, category=category, turned_on=True))

    package_dropped = False
    if EXCLUSIVE_CATEGORY in new.selected_categories:
        new.selected_categories.discard(EXCLUSIVE_CATEGORY)
        new.active_package = None
        new.service_items = [i for i in new.service_items if i.category != EXCLUSIVE_CATEGORY]
        package_dropped = True

    new.selected_categories.add(category)
    new.selected_categories, auto_selected = dependency_closure(new.selected_categories)
    new.log_update(
        "selected_categories",
        before,
        sorted(c.value for c in new.selected_categories),
        f"toggle_on:{category.value}",
    )
    return Transition(
        draft=new,
        outcome=ToggleOutcome(
            accepted=True,
            category=category,
            turned_on=True,
            auto_selected=tuple(auto_selected),
            package_dropped=package_dropped,
        ),
    )


def clear_categories(draft: OrderDraft) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    if not draft.selected_categories:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="nothing_selected"))
    new = draft.clone()
    new.log_update(
        "selected_categories",
        sorted(c.value for c in draft.selected_categories),
        [],
        "clear_categories",
    )
    new.selected_categories = set()
    new.service_items = []
    new.active_package = None
    return Transition(draft=new, outcome=Outcome(accepted=True))
