from __future__ import annotations

from .catalog import CatalogIndex
from .packages import ResolvedBinding, package_binding
from .policy_tables import SAMPLE_TYPE_POLICY
from .state_schema import (
    ALL_SAMPLE_TYPES,
    CategoryId,
    OrderDraft,
    Outcome,
    SampleType,
    Transition,
    locked_transition,
)


def _policy_branch(selected: set[CategoryId]):
    for trigger, excluded, types, rationale in SAMPLE_TYPE_POLICY:
        if trigger in selected and not excluded.intersection(selected):
            return types, rationale
    return None


def allowed_sample_types(
    selected_categories: set[CategoryId],
    binding: ResolvedBinding | None = None,
) -> list[SampleType]:
    if binding is not None and binding.sample_type is not None:
        return [binding.sample_type]
    branch = _policy_branch(selected_categories)
    if branch is None:
        return list(ALL_SAMPLE_TYPES)
    return list(branch[0])


def restriction_rationale(
    selected_categories: set[CategoryId],
    binding: ResolvedBinding | None = None,
) -> str:
    """User-facing explanation of the active branch; empty when nothing is restricted."""
    if binding is not None and binding.sample_type is not None:
        return f"Package {binding.source.split(':', 1)[-1]} requires sample type '{binding.sample_type.value}'."
    branch = _policy_branch(selected_categories)
    return branch[1] if branch else ""


def allowed_for_draft(draft: OrderDraft, catalog: CatalogIndex) -> list[SampleType]:
    return allowed_sample_types(draft.selected_categories, package_binding(draft, catalog))


def set_sample_type(draft: OrderDraft, catalog: CatalogIndex, sample_type: SampleType) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    sample_type = SampleType(sample_type)
    allowed = allowed_for_draft(draft, catalog)
    if sample_type not in allowed:
        return Transition(
            draft=draft,
            outcome=Outcome(
                accepted=False,
                reason=f"sample_type_not_allowed:{sample_type.value}",
                messages=(restriction_rationale(draft.selected_categories, package_binding(draft, catalog)),),
            ),
        )
    if sample_type == draft.sample_type:
        return Transition(draft=draft, outcome=Outcome(accepted=True))

    new = draft.clone()
    new.sample_type = sample_type
    new.log_update("sample_type", draft.sample_type.value, sample_type.value, "set_sample_type")
    return Transition(draft=new, outcome=Outcome(accepted=True))
