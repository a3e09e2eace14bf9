from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from .catalog import CatalogIndex
from .catalog_filter import ServiceCatalogFilter
from .categories import violations
from .directory import SalesDirectory
from .manifest import duplicate_names, manifest_tables, prepare_manifest_step
from .packages import materialize_service_items
from .policy_tables import NARROWING_RULES, QUANTITY_CONSTRAINTS
from .reconciliation import ReconciliationStatus, reconcile_draft
from .sample_types import allowed_for_draft
from .state_schema import (
    CategoryId,
    OrderDraft,
    SampleType,
    Transition,
    WizardStep,
    locked_transition,
)

_EMAIL_SEGMENT_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Analysis keyword mismatches are surfaced but do not block the step.
NON_BLOCKING_FLAGS = frozenset({f"extraction_mismatch:{NARROWING_RULES[CategoryId.ANALYSIS].name}"})


@dataclass(frozen=True, slots=True)
class GateContext:
    catalog: CatalogIndex
    sales: SalesDirectory


@dataclass(frozen=True, slots=True)
class GateResult:
    step: WizardStep
    passed: bool
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    messages: tuple[str, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.passed


def is_valid_email_list(value: str) -> bool:
    """Comma/semicolon separated list; every non-blank segment must look like local@domain.tld."""
    segments = [s.strip() for s in re.split(r"[,;]", value or "") if s.strip()]
    if not segments:
        return False
    return all(_EMAIL_SEGMENT_RE.match(s) for s in segments)


def quantity_violations(draft: OrderDraft) -> list[str]:
    out: list[str] = []
    for item in draft.service_items:
        for line in item.services:
            rule = QUANTITY_CONSTRAINTS.get(line.catalog_code)
            if rule is None or line.quantity is None:
                continue
            if line.quantity < rule.minimum:
                out.append(f"{rule.catalog_code}<{rule.minimum}{rule.unit}")
    return out


def _result(step: WizardStep, failures: list[str], details: dict[str, Any]) -> GateResult:
    if failures:
        return GateResult(step=step, passed=False, reason=failures[0], details={**details, "failures": failures})
    return GateResult(step=step, passed=True, details=details)


def _check_identity(draft: OrderDraft, context: GateContext) -> GateResult:
    person = context.sales.lookup(draft.sales_code)
    if person is None:
        return GateResult(step=WizardStep.IDENTITY, passed=False, reason="unknown_sales_code")
    return GateResult(step=WizardStep.IDENTITY, passed=True, details={"sales_person": person})


def _check_profile(draft: OrderDraft, context: GateContext) -> GateResult:
    failures: list[str] = []
    if not draft.sales_person.strip():
        failures.append("sales_person_unresolved")
    for name in ("organization", "contact_person", "email"):
        if not getattr(draft, name).strip():
            failures.append(f"missing:{name}")
    if draft.email.strip() and not is_valid_email_list(draft.email):
        failures.append("invalid_email")
    if not draft.selected_categories:
        failures.append("no_category_selected")
    failures.extend(violations(draft.selected_categories))
    return _result(WizardStep.PROFILE, failures, {})


def _check_item_selection(draft: OrderDraft, context: GateContext) -> GateResult:
    failures: list[str] = []
    materialized = {item.category for item in draft.service_items}
    for category in draft.ordered_categories:
        if category not in materialized:
            failures.append(f"missing_items:{category.value}")

    for item in draft.service_items:
        if not any(line.is_complete for line in item.services):
            failures.append(f"incomplete:{item.category.value}")
            continue
        for idx, line in enumerate(item.services):
            if bool(line.catalog_code) != bool(line.quantity):
                failures.append(f"incomplete:{item.category.value}[{idx}]")

    failures.extend(f"quantity_floor:{v}" for v in quantity_violations(draft))

    flags = ServiceCatalogFilter(context.catalog).flag_out_of_catalog(draft)
    for flag in flags:
        if flag.reason not in NON_BLOCKING_FLAGS:
            failures.append(f"{flag.reason}:{flag.catalog_code}")

    details = {
        "flags": [
            {"category": f.category.value, "catalog_code": f.catalog_code, "reason": f.reason}
            for f in flags
        ]
    }
    return _result(WizardStep.ITEM_SELECTION, failures, details)


def _check_sample_manifest(draft: OrderDraft, context: GateContext, step: WizardStep) -> GateResult:
    failures: list[str] = []
    allowed = allowed_for_draft(draft, context.catalog)
    if draft.sample_type not in allowed:
        failures.append(f"sample_type_not_allowed:{draft.sample_type.value}")

    duplicates: dict[str, list[str]] = {}
    for table in manifest_tables(draft.sample_type):
        dupes = duplicate_names(draft.table_rows(table))
        if dupes:
            duplicates[table.value] = dupes
            failures.append(f"duplicate_names:{table.value}:{','.join(dupes)}")

    if draft.sample_type != SampleType.NO_SAMPLE and draft.sample_count == 0:
        failures.append("no_samples")

    reconciliation = reconcile_draft(draft, context.catalog)
    if reconciliation.blocks_advance:
        if reconciliation.declared_gb == 0:
            failures.append("declared_yield_missing")
        else:
            failures.append(f"yield_{reconciliation.status.value}:{reconciliation.difference_gb:g}")

    details = {
        "duplicates": duplicates,
        "sample_count": draft.sample_count,
        "reconciliation": {
            "status": reconciliation.status.value,
            "purchased_gb": reconciliation.purchased_gb,
            "declared_gb": reconciliation.declared_gb,
            "difference_gb": reconciliation.difference_gb,
            "message": reconciliation.describe(),
        },
        "balanced": reconciliation.status in {ReconciliationStatus.BALANCED, ReconciliationStatus.NOT_APPLICABLE},
    }
    return _result(step, failures, details)


def evaluate_step(draft: OrderDraft, step: WizardStep, context: GateContext) -> GateResult:
    step = WizardStep(step)
    if step == WizardStep.IDENTITY:
        return _check_identity(draft, context)
    if step == WizardStep.PROFILE:
        return _check_profile(draft, context)
    if step == WizardStep.ITEM_SELECTION:
        return _check_item_selection(draft, context)
    if step == WizardStep.SAMPLE_MANIFEST:
        return _check_sample_manifest(draft, context, step)
    result = _check_sample_manifest(draft, context, WizardStep.REVIEW)
    return GateResult(
        step=WizardStep.REVIEW,
        passed=result.passed,
        reason=result.reason,
        details={**result.details, "ready_to_submit": result.passed},
    )


def _enter_step(draft: OrderDraft, step: WizardStep, context: GateContext) -> tuple[OrderDraft, list[str]]:
    if step == WizardStep.ITEM_SELECTION:
        return materialize_service_items(draft, context.catalog), []
    if step == WizardStep.SAMPLE_MANIFEST:
        return prepare_manifest_step(draft, context.catalog)
    return draft.clone(), []


def advance(draft: OrderDraft, context: GateContext) -> Transition:
    """Move one step forward when the current step's gate passes.

    At REVIEW nothing moves; the result only reports whether the order is
    ready to be submitted.
    """
    if draft.locked:
        return locked_transition(draft)

    result = evaluate_step(draft, draft.current_step, context)
    if not result.passed or draft.current_step == WizardStep.REVIEW:
        return Transition(draft=draft, outcome=result)

    target = WizardStep(draft.current_step + 1)
    new, messages = _enter_step(draft, target, context)
    new.log_update("current_step", draft.current_step.value, target.value, f"advance:{draft.current_step.name.lower()}")
    new.current_step = target
    return Transition(
        draft=new,
        outcome=GateResult(
            step=result.step,
            passed=True,
            details=result.details,
            messages=tuple(messages),
        ),
    )


def retreat(draft: OrderDraft) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    if draft.current_step == WizardStep.IDENTITY:
        return Transition(draft=draft, outcome=GateResult(step=draft.current_step, passed=False, reason="at_first_step"))

    target = WizardStep(draft.current_step - 1)
    new = draft.clone()
    new.log_update("current_step", draft.current_step.value, target.value, "retreat")
    new.current_step = target
    return Transition(draft=new, outcome=GateResult(step=target, passed=True))
