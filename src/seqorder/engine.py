from __future__ import annotations

import logging
import uuid
from dataclasses import asdict

from . import categories, directory, manifest, packages, sample_types, service_items
from .catalog import CatalogIndex
from .catalog_filter import ServiceCatalogFilter
from .contracts import CONTRACT_VERSIONS, validate_snapshot
from .directory import CustomerDirectory, SalesDirectory
from .extraction import classify
from .gates import GateContext, GateResult, advance, evaluate_step, retreat
from .packages import package_binding
from .pii_guard import redact_payload
from .reconciliation import declared_yield_gb, purchased_yield_gb, reconcile
from .submission import Submitter
from .state_schema import (
    CategoryId,
    ManifestTable,
    OrderDraft,
    Outcome,
    SampleType,
    Transition,
    WizardStep,
    locked_transition,
)
from .trace import build_transition_trace

logger = logging.getLogger(__name__)


def build_snapshot(draft: OrderDraft, catalog: CatalogIndex) -> dict:
    """JSON-ready copy of the draft with every derived value materialized."""
    binding = package_binding(draft, catalog)
    purchased = purchased_yield_gb(draft.service_items, catalog)
    declared = declared_yield_gb(draft)
    result = reconcile(purchased, declared, draft.sample_type)
    flags = ServiceCatalogFilter(catalog).flag_out_of_catalog(draft)

    service_rows = []
    for item in draft.service_items:
        lines = []
        for line in item.services:
            catalog_item = catalog.get(line.catalog_code) if line.catalog_code else None
            lines.append(
                {
                    "catalog_code": line.catalog_code,
                    "description": catalog_item.description if catalog_item else "",
                    "quantity": line.quantity,
                }
            )
        service_rows.append({"category": item.category.value, "label": item.category.label, "services": lines})

    return {
        "contract_version": CONTRACT_VERSIONS["snapshot_schema"],
        "session_id": draft.session_id,
        "order_id": draft.order_id,
        "locked": draft.locked,
        "current_step": draft.current_step.name.lower(),
        "profile": {
            "sales_code": draft.sales_code,
            "sales_person": draft.sales_person,
            "customer_code": draft.customer_code,
            "organization": draft.organization,
            "principal_investigator": draft.principal_investigator,
            "contact_person": draft.contact_person,
            "contact_phone": draft.contact_phone,
            "email": draft.email,
            "address": draft.address,
            "invoice_title": draft.invoice_title,
            "tax_id": draft.tax_id,
            "is_urgent": draft.is_urgent,
            "sample_return": draft.sample_return,
            "species": draft.species,
            "notes": draft.notes,
        },
        "selected_categories": [c.value for c in draft.ordered_categories],
        "active_package": (
            {"package_id": draft.active_package.package_id, "multiplier": draft.active_package.multiplier}
            if draft.active_package
            else None
        ),
        "package_binding": (
            {
                "source": binding.source,
                "sample_type": binding.sample_type.value if binding.sample_type else None,
                "yield_per_sample_gb": binding.yield_per_sample_gb,
                "sample_slots": binding.sample_slots,
            }
            if binding
            else None
        ),
        "service_items": service_rows,
        "extraction_type": classify(draft.service_items, catalog).value,
        "sample_type": draft.sample_type.value,
        "allowed_sample_types": [t.value for t in sample_types.allowed_for_draft(draft, catalog)],
        "sample_count": draft.sample_count,
        "purchased_yield_gb": purchased,
        "declared_yield_gb": declared,
        "reconciliation": {
            "status": result.status.value,
            "difference_gb": result.difference_gb,
            "message": result.describe(),
        },
        "flags": [{"category": f.category.value, "catalog_code": f.catalog_code, "reason": f.reason} for f in flags],
        "manifest": {
            "library_concentration_method": draft.library_manifest.concentration_method,
            "sample_concentration_method": draft.sample_manifest.concentration_method,
            ManifestTable.LIBRARY_SAMPLES.value: [asdict(r) for r in draft.library_manifest.sample_sheet],
            ManifestTable.LIBRARY_INDEXES.value: [asdict(r) for r in draft.library_manifest.library_sheet],
            ManifestTable.SAMPLES.value: [asdict(r) for r in draft.sample_manifest.sample_sheet],
        },
    }


def lock(draft: OrderDraft, order_id: str) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    new = draft.clone()
    new.log_update("order_id", draft.order_id, order_id, "submission_accepted")
    new.order_id = order_id
    new.locked = True
    return Transition(draft=new, outcome=Outcome(accepted=True, messages=(f"order_id:{order_id}",)))


class OrderSession:
    """Owns the current draft and swaps in the result of every transition."""

    def __init__(
        self,
        catalog: CatalogIndex,
        sales: SalesDirectory,
        customers: CustomerDirectory | None = None,
        submitter: Submitter | None = None,
        session_id: str | None = None,
    ):
        self.catalog = catalog
        self.sales = sales
        self.customers = customers or CustomerDirectory([])
        self.submitter = submitter
        self.context = GateContext(catalog=catalog, sales=sales)
        self._draft = OrderDraft(session_id=session_id or uuid.uuid4().hex)
        self.traces: list[dict] = []

    @property
    def draft(self) -> OrderDraft:
        return self._draft

    def _apply(self, action: str, transition: Transition):
        since = len(self._draft.value_updates)
        self._draft = manifest.recompute(transition.draft, self.catalog) if transition.accepted else transition.draft
        outcome = transition.outcome
        reason = getattr(outcome, "reason", None)
        self.traces.append(
            build_transition_trace(
                self._draft,
                action=action,
                accepted=transition.accepted,
                reason=reason,
                since=since,
            )
        )
        if not transition.accepted:
            logger.debug("%s rejected: %s", action, reason)
        return outcome

    # identity and profile
    def set_sales_code(self, code: str) -> Outcome:
        return self._apply("set_sales_code", directory.set_sales_code(self._draft, self.sales, code))

    def apply_customer_code(self, code: str) -> Outcome:
        return self._apply("apply_customer_code", directory.apply_customer_code(self._draft, self.customers, code))

    def update_profile(self, **values) -> Outcome:
        return self._apply("update_profile", directory.update_profile(self._draft, **values))

    # categories and packages
    def toggle(self, category: CategoryId):
        return self._apply("toggle", categories.toggle(self._draft, CategoryId(category)))

    def clear_categories(self) -> Outcome:
        return self._apply("clear_categories", categories.clear_categories(self._draft))

    def apply_package(self, package_id: str) -> Outcome:
        return self._apply("apply_package", packages.apply_package(self._draft, self.catalog, package_id))

    def clear_package(self) -> Outcome:
        return self._apply("clear_package", packages.clear_package(self._draft))

    def rescale(self, multiplier: int) -> Outcome:
        return self._apply("rescale", packages.rescale(self._draft, self.catalog, multiplier))

    # service items
    def set_service_line(self, category: CategoryId, index: int, catalog_code: str | None = None, quantity=None) -> Outcome:
        return self._apply(
            "set_service_line",
            service_items.set_service_line(self._draft, self.catalog, category, index, catalog_code, quantity),
        )

    def add_service_line(self, category: CategoryId) -> Outcome:
        return self._apply("add_service_line", service_items.add_service_line(self._draft, category))

    def remove_service_line(self, category: CategoryId, index: int) -> Outcome:
        return self._apply("remove_service_line", service_items.remove_service_line(self._draft, category, index))

    def legal_codes(self, category: CategoryId) -> list[str]:
        preset = packages.active_preset(self._draft, self.catalog)
        extraction_type = classify(self._draft.service_items, self.catalog)
        return ServiceCatalogFilter(self.catalog).legal_codes(CategoryId(category), extraction_type, preset)

    # samples
    def allowed_sample_types(self) -> list[SampleType]:
        return sample_types.allowed_for_draft(self._draft, self.catalog)

    def set_sample_type(self, sample_type: SampleType) -> Outcome:
        return self._apply("set_sample_type", sample_types.set_sample_type(self._draft, self.catalog, sample_type))

    def update_row(self, table: ManifestTable, index: int, field_name: str, value) -> Outcome:
        return self._apply(
            "update_row",
            manifest.update_row(self._draft, self.catalog, table, index, field_name, value),
        )

    def add_row(self, table: ManifestTable) -> Outcome:
        return self._apply("add_row", manifest.add_row(self._draft, self.catalog, table))

    def remove_row(self, table: ManifestTable, index: int) -> Outcome:
        return self._apply("remove_row", manifest.remove_row(self._draft, table, index))

    def clear_table(self, table: ManifestTable) -> Outcome:
        return self._apply("clear_table", manifest.clear_table(self._draft, self.catalog, table))

    def accept_imported_rows(self, table: ManifestTable, rows: list[dict], start_index: int = 0) -> Outcome:
        return self._apply(
            "accept_imported_rows",
            manifest.accept_imported_rows(self._draft, self.catalog, table, rows, start_index),
        )

    # navigation
    def evaluate(self, step: WizardStep | None = None) -> GateResult:
        return evaluate_step(self._draft, self._draft.current_step if step is None else step, self.context)

    def advance(self):
        return self._apply("advance", advance(self._draft, self.context))

    def retreat(self):
        return self._apply("retreat", retreat(self._draft))

    def snapshot(self) -> dict:
        return build_snapshot(self._draft, self.catalog)

    def submit(self) -> Outcome:
        """Hand the snapshot to the submitter and lock the draft on success."""
        if self._draft.locked:
            return self._apply("submit", locked_transition(self._draft))
        if self._draft.current_step != WizardStep.REVIEW:
            return self._apply(
                "submit",
                Transition(draft=self._draft, outcome=Outcome(accepted=False, reason="not_at_review")),
            )
        # earlier steps stay editable, so every gate must pass again here
        for step in WizardStep:
            gate = self.evaluate(step)
            if not gate.passed:
                return self._apply(
                    "submit",
                    Transition(
                        draft=self._draft,
                        outcome=Outcome(
                            accepted=False,
                            reason=gate.reason,
                            messages=tuple(gate.details.get("failures", ())),
                        ),
                    ),
                )
        if self.submitter is None:
            return self._apply(
                "submit",
                Transition(draft=self._draft, outcome=Outcome(accepted=False, reason="no_submitter")),
            )

        snapshot = self.snapshot()
        validation = validate_snapshot(snapshot)
        if not validation.is_valid:
            return self._apply(
                "submit",
                Transition(
                    draft=self._draft,
                    outcome=Outcome(accepted=False, reason="invalid_snapshot", messages=tuple(validation.errors)),
                ),
            )
        logger.info("Submitting order: %s", redact_payload(snapshot["profile"]))
        result = self.submitter.submit(snapshot)
        if not result.success:
            return self._apply(
                "submit",
                Transition(
                    draft=self._draft,
                    outcome=Outcome(accepted=False, reason="submission_failed", messages=(result.error,)),
                ),
            )
        return self._apply("submit", lock(self._draft, result.order_id))
