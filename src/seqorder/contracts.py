from __future__ import annotations

from dataclasses import dataclass

from .state_schema import CategoryId, OrderDraft, SampleType, WizardStep


CONTRACT_VERSIONS = {
    "draft_schema": "v1",
    "snapshot_schema": "v1",
    "catalog_workbook": "v1",
    "manifest_layout": "v1",
}


REQUIRED_DRAFT_FIELDS = {
    "session_id",
    "current_step",
    "locked",
    "order_id",
    "sales_code",
    "sales_person",
    "customer_code",
    "organization",
    "principal_investigator",
    "contact_person",
    "contact_phone",
    "email",
    "address",
    "invoice_title",
    "tax_id",
    "is_urgent",
    "sample_return",
    "species",
    "notes",
    "selected_categories",
    "service_items",
    "active_package",
    "sample_type",
    "library_manifest",
    "sample_manifest",
    "variables_used",
    "value_updates",
}


REQUIRED_SNAPSHOT_KEYS = {
    "contract_version",
    "session_id",
    "order_id",
    "locked",
    "current_step",
    "profile",
    "selected_categories",
    "active_package",
    "service_items",
    "extraction_type",
    "sample_type",
    "allowed_sample_types",
    "sample_count",
    "purchased_yield_gb",
    "declared_yield_gb",
    "reconciliation",
    "flags",
    "manifest",
}


EXPECTED_CATEGORIES = {"qc", "extraction_qc", "library", "sequencing", "analysis", "package"}

EXPECTED_SAMPLE_TYPES = {"no_sample", "library", "dna", "rna", "cell", "blood", "other"}

EXPECTED_STEPS = {0, 1, 2, 3, 4}


@dataclass(frozen=True, slots=True)
class ContractValidationResult:
    is_valid: bool
    errors: list[str]


def validate_contract_freeze() -> ContractValidationResult:
    errors: list[str] = []

    if set(CONTRACT_VERSIONS.keys()) != {
        "draft_schema",
        "snapshot_schema",
        "catalog_workbook",
        "manifest_layout",
    }:
        errors.append("contract_versions_missing_required_keys")

    current_fields = set(OrderDraft.__dataclass_fields__.keys())
    missing = REQUIRED_DRAFT_FIELDS.difference(current_fields)
    if missing:
        errors.append(f"missing_draft_fields:{sorted(missing)}")

    unexpected = current_fields.difference(REQUIRED_DRAFT_FIELDS)
    if unexpected:
        errors.append(f"unexpected_draft_fields:{sorted(unexpected)}")

    if EXPECTED_CATEGORIES != {c.value for c in CategoryId}:
        errors.append("categories_changed")

    if EXPECTED_SAMPLE_TYPES != {s.value for s in SampleType}:
        errors.append("sample_types_changed")

    if EXPECTED_STEPS != {s.value for s in WizardStep}:
        errors.append("wizard_steps_changed")

    return ContractValidationResult(is_valid=not errors, errors=errors)


def validate_snapshot(snapshot: dict) -> ContractValidationResult:
    errors: list[str] = []
    missing = REQUIRED_SNAPSHOT_KEYS.difference(snapshot)
    if missing:
        errors.append(f"missing_snapshot_keys:{sorted(missing)}")
    if snapshot.get("contract_version") != CONTRACT_VERSIONS["snapshot_schema"]:
        errors.append(f"snapshot_version_mismatch:{snapshot.get('contract_version')}")
    return ContractValidationResult(is_valid=not errors, errors=errors)
