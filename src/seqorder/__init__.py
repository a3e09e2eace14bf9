"""Order configuration engine for sequencing service order forms."""

from .catalog import CatalogError, CatalogIndex, CatalogItem, DefaultService, PackageBinding, PackagePreset
from .catalog_filter import SelectionFlag, ServiceCatalogFilter
from .categories import ToggleOutcome, clear_categories, toggle
from .contracts import CONTRACT_VERSIONS, ContractValidationResult, validate_contract_freeze, validate_snapshot
from .directory import CustomerDirectory, CustomerRecord, SalesDirectory
from .engine import OrderSession, build_snapshot
from .extraction import classify
from .gates import GateContext, GateResult, advance, evaluate_step, retreat
from .ingestion import ContractError, IngestionReport, SheetContract
from .loaders import load_catalog, load_customer_directory, load_sales_directory
from .packages import apply_package, clear_package, materialize_service_items, package_binding, rescale
from .readiness import ReadinessGateResult, ReadinessReport, run_readiness_review
from .reconciliation import ReconciliationResult, ReconciliationStatus, reconcile
from .runtime import RuntimeAssets, build_session_from_config, build_session_from_excels
from .sample_types import allowed_sample_types, restriction_rationale
from .state_schema import (
    CategoryId,
    ExtractionType,
    ManifestTable,
    OrderDraft,
    Outcome,
    SampleType,
    Transition,
    WizardStep,
)
from .submission import JsonFileSubmitter, SubmissionResult

__all__ = [
    "CategoryId",
    "ExtractionType",
    "ManifestTable",
    "OrderDraft",
    "Outcome",
    "SampleType",
    "Transition",
    "WizardStep",
    "CatalogError",
    "CatalogIndex",
    "CatalogItem",
    "DefaultService",
    "PackageBinding",
    "PackagePreset",
    "SelectionFlag",
    "ServiceCatalogFilter",
    "ToggleOutcome",
    "toggle",
    "clear_categories",
    "classify",
    "allowed_sample_types",
    "restriction_rationale",
    "apply_package",
    "clear_package",
    "materialize_service_items",
    "package_binding",
    "rescale",
    "ReconciliationResult",
    "ReconciliationStatus",
    "reconcile",
    "GateContext",
    "GateResult",
    "advance",
    "evaluate_step",
    "retreat",
    "SalesDirectory",
    "CustomerDirectory",
    "CustomerRecord",
    "OrderSession",
    "build_snapshot",
    "JsonFileSubmitter",
    "SubmissionResult",
    "load_catalog",
    "load_sales_directory",
    "load_customer_directory",
    "RuntimeAssets",
    "build_session_from_config",
    "build_session_from_excels",
    "CONTRACT_VERSIONS",
    "ContractValidationResult",
    "validate_contract_freeze",
    "validate_snapshot",
    "ContractError",
    "IngestionReport",
    "SheetContract",
    "ReadinessGateResult",
    "ReadinessReport",
    "run_readiness_review",
]
