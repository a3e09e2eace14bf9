from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class CategoryId(str, Enum):
    QC = "qc"
    EXTRACTION_QC = "extraction_qc"
    LIBRARY = "library"
    SEQUENCING = "sequencing"
    ANALYSIS = "analysis"
    PACKAGE = "package"

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]


CATEGORY_LABELS = {
    CategoryId.QC: "QC (Q)",
    CategoryId.EXTRACTION_QC: "Extraction/QC (EQ)",
    CategoryId.LIBRARY: "Library (L)",
    CategoryId.SEQUENCING: "Sequencing (S)",
    CategoryId.ANALYSIS: "Analysis (A)",
    CategoryId.PACKAGE: "Package (AP)",
}

CANONICAL_CATEGORY_ORDER = (
    CategoryId.QC,
    CategoryId.EXTRACTION_QC,
    CategoryId.LIBRARY,
    CategoryId.SEQUENCING,
    CategoryId.ANALYSIS,
    CategoryId.PACKAGE,
)


class SampleType(str, Enum):
    NO_SAMPLE = "no_sample"
    LIBRARY = "library"
    DNA = "dna"
    RNA = "rna"
    CELL = "cell"
    BLOOD = "blood"
    OTHER = "other"


ALL_SAMPLE_TYPES = tuple(SampleType)


class ExtractionType(str, Enum):
    NONE = "none"
    DNA = "dna"
    RNA = "rna"
    MIXED = "mixed"


class WizardStep(int, Enum):
    IDENTITY = 0
    PROFILE = 1
    ITEM_SELECTION = 2
    SAMPLE_MANIFEST = 3
    REVIEW = 4


class ManifestTable(str, Enum):
    LIBRARY_SAMPLES = "library_samples"
    LIBRARY_INDEXES = "library_indexes"
    SAMPLES = "samples"


@dataclass(slots=True)
class ServiceLine:
    catalog_code: str = ""
    quantity: int | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.catalog_code) and bool(self.quantity)


@dataclass(slots=True)
class ServiceItem:
    category: CategoryId
    services: list[ServiceLine] = field(default_factory=lambda: [ServiceLine()])

    def chosen_codes(self) -> list[str]:
        return [s.catalog_code for s in self.services if s.catalog_code]


@dataclass(slots=True)
class ActivePackage:
    package_id: str
    multiplier: int = 1


@dataclass(slots=True)
class SampleRow:
    """One physical sample. Used by both the library and the sample manifests."""
    sample_name: str = ""
    tube_label: str = ""
    concentration: str = ""
    volume: str = ""
    expected_yield_gb: float = 0.0
    note: str = ""
    ngs_concentration: str = ""
    ratio_260_280: str = ""
    ratio_260_230: str = ""
    dqn_rqn: str = ""


@dataclass(slots=True)
class LibraryRow:
    """One indexed library in the second table of a library manifest."""
    sample_name: str = ""
    library_prep_kit: str = ""
    index_adapter_kit: str = ""
    well_position: str = ""
    index1_seq: str = ""
    index2_seq: str = ""
    library: str = ""
    note: str = ""


@dataclass(slots=True)
class LibraryManifest:
    sample_sheet: list[SampleRow] = field(default_factory=lambda: [SampleRow()])
    library_sheet: list[LibraryRow] = field(default_factory=lambda: [LibraryRow()])
    concentration_method: str = ""


@dataclass(slots=True)
class SampleManifest:
    sample_sheet: list[SampleRow] = field(default_factory=lambda: [SampleRow()])
    concentration_method: str = ""


@dataclass(slots=True)
class OrderDraft:
    session_id: str
    current_step: WizardStep = WizardStep.IDENTITY
    locked: bool = False
    order_id: str = ""

    # identity and profile
    sales_code: str = ""
    sales_person: str = ""
    customer_code: str = ""
    organization: str = ""
    principal_investigator: str = ""
    contact_person: str = ""
    contact_phone: str = ""
    email: str = ""
    address: str = ""
    invoice_title: str = ""
    tax_id: str = ""
    is_urgent: bool = False
    sample_return: bool = False
    species: str = ""
    notes: str = ""

    # configuration
    selected_categories: set[CategoryId] = field(default_factory=set)
    service_items: list[ServiceItem] = field(default_factory=list)
    active_package: ActivePackage | None = None

    # samples
    sample_type: SampleType = SampleType.NO_SAMPLE
    library_manifest: LibraryManifest = field(default_factory=LibraryManifest)
    sample_manifest: SampleManifest = field(default_factory=SampleManifest)

    variables_used: list[str] = field(default_factory=list)
    value_updates: list[dict[str, Any]] = field(default_factory=list)

    def clone(self) -> "OrderDraft":
        return copy.deepcopy(self)

    @property
    def ordered_categories(self) -> list[CategoryId]:
        return [c for c in CANONICAL_CATEGORY_ORDER if c in self.selected_categories]

    @property
    def primary_sheet(self) -> list[SampleRow]:
        """Sample table whose rows count as samples for the current sample type."""
        if self.sample_type == SampleType.NO_SAMPLE:
            return []
        if self.sample_type == SampleType.LIBRARY:
            return self.library_manifest.sample_sheet
        return self.sample_manifest.sample_sheet

    @property
    def sample_count(self) -> int:
        return sum(1 for row in self.primary_sheet if row.sample_name.strip())

    def service_item(self, category: CategoryId) -> ServiceItem | None:
        for item in self.service_items:
            if item.category == category:
                return item
        return None

    def table_rows(self, table: ManifestTable) -> list:
        if table == ManifestTable.LIBRARY_SAMPLES:
            return self.library_manifest.sample_sheet
        if table == ManifestTable.LIBRARY_INDEXES:
            return self.library_manifest.library_sheet
        return self.sample_manifest.sample_sheet

    def log_update(self, variable: str, old_value: Any, new_value: Any, reason: str) -> None:
        self.variables_used.append(variable)
        self.value_updates.append(
            {
                "variable": variable,
                "old_value": old_value,
                "new_value": new_value,
                "reason": reason,
            }
        )


@dataclass(frozen=True, slots=True)
class Outcome:
    accepted: bool
    reason: str | None = None
    messages: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Transition:
    """Result of a pure draft operation: the (possibly unchanged) draft plus what happened."""
    draft: OrderDraft
    outcome: Any

    @property
    def accepted(self) -> bool:
        return bool(getattr(self.outcome, "accepted", getattr(self.outcome, "passed", False)))


LOCKED_REASON = "locked"


def locked_transition(draft: OrderDraft) -> Transition:
    return Transition(draft=draft, outcome=Outcome(accepted=False, reason=LOCKED_REASON))
