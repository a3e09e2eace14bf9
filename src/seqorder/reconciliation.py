from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .catalog import CatalogIndex
from .state_schema import CategoryId, OrderDraft, SampleType, ServiceItem

YIELD_PRECISION = 6


class ReconciliationStatus(str, Enum):
    BALANCED = "balanced"
    UNDER = "under"
    OVER = "over"
    NOT_APPLICABLE = "not_applicable"


@dataclass(frozen=True, slots=True)
class ReconciliationResult:
    status: ReconciliationStatus
    purchased_gb: float
    declared_gb: float
    difference_gb: float = 0.0

    @property
    def blocks_advance(self) -> bool:
        return self.status in {ReconciliationStatus.UNDER, ReconciliationStatus.OVER}

    def describe(self) -> str:
        if self.status == ReconciliationStatus.NOT_APPLICABLE:
            return "No sequencing yield to reconcile."
        if self.status == ReconciliationStatus.BALANCED:
            return f"Declared {self.declared_gb:g} GB matches purchased {self.purchased_gb:g} GB."
        if self.declared_gb == 0:
            return f"Purchased {self.purchased_gb:g} GB; fill in the expected yield per sample."
        if self.status == ReconciliationStatus.UNDER:
            return f"Declared yield is {self.difference_gb:g} GB short of purchased {self.purchased_gb:g} GB."
        return f"Declared yield exceeds purchased {self.purchased_gb:g} GB by {self.difference_gb:g} GB."


def purchased_yield_gb(service_items: list[ServiceItem], catalog: CatalogIndex) -> float:
    total = 0.0
    for item in service_items:
        if item.category != CategoryId.SEQUENCING:
            continue
        for line in item.services:
            if not line.catalog_code or not line.quantity:
                continue
            total += catalog.yield_coefficient(line.catalog_code) * line.quantity
    return round(total, YIELD_PRECISION)


def declared_yield_gb(draft: OrderDraft) -> float:
    total = sum(float(row.expected_yield_gb or 0.0) for row in draft.primary_sheet)
    return round(total, YIELD_PRECISION)


def reconcile(purchased: float, declared: float, sample_type: SampleType) -> ReconciliationResult:
    purchased = round(purchased, YIELD_PRECISION)
    declared = round(declared, YIELD_PRECISION)
    if purchased == 0 or sample_type == SampleType.NO_SAMPLE:
        return ReconciliationResult(ReconciliationStatus.NOT_APPLICABLE, purchased, declared)
    if declared == purchased:
        return ReconciliationResult(ReconciliationStatus.BALANCED, purchased, declared)
    difference = round(abs(purchased - declared), YIELD_PRECISION)
    status = ReconciliationStatus.UNDER if declared < purchased else ReconciliationStatus.OVER
    return ReconciliationResult(status, purchased, declared, difference)


def reconcile_draft(draft: OrderDraft, catalog: CatalogIndex) -> ReconciliationResult:
    return reconcile(
        purchased_yield_gb(draft.service_items, catalog),
        declared_yield_gb(draft),
        draft.sample_type,
    )
