from __future__ import annotations

from .catalog import CatalogIndex
from .policy_tables import EXTRACTION_PATTERNS
from .state_schema import CategoryId, ExtractionType, ServiceItem


def _label(code: str, catalog: CatalogIndex | None) -> str:
    if catalog is not None:
        item = catalog.get(code)
        if item is not None:
            return item.label
    return code


def classify(service_items: list[ServiceItem], catalog: CatalogIndex | None = None) -> ExtractionType:
    """Specimen chemistry implied by the chosen Extraction/QC codes.

    Recomputed on every call; nothing is cached on the draft.
    """
    eq_item = next((i for i in service_items if i.category == CategoryId.EXTRACTION_QC), None)
    if eq_item is None:
        return ExtractionType.NONE

    has_dna = False
    has_rna = False
    for code in eq_item.chosen_codes():
        label = _label(code, catalog)
        if any(rule.matches(code, label) for rule in EXTRACTION_PATTERNS["dna"]):
            has_dna = True
        if any(rule.matches(code, label) for rule in EXTRACTION_PATTERNS["rna"]):
            has_rna = True

    if has_dna and has_rna:
        return ExtractionType.MIXED
    if has_dna:
        return ExtractionType.DNA
    if has_rna:
        return ExtractionType.RNA
    return ExtractionType.NONE
