from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .state_schema import CategoryId, SampleType


# Selecting the key forces every category in the value on; the value members
# cannot be turned off while the key stays selected.
CATEGORY_DEPENDENCIES: dict[CategoryId, tuple[CategoryId, ...]] = {
    CategoryId.EXTRACTION_QC: (CategoryId.LIBRARY, CategoryId.SEQUENCING),
    CategoryId.LIBRARY: (CategoryId.SEQUENCING,),
}

EXCLUSIVE_CATEGORY = CategoryId.PACKAGE

# Only these categories accept more than one service line.
MULTI_LINE_CATEGORIES = frozenset({CategoryId.ANALYSIS})


class MatchKind(str, Enum):
    CODE_PREFIX = "code_prefix"
    LABEL_CONTAINS = "label_contains"
    LABEL_CONTAINS_CASELESS = "label_contains_caseless"


@dataclass(frozen=True, slots=True)
class MatchRule:
    kind: MatchKind
    token: str

    def matches(self, code: str, label: str) -> bool:
        if self.kind == MatchKind.CODE_PREFIX:
            return code.startswith(self.token)
        if self.kind == MatchKind.LABEL_CONTAINS:
            return self.token in label
        return self.token.lower() in label.lower()


EXTRACTION_PATTERNS: dict[str, tuple[MatchRule, ...]] = {
    "dna": (
        MatchRule(MatchKind.CODE_PREFIX, "Q-ED"),
        MatchRule(MatchKind.LABEL_CONTAINS, "cfDNA"),
    ),
    "rna": (
        MatchRule(MatchKind.CODE_PREFIX, "Q-ER"),
        MatchRule(MatchKind.LABEL_CONTAINS, "cfRNA"),
    ),
}


@dataclass(frozen=True, slots=True)
class NarrowingRule:
    """Marks catalog items of one category as RNA-oriented for extraction-type narrowing."""
    name: str
    category: CategoryId
    rna_marker: MatchRule


# Library matches on the code prefix while Analysis matches a keyword in the
# label. Both are kept distinct on purpose; see DESIGN.md open questions.
NARROWING_RULES: dict[CategoryId, NarrowingRule] = {
    CategoryId.LIBRARY: NarrowingRule(
        name="library_prefix",
        category=CategoryId.LIBRARY,
        rna_marker=MatchRule(MatchKind.CODE_PREFIX, "L-RN"),
    ),
    CategoryId.ANALYSIS: NarrowingRule(
        name="analysis_keyword",
        category=CategoryId.ANALYSIS,
        rna_marker=MatchRule(MatchKind.LABEL_CONTAINS_CASELESS, "rna"),
    ),
}


@dataclass(frozen=True, slots=True)
class QuantityConstraint:
    catalog_code: str
    minimum: int
    unit: str = "unit"


QUANTITY_CONSTRAINTS: dict[str, QuantityConstraint] = {
    "S-G000": QuantityConstraint(catalog_code="S-G000", minimum=5, unit="GB"),
}


# Extraction/QC implies raw specimens, Library implies purified nucleic acid,
# Sequencing alone implies a finished library.
SAMPLE_TYPE_POLICY: tuple[tuple[CategoryId, frozenset[CategoryId], tuple[SampleType, ...], str], ...] = (
    (
        CategoryId.EXTRACTION_QC,
        frozenset(),
        (SampleType.CELL, SampleType.BLOOD, SampleType.OTHER),
        "Extraction/QC selected: send raw specimens (cell, blood or other).",
    ),
    (
        CategoryId.LIBRARY,
        frozenset({CategoryId.EXTRACTION_QC}),
        (SampleType.DNA, SampleType.RNA),
        "Library selected: send purified DNA or RNA.",
    ),
    (
        CategoryId.SEQUENCING,
        frozenset({CategoryId.EXTRACTION_QC, CategoryId.LIBRARY}),
        (SampleType.LIBRARY,),
        "Sequencing only: send finished libraries.",
    ),
)


SAMPLE_NAME_PLACEHOLDERS = ("Sample_Name",)
SAMPLE_NAME_PLACEHOLDER_PREFIX = "Sample_Nam"


# (code, category, description, yield GB per unit)
DEFAULT_CATALOG_ROWS: tuple[tuple[str, CategoryId, str, float | None], ...] = (
    ("Q-QC01", CategoryId.QC, "DNA QC", None),
    ("Q-QC02", CategoryId.QC, "DNA QC (PacBio)", None),
    ("Q-QC03", CategoryId.QC, "RNA QC", None),
    ("Q-QC04", CategoryId.QC, "RNA QC (PacBio)", None),
    ("Q-QC05", CategoryId.QC, "Library QC", None),
    ("Q-QC06", CategoryId.QC, "Library QC (PacBio)", None),
    ("Q-ED01", CategoryId.EXTRACTION_QC, "DNA extraction + QC - blood, buffy coat", None),
    ("Q-ED02", CategoryId.EXTRACTION_QC, "DNA extraction + QC - cells", None),
    ("Q-ED03", CategoryId.EXTRACTION_QC, "DNA extraction + QC - tissue", None),
    ("Q-ED04", CategoryId.EXTRACTION_QC, "DNA extraction + QC - FFPE", None),
    ("Q-ED05", CategoryId.EXTRACTION_QC, "DNA extraction + QC - serum/plasma cfDNA", None),
    ("Q-ER01A", CategoryId.EXTRACTION_QC, "RNA extraction + QC - blood (Tempus tube)", None),
    ("Q-ER01B", CategoryId.EXTRACTION_QC, "RNA extraction + QC - blood (PAXgene tube)", None),
    ("Q-ER02", CategoryId.EXTRACTION_QC, "RNA extraction + QC - cells", None),
    ("Q-ER03", CategoryId.EXTRACTION_QC, "RNA extraction + QC - tissue", None),
    ("Q-ER04", CategoryId.EXTRACTION_QC, "RNA extraction + QC - FFPE", None),
    ("Q-ER05", CategoryId.EXTRACTION_QC, "RNA extraction + QC - serum/plasma cfRNA", None),
    ("L-TA01", CategoryId.LIBRARY, "TAF accredited WGS, Illumina DNA PCR-Free Prep (human DNA)", None),
    ("L-TA02", CategoryId.LIBRARY, "TAF accredited WES, Illumina DNA Prep with Enrichment (human DNA)", None),
    ("L-WE01", CategoryId.LIBRARY, "WES - Roche KAPA HyperPlus V1", None),
    ("L-WE03", CategoryId.LIBRARY, "WES - Roche KAPA HyperPlus V2", None),
    ("L-WE04", CategoryId.LIBRARY, "WES - Roche KAPA EvoPlus V2", None),
    ("L-WE06", CategoryId.LIBRARY, "WES - QIAGEN QIAseq Human Exome Kit", None),
    ("L-WG01", CategoryId.LIBRARY, "WGS - Illumina DNA PCR-Free Prep", None),
    ("L-WG02", CategoryId.LIBRARY, "WMS - Illumina DNA Prep", None),
    ("L-WG03", CategoryId.LIBRARY, "WGS - Roche KAPA EvoPrep", None),
    ("L-WG04", CategoryId.LIBRARY, "WGBS - IDT xGen Methyl-Seq Library Prep", None),
    ("L-TS03", CategoryId.LIBRARY, "TSO500 - Illumina TSO500 ctDNA v2", None),
    ("L-RN01", CategoryId.LIBRARY, "RNAseq - Illumina Stranded mRNA", None),
    ("L-RN02", CategoryId.LIBRARY, "RNAseq - Illumina Stranded Total RNA Prep, Ribo-Zero Plus", None),
    ("L-RN03", CategoryId.LIBRARY, "RNAseq - Illumina RNA Prep with Enrichment", None),
    ("L-RN04", CategoryId.LIBRARY, "RNAseq - Roche KAPA mRNA HyperPrep", None),
    ("L-RN06", CategoryId.LIBRARY, "RNAseq - Takara SMART-Seq Stranded", None),
    ("L-RN08", CategoryId.LIBRARY, "RNAseq - QIAGEN QIAseq miRNA Library Kit", None),
    ("L-PB06", CategoryId.LIBRARY, "PacBio CCS, Full Length 16S rRNA 8K Reads, 96 plex", None),
    ("S-0000", CategoryId.SEQUENCING, "No sequencing", None),
    ("S-G000", CategoryId.SEQUENCING, "NGS - sequencing volume purchase (per GB)", 1.0),
    ("S-LN01", CategoryId.SEQUENCING, "NGS - NovaSeq 6000 S4, per lane", 600.0),
    ("S-LN02", CategoryId.SEQUENCING, "NGS - NovaSeq X Plus 10B, per lane", 350.0),
    ("S-LN03", CategoryId.SEQUENCING, "NGS - NovaSeq X Plus 25B, per lane", 1000.0),
    ("S-FC01", CategoryId.SEQUENCING, "NGS - NovaSeq 6000 SP, per run", None),
    ("S-FC02", CategoryId.SEQUENCING, "NGS - NovaSeq X Plus 1.5B (100 cycle), per run", None),
    ("S-OS01", CategoryId.SEQUENCING, "Long read - PacBio Sequel IIe, per SMRT cell", None),
    ("A101", CategoryId.ANALYSIS, "1st - No analysis", None),
    ("A102", CategoryId.ANALYSIS, "1st - Fastq", None),
    ("A104", CategoryId.ANALYSIS, "1st - UMI", None),
    ("A202", CategoryId.ANALYSIS, "2nd - DRAGEN-Germline-XP", None),
    ("A203", CategoryId.ANALYSIS, "2nd - DRAGEN-Somatic-XP", None),
    ("A204", CategoryId.ANALYSIS, "2nd - RNAseq-Basic", None),
    ("A205", CategoryId.ANALYSIS, "2nd - RNAseq-Advanced", None),
    ("A208", CategoryId.ANALYSIS, "2nd - miRNA", None),
    ("A212", CategoryId.ANALYSIS, "2nd - scRNAseq-Standard", None),
    ("A217", CategoryId.ANALYSIS, "2nd - ServiceHour", None),
    ("A305", CategoryId.ANALYSIS, "3rd - Annotation-Germline", None),
    ("A307", CategoryId.ANALYSIS, "3rd - Annotation-Somatic", None),
    ("AP-WGS01", CategoryId.PACKAGE, "WGS bundle 1: extraction + QC + library + sequencing", None),
    ("AP-WGS02", CategoryId.PACKAGE, "WGS bundle 2: bundle 1 + germline analysis", None),
    ("AP-WES01", CategoryId.PACKAGE, "WES bundle 1: extraction + QC + library + sequencing", None),
    ("AP-RNA01", CategoryId.PACKAGE, "RNAseq-Basic bundle: extraction + library + sequencing + analysis", None),
)

# bundled package item -> (bound sample type, fixed yield GB per sample)
DEFAULT_BUNDLE_BINDINGS: dict[str, tuple[SampleType | None, float | None]] = {
    "AP-WGS01": (SampleType.BLOOD, 90.0),
    "AP-WGS02": (SampleType.BLOOD, 90.0),
    "AP-WES01": (SampleType.DNA, 12.0),
    "AP-RNA01": (SampleType.CELL, 6.0),
}


# package id -> preset definition
DEFAULT_PACKAGE_PRESETS: dict[str, dict] = {
    "WGS-30X": {
        "name": "Human WGS 30x from blood",
        "categories": [
            CategoryId.EXTRACTION_QC,
            CategoryId.LIBRARY,
            CategoryId.SEQUENCING,
            CategoryId.ANALYSIS,
        ],
        "default_services": [
            (CategoryId.EXTRACTION_QC, "Q-ED01", 1, False),
            (CategoryId.LIBRARY, "L-WG01", 1, False),
            (CategoryId.SEQUENCING, "S-G000", 90, False),
            (CategoryId.ANALYSIS, "A202", 1, False),
            (CategoryId.ANALYSIS, "A217", 1, True),
        ],
        "recommended_sample_type": SampleType.BLOOD,
        "yield_per_sample_gb": 90.0,
        "service_filters": {
            CategoryId.LIBRARY: ["L-WG01", "L-WG03", "L-TA01"],
        },
    },
    "WES-100X": {
        "name": "Human WES 100x from DNA",
        "categories": [CategoryId.LIBRARY, CategoryId.SEQUENCING, CategoryId.ANALYSIS],
        "default_services": [
            (CategoryId.LIBRARY, "L-WE03", 1, False),
            (CategoryId.SEQUENCING, "S-G000", 12, False),
            (CategoryId.ANALYSIS, "A202", 1, False),
        ],
        "recommended_sample_type": SampleType.DNA,
        "yield_per_sample_gb": 12.0,
        "service_filters": {
            CategoryId.LIBRARY: ["L-WE01", "L-WE03", "L-WE04", "L-WE06", "L-TA02"],
        },
    },
    "RNASEQ-STD": {
        "name": "mRNA-seq from cells",
        "categories": [
            CategoryId.EXTRACTION_QC,
            CategoryId.LIBRARY,
            CategoryId.SEQUENCING,
            CategoryId.ANALYSIS,
        ],
        "default_services": [
            (CategoryId.EXTRACTION_QC, "Q-ER02", 1, False),
            (CategoryId.LIBRARY, "L-RN01", 1, False),
            (CategoryId.SEQUENCING, "S-G000", 6, False),
            (CategoryId.ANALYSIS, "A204", 1, True),
        ],
        "recommended_sample_type": SampleType.CELL,
        "yield_per_sample_gb": None,
        "service_filters": {
            CategoryId.LIBRARY: ["L-RN01", "L-RN04"],
            CategoryId.ANALYSIS: [],
        },
    },
    "BUNDLE-WGS": {
        "name": "WGS bundle 1",
        "categories": [CategoryId.PACKAGE],
        "default_services": [
            (CategoryId.PACKAGE, "AP-WGS01", 1, False),
        ],
        "recommended_sample_type": None,
        "yield_per_sample_gb": None,
        "service_filters": {
            CategoryId.PACKAGE: ["AP-WGS01", "AP-WGS02"],
        },
    },
}
