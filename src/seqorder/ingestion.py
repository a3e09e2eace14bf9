from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from openpyxl import load_workbook

from .manifest import is_placeholder, sanitize_sample_name
from .state_schema import ManifestTable, SampleType


@dataclass(frozen=True, slots=True)
class SheetContract:
    sheet_name: str
    required_columns: tuple[str, ...]
    required_non_empty_columns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class IngestionReport:
    sheet_name: str
    records_parsed: int
    records_skipped: int = 0


class ContractError(ValueError):
    pass


def _normalize(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def _sheet_header_index(sheet_headers: Iterable[object]) -> dict[str, int]:
    seen: dict[str, int] = {}
    for index, header in enumerate(sheet_headers):
        key = _normalize(header)
        if not key:
            continue
        if key in seen:
            raise ContractError(f"Duplicate header detected: {header}")
        seen[key] = index
    return seen


def validate_sheet_headers(workbook_path: Path | str, contract: SheetContract) -> dict[str, int]:
    wb = load_workbook(workbook_path, read_only=True, data_only=True)
    if contract.sheet_name not in wb.sheetnames:
        raise ContractError(f"Missing sheet: {contract.sheet_name}")

    ws = wb[contract.sheet_name]
    header_cells = next(ws.iter_rows(min_row=1, max_row=1, values_only=True), ())
    header_map = _sheet_header_index(header_cells)

    missing = [col for col in contract.required_columns if _normalize(col) not in header_map]
    if missing:
        raise ContractError(
            f"Sheet '{contract.sheet_name}' is missing required columns: {', '.join(missing)}"
        )
    return header_map


def convert_workbook_to_records(
    workbook_path: Path | str,
    sheet_name: str,
    required_columns: Iterable[str],
    required_non_empty_columns: Iterable[str] = (),
    optional_columns: Iterable[str] = (),
) -> list[dict]:
    contract = SheetContract(
        sheet_name=sheet_name,
        required_columns=tuple(required_columns),
        required_non_empty_columns=tuple(required_non_empty_columns),
    )
    normalized_to_index = validate_sheet_headers(workbook_path, contract)
    optional = [c for c in optional_columns if _normalize(c) in normalized_to_index]

    wb = load_workbook(workbook_path, read_only=True, data_only=True)
    ws = wb[sheet_name]

    out: list[dict] = []
    for row_num, row in enumerate(ws.iter_rows(min_row=2, values_only=True), start=2):
        record = {}
        is_empty = True
        for col in contract.required_columns + tuple(optional):
            idx = normalized_to_index[_normalize(col)]
            value = row[idx] if idx < len(row) else None
            if value not in (None, ""):
                is_empty = False
            record[col] = value

        if is_empty:
            continue

        for col in contract.required_non_empty_columns:
            value = record.get(col)
            if value in (None, ""):
                raise ContractError(
                    f"Sheet '{sheet_name}' row {row_num} has empty required value for column '{col}'"
                )

        out.append(record)

    if not out:
        raise ContractError(f"Sheet '{sheet_name}' contains no valid records")
    return out


# Manifest templates are positional: a title/header block, one example row,
# then data. An optional sequence-number column may precede Sample_Name.
@dataclass(frozen=True, slots=True)
class ManifestLayout:
    table: ManifestTable
    columns: tuple[str, ...]
    leading_rows: int


MANIFEST_LAYOUTS: dict[ManifestTable, ManifestLayout] = {
    ManifestTable.LIBRARY_SAMPLES: ManifestLayout(
        table=ManifestTable.LIBRARY_SAMPLES,
        columns=(
            "sample_name",
            "tube_label",
            "concentration",
            "volume",
            "ngs_concentration",
            "expected_yield_gb",
            "note",
        ),
        leading_rows=2,
    ),
    ManifestTable.LIBRARY_INDEXES: ManifestLayout(
        table=ManifestTable.LIBRARY_INDEXES,
        columns=(
            "sample_name",
            "library_prep_kit",
            "index_adapter_kit",
            "well_position",
            "index1_seq",
            "index2_seq",
            "note",
            "library",
        ),
        leading_rows=2,
    ),
    ManifestTable.SAMPLES: ManifestLayout(
        table=ManifestTable.SAMPLES,
        columns=(
            "sample_name",
            "tube_label",
            "expected_yield_gb",
            "concentration",
            "volume",
            "ratio_260_280",
            "ratio_260_230",
            "dqn_rqn",
            "note",
        ),
        leading_rows=3,
    ),
}

_DIGITS_RE = re.compile(r"^\d+$")


def _is_sequence_number(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    return isinstance(value, str) and bool(_DIGITS_RE.match(value.strip()))


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def row_to_candidate(values: list[object], layout: ManifestLayout) -> dict | None:
    """Map positional cells onto manifest fields. Returns None for placeholder or nameless rows."""
    start = 1 if values and _is_sequence_number(values[0]) else 0
    cells = list(values[start:])
    record = {}
    for offset, column in enumerate(layout.columns):
        record[column] = _cell_text(cells[offset]) if offset < len(cells) else ""

    name = sanitize_sample_name(record["sample_name"])
    if not name or is_placeholder(name):
        return None
    record["sample_name"] = name
    return record


def parse_manifest_sheet(
    workbook_path: Path | str,
    table: ManifestTable,
    sheet: str | int = 0,
) -> tuple[list[dict], IngestionReport]:
    layout = MANIFEST_LAYOUTS[ManifestTable(table)]
    wb = load_workbook(workbook_path, read_only=True, data_only=True)
    if isinstance(sheet, int):
        if sheet >= len(wb.sheetnames):
            raise ContractError(f"Workbook has no sheet at position {sheet} for {layout.table.value}")
        sheet_name = wb.sheetnames[sheet]
    else:
        if sheet not in wb.sheetnames:
            raise ContractError(f"Missing sheet: {sheet}")
        sheet_name = sheet

    ws = wb[sheet_name]
    rows: list[dict] = []
    skipped = 0
    for row in ws.iter_rows(min_row=layout.leading_rows + 1, values_only=True):
        values = list(row)
        if sum(1 for v in values if v not in (None, "")) == 0:
            continue
        candidate = row_to_candidate(values, layout)
        if candidate is None:
            skipped += 1
            continue
        rows.append(candidate)

    return rows, IngestionReport(sheet_name=sheet_name, records_parsed=len(rows), records_skipped=skipped)


def parse_manifest_workbook(workbook_path: Path | str, sample_type: SampleType) -> dict[ManifestTable, list[dict]]:
    """Library workbooks carry the sample sheet first and the index sheet second; other types use one sheet."""
    sample_type = SampleType(sample_type)
    if sample_type == SampleType.NO_SAMPLE:
        raise ContractError("No manifest is collected for orders without samples")

    if sample_type == SampleType.LIBRARY:
        samples, _ = parse_manifest_sheet(workbook_path, ManifestTable.LIBRARY_SAMPLES, 0)
        wb = load_workbook(workbook_path, read_only=True)
        indexes: list[dict] = []
        if len(wb.sheetnames) > 1:
            indexes, _ = parse_manifest_sheet(workbook_path, ManifestTable.LIBRARY_INDEXES, 1)
        return {ManifestTable.LIBRARY_SAMPLES: samples, ManifestTable.LIBRARY_INDEXES: indexes}

    samples, _ = parse_manifest_sheet(workbook_path, ManifestTable.SAMPLES, 0)
    return {ManifestTable.SAMPLES: samples}


def parse_pasted_rows(text: str, table: ManifestTable) -> list[dict]:
    """Tab-delimited clipboard text, one manifest row per line."""
    layout = MANIFEST_LAYOUTS[ManifestTable(table)]
    out: list[dict] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        candidate = row_to_candidate(line.split("\t"), layout)
        if candidate is not None:
            out.append(candidate)
    return out
