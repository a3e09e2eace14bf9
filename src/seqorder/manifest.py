from __future__ import annotations

import re
from dataclasses import fields

from .catalog import CatalogIndex
from .packages import ResolvedBinding, package_binding
from .policy_tables import SAMPLE_NAME_PLACEHOLDER_PREFIX, SAMPLE_NAME_PLACEHOLDERS
from .sample_types import allowed_for_draft
from .state_schema import (
    LibraryRow,
    ManifestTable,
    OrderDraft,
    Outcome,
    SampleRow,
    SampleType,
    Transition,
    locked_transition,
)

_SAMPLE_NAME_RE = re.compile(r"[^A-Za-z0-9_,-]")

_SAMPLE_FIELDS = {f.name for f in fields(SampleRow)}
_LIBRARY_FIELDS = {f.name for f in fields(LibraryRow)}

YIELD_FIELD = "expected_yield_gb"


def sanitize_sample_name(name: object) -> str:
    if name is None:
        return ""
    return _SAMPLE_NAME_RE.sub("", str(name))


def is_placeholder(name: str) -> bool:
    return name in SAMPLE_NAME_PLACEHOLDERS or name.startswith(SAMPLE_NAME_PLACEHOLDER_PREFIX)


def parse_yield(value: object) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(str(value).strip())
    except ValueError:
        return 0.0


def duplicate_names(rows: list) -> list[str]:
    """Names seen more than once, in order of first repetition. Blank names are ignored."""
    seen: set[str] = set()
    dupes: list[str] = []
    for row in rows:
        name = row.sample_name.strip()
        if not name:
            continue
        if name in seen and name not in dupes:
            dupes.append(name)
        seen.add(name)
    return dupes


def _new_row(table: ManifestTable):
    return LibraryRow() if table == ManifestTable.LIBRARY_INDEXES else SampleRow()


def _row_fields(table: ManifestTable) -> set[str]:
    return _LIBRARY_FIELDS if table == ManifestTable.LIBRARY_INDEXES else _SAMPLE_FIELDS


def _stamp_fixed_yield(draft: OrderDraft, binding: ResolvedBinding | None) -> None:
    if binding is None or binding.yield_per_sample_gb is None:
        return
    for row in draft.library_manifest.sample_sheet + draft.sample_manifest.sample_sheet:
        row.expected_yield_gb = float(binding.yield_per_sample_gb)


def recompute(draft: OrderDraft, catalog: CatalogIndex) -> OrderDraft:
    """Re-derive package-owned manifest values on a copy of ``draft``."""
    new = draft.clone()
    _stamp_fixed_yield(new, package_binding(new, catalog))
    return new


def _coerce(field_name: str, value: object):
    if field_name == "sample_name":
        return sanitize_sample_name(value)
    if field_name == YIELD_FIELD:
        return parse_yield(value)
    return "" if value is None else str(value)


def update_row(
    draft: OrderDraft,
    catalog: CatalogIndex,
    table: ManifestTable,
    index: int,
    field_name: str,
    value: object,
) -> Transition:
    if draft.locked:
        return locked_transition(draft)

    table = ManifestTable(table)
    if field_name not in _row_fields(table):
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason=f"unknown_field:{field_name}"))

    rows = draft.table_rows(table)
    if not 0 <= index < len(rows):
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="row_out_of_range"))

    binding = package_binding(draft, catalog)
    if field_name == YIELD_FIELD and binding is not None and binding.yield_per_sample_gb is not None:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="yield_locked_by_package"))

    new = draft.clone()
    row = new.table_rows(table)[index]
    old = getattr(row, field_name)
    setattr(row, field_name, _coerce(field_name, value))
    new.log_update(f"{table.value}[{index}].{field_name}", old, getattr(row, field_name), "update_row")
    _stamp_fixed_yield(new, binding)
    return Transition(draft=new, outcome=Outcome(accepted=True))


def add_row(draft: OrderDraft, catalog: CatalogIndex, table: ManifestTable) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    table = ManifestTable(table)
    new = draft.clone()
    rows = new.table_rows(table)
    rows.append(_new_row(table))
    new.log_update(f"{table.value}.rows", len(rows) - 1, len(rows), "add_row")
    _stamp_fixed_yield(new, package_binding(new, catalog))
    return Transition(draft=new, outcome=Outcome(accepted=True))


def remove_row(draft: OrderDraft, table: ManifestTable, index: int) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    table = ManifestTable(table)
    rows = draft.table_rows(table)
    if len(rows) <= 1:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="last_row"))
    if not 0 <= index < len(rows):
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="row_out_of_range"))

    new = draft.clone()
    new_rows = new.table_rows(table)
    del new_rows[index]
    new.log_update(f"{table.value}.rows", len(rows), len(new_rows), "remove_row")
    return Transition(draft=new, outcome=Outcome(accepted=True))


def clear_table(draft: OrderDraft, catalog: CatalogIndex, table: ManifestTable) -> Transition:
    if draft.locked:
        return locked_transition(draft)
    table = ManifestTable(table)
    new = draft.clone()
    rows = new.table_rows(table)
    old_len = len(rows)
    rows[:] = [_new_row(table)]
    new.log_update(f"{table.value}.rows", old_len, 1, "clear_table")
    _stamp_fixed_yield(new, package_binding(new, catalog))
    return Transition(draft=new, outcome=Outcome(accepted=True))


def accept_imported_rows(
    draft: OrderDraft,
    catalog: CatalogIndex,
    table: ManifestTable,
    rows: list[dict],
    start_index: int = 0,
) -> Transition:
    """Merge candidate rows into ``table`` starting at ``start_index``.

    Existing rows at the target positions are overwritten, the rest are appended.
    Rows without a usable sample name are dropped.
    """
    if draft.locked:
        return locked_transition(draft)

    table = ManifestTable(table)
    allowed = _row_fields(table)
    new = draft.clone()
    target = new.table_rows(table)
    start_index = max(0, min(int(start_index), len(target)))

    accepted = 0
    skipped = 0
    for candidate in rows:
        name = sanitize_sample_name(candidate.get("sample_name"))
        if not name.strip() or is_placeholder(name):
            skipped += 1
            continue

        row = _new_row(table)
        for key, value in candidate.items():
            if key in allowed:
                setattr(row, key, _coerce(key, value))

        position = start_index + accepted
        if position < len(target):
            target[position] = row
        else:
            target.append(row)
        accepted += 1

    if accepted == 0:
        return Transition(draft=draft, outcome=Outcome(accepted=False, reason="no_importable_rows"))

    new.log_update(f"{table.value}.rows", len(draft.table_rows(table)), len(target), f"import:{accepted}")
    _stamp_fixed_yield(new, package_binding(new, catalog))
    return Transition(
        draft=new,
        outcome=Outcome(accepted=True, messages=(f"imported:{accepted}", f"skipped:{skipped}")),
    )


def prepare_manifest_step(draft: OrderDraft, catalog: CatalogIndex) -> tuple[OrderDraft, list[str]]:
    """Apply package bindings or default the sample type when the manifest step is entered."""
    new = draft.clone()
    messages: list[str] = []
    binding = package_binding(new, catalog)

    if binding is not None and binding.sample_type is not None and new.sample_type != binding.sample_type:
        new.log_update("sample_type", new.sample_type.value, binding.sample_type.value, binding.source)
        new.sample_type = binding.sample_type
        messages.append(f"sample_type_bound:{binding.sample_type.value}")

    allowed = allowed_for_draft(new, catalog)
    if new.sample_type not in allowed:
        new.log_update("sample_type", new.sample_type.value, allowed[0].value, "sample_type_default")
        new.sample_type = allowed[0]
        messages.append(f"sample_type_defaulted:{allowed[0].value}")

    has_slots = binding is not None and binding.sample_slots and binding.yield_per_sample_gb is not None
    if has_slots and new.sample_type != SampleType.NO_SAMPLE:
        sheet = new.primary_sheet
        slots = binding.sample_slots
        old_len = len(sheet)
        # only trailing blank rows may be dropped; named rows always survive
        while len(sheet) > slots and not sheet[-1].sample_name.strip():
            sheet.pop()
        sheet.extend(SampleRow() for _ in range(slots - len(sheet)))
        if len(sheet) != old_len:
            new.log_update("primary_sheet.rows", old_len, len(sheet), binding.source)
        if len(sheet) > old_len:
            messages.append(f"sample_rows_created:{len(sheet) - old_len}")
        elif len(sheet) < old_len:
            messages.append(f"sample_rows_trimmed:{old_len - len(sheet)}")
        if len(sheet) > slots:
            messages.append(f"sample_rows_exceed_slots:{len(sheet) - slots}")

    _stamp_fixed_yield(new, binding)
    return new, messages


def manifest_tables(sample_type: SampleType) -> list[ManifestTable]:
    if sample_type == SampleType.LIBRARY:
        return [ManifestTable.LIBRARY_SAMPLES, ManifestTable.LIBRARY_INDEXES]
    if sample_type == SampleType.NO_SAMPLE:
        return []
    return [ManifestTable.SAMPLES]
