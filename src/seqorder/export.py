from __future__ import annotations

import logging
from pathlib import Path

from openpyxl import Workbook

from .state_schema import ManifestTable

logger = logging.getLogger(__name__)

ORDER_SHEET = "Order"
SAMPLES_SHEET = "Samples"
LIBRARIES_SHEET = "Libraries"

SAMPLE_COLUMNS = (
    "sample_name",
    "tube_label",
    "concentration",
    "volume",
    "expected_yield_gb",
    "ngs_concentration",
    "ratio_260_280",
    "ratio_260_230",
    "dqn_rqn",
    "note",
)

LIBRARY_COLUMNS = (
    "sample_name",
    "library_prep_kit",
    "index_adapter_kit",
    "well_position",
    "index1_seq",
    "index2_seq",
    "library",
    "note",
)


def _sample_rows(snapshot: dict) -> list[dict]:
    sheets = snapshot["manifest"]
    if snapshot["sample_type"] == "library":
        rows = sheets[ManifestTable.LIBRARY_SAMPLES.value]
    elif snapshot["sample_type"] == "no_sample":
        rows = []
    else:
        rows = sheets[ManifestTable.SAMPLES.value]
    return [r for r in rows if str(r.get("sample_name", "")).strip()]


def _write_table(ws, columns: tuple[str, ...], rows: list[dict]) -> None:
    ws.append(["no", *columns])
    for idx, row in enumerate(rows, start=1):
        ws.append([idx, *(row.get(c, "") for c in columns)])


def export_order_workbook(snapshot: dict, output_path: Path | str) -> Path:
    """Render a submitted order into Order / Samples / Libraries sheets."""
    if not snapshot.get("locked"):
        raise ValueError("Only submitted (locked) orders can be exported")

    wb = Workbook()
    ws = wb.active
    ws.title = ORDER_SHEET
    ws.append(["field", "value"])
    ws.append(["order_id", snapshot["order_id"]])
    for key, value in snapshot["profile"].items():
        ws.append([key, value])
    ws.append(["sample_type", snapshot["sample_type"]])
    ws.append(["sample_count", snapshot["sample_count"]])
    ws.append(["purchased_yield_gb", snapshot["purchased_yield_gb"]])
    ws.append(["declared_yield_gb", snapshot["declared_yield_gb"]])
    if snapshot.get("active_package"):
        ws.append(["package", snapshot["active_package"]["package_id"]])
        ws.append(["package_multiplier", snapshot["active_package"]["multiplier"]])
    ws.append([])
    ws.append(["category", "catalog_code", "description", "quantity"])
    for item in snapshot["service_items"]:
        for line in item["services"]:
            if line["catalog_code"]:
                ws.append([item["label"], line["catalog_code"], line["description"], line["quantity"]])

    _write_table(wb.create_sheet(SAMPLES_SHEET), SAMPLE_COLUMNS, _sample_rows(snapshot))

    library_rows = []
    if snapshot["sample_type"] == "library":
        library_rows = [
            r for r in snapshot["manifest"][ManifestTable.LIBRARY_INDEXES.value] if str(r.get("sample_name", "")).strip()
        ]
    _write_table(wb.create_sheet(LIBRARIES_SHEET), LIBRARY_COLUMNS, library_rows)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info("Exported order %s to %s", snapshot["order_id"], output_path)
    return output_path
