import tempfile
import unittest
from pathlib import Path

from openpyxl import Workbook

from src.seqorder.ingestion import (
    ContractError,
    SheetContract,
    convert_workbook_to_records,
    parse_manifest_sheet,
    parse_manifest_workbook,
    parse_pasted_rows,
    validate_sheet_headers,
)
from src.seqorder.state_schema import ManifestTable, SampleType


def _write_workbook(sheets: dict[str, list[list[object]]]) -> Path:
    tmp = tempfile.NamedTemporaryFile(suffix=".xlsx", delete=False)
    tmp.close()
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    wb.save(tmp.name)
    return Path(tmp.name)


class TestIngestionContracts(unittest.TestCase):
    contract = SheetContract(
        sheet_name="Catalog",
        required_columns=("code", "category", "description"),
        required_non_empty_columns=("code", "category"),
    )

    def _records(self, path: Path) -> list[dict]:
        return convert_workbook_to_records(
            path,
            self.contract.sheet_name,
            required_columns=self.contract.required_columns,
            required_non_empty_columns=self.contract.required_non_empty_columns,
        )

    def test_ingests_valid_sheet(self):
        path = _write_workbook(
            {
                "Catalog": [
                    ["Code", "Category", "Description"],
                    ["Q-QC01", "Q", "DNA QC"],
                    [None, None, None],
                ]
            }
        )
        records = self._records(path)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["code"], "Q-QC01")

    def test_headers_checked_without_reading_rows(self):
        path = _write_workbook({"Catalog": [["Description", "Category", "Code"]]})
        self.assertEqual(validate_sheet_headers(path, self.contract), {"description": 0, "category": 1, "code": 2})

    def test_fails_on_empty_required_cell(self):
        path = _write_workbook({"Catalog": [["code", "category", "description"], ["Q-QC01", "", "DNA QC"]]})
        with self.assertRaises(ContractError):
            self._records(path)

    def test_fails_on_duplicate_headers(self):
        path = _write_workbook({"Catalog": [["code", "Code", "category"], ["Q-QC01", "x", "Q"]]})
        with self.assertRaises(ContractError):
            self._records(path)

    def test_fails_on_missing_sheet(self):
        path = _write_workbook({"Other": [["code"]]})
        with self.assertRaisesRegex(ContractError, "Missing sheet: Catalog"):
            self._records(path)


class TestManifestWorkbooks(unittest.TestCase):
    def test_sample_sheet_with_sequence_column(self):
        path = _write_workbook(
            {
                "Samples": [
                    ["Sample manifest"],
                    ["No", "Sample_Name", "Tube", "Yield (GB)", "Conc", "Vol"],
                    [1, "Sample_Name", "T0", 10, 50, 20],
                    [1, "Blood 01", "T1", 30.0, 55.5, 20],
                    [2, "Blood_02", "T2", 30, "", ""],
                    [None, None, None, None, None, None],
                    [3, "", "T3", 5, "", ""],
                ]
            }
        )
        rows, report = parse_manifest_sheet(path, ManifestTable.SAMPLES)
        self.assertEqual([r["sample_name"] for r in rows], ["Blood01", "Blood_02"])
        self.assertEqual(rows[0]["tube_label"], "T1")
        self.assertEqual(rows[0]["expected_yield_gb"], "30")
        self.assertEqual(rows[0]["concentration"], "55.5")
        self.assertEqual(report.records_parsed, 2)
        self.assertEqual(report.records_skipped, 1)

    def test_sample_sheet_without_sequence_column(self):
        path = _write_workbook(
            {
                "Samples": [
                    ["title"],
                    ["Sample_Name", "Tube", "Yield"],
                    ["Sample_Nam", "", ""],
                    ["S1", "T1", 12],
                ]
            }
        )
        rows, _ = parse_manifest_sheet(path, ManifestTable.SAMPLES)
        self.assertEqual(rows[0]["sample_name"], "S1")
        self.assertEqual(rows[0]["expected_yield_gb"], "12")

    def test_library_workbook_reads_both_sheets(self):
        path = _write_workbook(
            {
                "Libraries": [
                    ["Sample_Name", "Tube", "Conc", "Vol", "NGS conc", "Yield"],
                    ["Sample_Name", "", "", "", "", ""],
                    ["L1", "T1", 10, 20, 3.2, 50],
                ],
                "Indexes": [
                    ["Sample_Name", "Kit", "Adapter", "Well", "i7", "i5", "Note", "Library"],
                    ["Sample_Name", "", "", "", "", "", "", ""],
                    ["L1", "KAPA", "UDI", "A01", "ACGTACGT", "TGCATGCA", "", "pool1"],
                ],
            }
        )
        parsed = parse_manifest_workbook(path, SampleType.LIBRARY)
        samples = parsed[ManifestTable.LIBRARY_SAMPLES]
        indexes = parsed[ManifestTable.LIBRARY_INDEXES]
        self.assertEqual(samples[0]["ngs_concentration"], "3.2")
        self.assertEqual(samples[0]["expected_yield_gb"], "50")
        self.assertEqual(indexes[0]["well_position"], "A01")
        self.assertEqual(indexes[0]["index2_seq"], "TGCATGCA")
        self.assertEqual(indexes[0]["library"], "pool1")

    def test_library_workbook_without_index_sheet(self):
        path = _write_workbook({"Libraries": [["h"], ["Sample_Name"], ["L1"]]})
        parsed = parse_manifest_workbook(path, SampleType.LIBRARY)
        self.assertEqual(parsed[ManifestTable.LIBRARY_INDEXES], [])

    def test_no_sample_orders_have_no_manifest(self):
        path = _write_workbook({"Samples": [["x"]]})
        with self.assertRaises(ContractError):
            parse_manifest_workbook(path, SampleType.NO_SAMPLE)

    def test_missing_sheet_position(self):
        path = _write_workbook({"Samples": [["x"]]})
        with self.assertRaises(ContractError):
            parse_manifest_sheet(path, ManifestTable.LIBRARY_INDEXES, 1)


class TestPastedRows(unittest.TestCase):
    def test_tab_delimited_lines(self):
        text = "1\tS 1\tT1\t5\n\nSample_Name\tx\t1\n2\tS2\tT2\n"
        rows = parse_pasted_rows(text, ManifestTable.SAMPLES)
        self.assertEqual([r["sample_name"] for r in rows], ["S1", "S2"])
        self.assertEqual(rows[0]["expected_yield_gb"], "5")
        self.assertEqual(rows[1]["expected_yield_gb"], "")

    def test_empty_text(self):
        self.assertEqual(parse_pasted_rows("", ManifestTable.SAMPLES), [])


if __name__ == "__main__":
    unittest.main()
