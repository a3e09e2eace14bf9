import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from openpyxl import load_workbook

from src.seqorder.catalog import CatalogIndex
from src.seqorder.contracts import validate_snapshot
from src.seqorder.directory import CustomerDirectory, CustomerRecord, SalesDirectory
from src.seqorder.engine import OrderSession
from src.seqorder.export import export_order_workbook
from src.seqorder.state_schema import CategoryId, ManifestTable, SampleType, WizardStep
from src.seqorder.submission import JsonFileSubmitter, SubmissionResult


class _FailingSubmitter:
    def __init__(self):
        self.calls = 0

    def submit(self, snapshot: dict) -> SubmissionResult:
        self.calls += 1
        return SubmissionResult(success=False, error="backend unavailable")


class TestOrderSessionFlow(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.orders_dir = Path(self.tmp.name)
        self.session = OrderSession(
            catalog=CatalogIndex.default(),
            sales=SalesDirectory({"S01": "Alice"}),
            customers=CustomerDirectory(
                [CustomerRecord(code="C01", organization="Genome Lab", contact_person="Bob", email="bob@lab.org")]
            ),
            submitter=JsonFileSubmitter(self.orders_dir, prefix="TEST", clock=lambda: 1700000000.0),
            session_id="flow",
        )

    def tearDown(self):
        self.tmp.cleanup()

    def _walk_to_review(self):
        s = self.session
        self.assertTrue(s.set_sales_code("s01").accepted)
        self.assertTrue(s.advance().accepted)
        self.assertTrue(s.apply_customer_code("c01").accepted)
        self.assertTrue(s.apply_package("WGS-30X").accepted)
        self.assertTrue(s.advance().accepted)
        self.assertEqual(s.draft.current_step, WizardStep.ITEM_SELECTION)

        self.assertTrue(s.rescale(2).accepted)
        self.assertTrue(s.advance().accepted)
        self.assertEqual(s.draft.current_step, WizardStep.SAMPLE_MANIFEST)
        self.assertEqual(len(s.draft.sample_manifest.sample_sheet), 2)

        self.assertTrue(s.update_row(ManifestTable.SAMPLES, 0, "sample_name", "Blood 1").accepted)
        self.assertTrue(s.update_row(ManifestTable.SAMPLES, 1, "sample_name", "Blood2").accepted)
        self.assertTrue(s.advance().accepted)
        self.assertEqual(s.draft.current_step, WizardStep.REVIEW)

    def test_package_order_end_to_end(self):
        self._walk_to_review()
        s = self.session
        self.assertEqual(s.draft.sales_person, "Alice")
        self.assertEqual(s.draft.organization, "Genome Lab")
        self.assertEqual(s.draft.sample_type, SampleType.BLOOD)
        self.assertEqual(s.draft.sample_count, 2)

        seq = s.draft.service_item(CategoryId.SEQUENCING).services[0]
        self.assertEqual((seq.catalog_code, seq.quantity), ("S-G000", 180))

        locked_yield = s.update_row(ManifestTable.SAMPLES, 0, "expected_yield_gb", 1)
        self.assertEqual(locked_yield.reason, "yield_locked_by_package")

        review = s.advance()
        self.assertTrue(review.details["ready_to_submit"])

        result = s.submit()
        self.assertTrue(result.accepted)
        self.assertTrue(s.draft.locked)
        self.assertEqual(s.draft.order_id, "TEST-1700000000000")

        written = json.loads((self.orders_dir / "TEST-1700000000000.json").read_text(encoding="utf-8"))
        self.assertEqual(written["order_id"], "TEST-1700000000000")
        self.assertEqual(written["purchased_yield_gb"], 180.0)
        self.assertEqual(written["declared_yield_gb"], 180.0)

    def test_locked_session_rejects_everything(self):
        self._walk_to_review()
        self.session.submit()
        for outcome in (
            self.session.toggle(CategoryId.QC),
            self.session.retreat(),
            self.session.advance(),
            self.session.update_row(ManifestTable.SAMPLES, 0, "sample_name", "X"),
            self.session.submit(),
        ):
            self.assertEqual(outcome.reason, "locked")
        self.assertEqual(self.session.draft.sample_manifest.sample_sheet[0].sample_name, "Blood1")

    def test_failed_submission_stays_unlocked(self):
        self._walk_to_review()
        failing = _FailingSubmitter()
        self.session.submitter = failing
        out = self.session.submit()
        self.assertFalse(out.accepted)
        self.assertEqual(out.reason, "submission_failed")
        self.assertEqual(out.messages, ("backend unavailable",))
        self.assertFalse(self.session.draft.locked)

        self.session.submitter = JsonFileSubmitter(self.orders_dir, prefix="TEST", clock=lambda: 1.0)
        self.assertTrue(self.session.submit().accepted)
        self.assertEqual(failing.calls, 1)

    def test_submit_requires_review_step(self):
        self.assertEqual(self.session.submit().reason, "not_at_review")

    def test_snapshot_is_json_and_detached(self):
        self._walk_to_review()
        snapshot = self.session.snapshot()
        json.dumps(snapshot)
        self.assertTrue(validate_snapshot(snapshot).is_valid)
        self.assertEqual(snapshot["selected_categories"], ["extraction_qc", "library", "sequencing", "analysis"])
        self.assertEqual(snapshot["extraction_type"], "dna")
        self.assertEqual(snapshot["reconciliation"]["status"], "balanced")
        self.assertEqual(snapshot["package_binding"]["sample_slots"], 2)

        snapshot["manifest"]["samples"][0]["sample_name"] = "changed"
        self.assertEqual(self.session.draft.sample_manifest.sample_sheet[0].sample_name, "Blood1")

    def test_export_after_submission(self):
        self._walk_to_review()
        with self.assertRaises(ValueError):
            export_order_workbook(self.session.snapshot(), self.orders_dir / "early.xlsx")

        self.session.submit()
        path = export_order_workbook(self.session.snapshot(), self.orders_dir / "order.xlsx")
        wb = load_workbook(path)
        self.assertEqual(wb.sheetnames, ["Order", "Samples", "Libraries"])
        self.assertEqual(wb["Samples"].max_row, 3)
        self.assertEqual(wb["Samples"]["B2"].value, "Blood1")

    def test_traces_follow_audit_log(self):
        self.session.set_sales_code("S01")
        self.session.toggle(CategoryId.LIBRARY)
        trace = self.session.traces[-1]
        self.assertEqual(trace["action"], "toggle")
        self.assertTrue(trace["accepted"])
        self.assertEqual(trace["variables_used"], ["selected_categories"])

        self.session.toggle(CategoryId.SEQUENCING)
        blocked = self.session.traces[-1]
        self.assertFalse(blocked["accepted"])
        self.assertEqual(blocked["reason"], "required_by:library")
        self.assertEqual(blocked["value_updates"], [])

    def test_dna_extraction_narrows_library_codes(self):
        s = self.session
        s.set_sales_code("S01")
        s.advance()
        s.update_profile(organization="Lab", contact_person="Bob", email="bob@lab.org")
        s.toggle(CategoryId.EXTRACTION_QC)
        self.assertTrue(s.advance().accepted)
        self.assertTrue(s.set_service_line(CategoryId.EXTRACTION_QC, 0, "Q-ED02", 1).accepted)
        codes = s.legal_codes(CategoryId.LIBRARY)
        self.assertTrue(codes)
        self.assertFalse(any(c.startswith("L-RN") for c in codes))

    def test_category_added_at_review_blocks_submit(self):
        self._walk_to_review()
        self.assertTrue(self.session.toggle(CategoryId.QC).accepted)
        out = self.session.submit()
        self.assertFalse(out.accepted)
        self.assertEqual(out.reason, "missing_items:qc")
        self.assertIn("missing_items:qc", out.messages)
        self.assertFalse(self.session.draft.locked)
        self.assertEqual(list(self.orders_dir.iterdir()), [])

    def test_incompatible_extraction_at_review_blocks_submit(self):
        self._walk_to_review()
        self.assertTrue(self.session.set_service_line(CategoryId.EXTRACTION_QC, 0, "Q-ER02").accepted)
        self.assertFalse(self.session.evaluate(WizardStep.ITEM_SELECTION).passed)
        out = self.session.submit()
        self.assertFalse(out.accepted)
        self.assertEqual(out.reason, "extraction_mismatch:library_prefix:L-WG01")
        self.assertFalse(self.session.draft.locked)

        self.assertTrue(self.session.set_service_line(CategoryId.EXTRACTION_QC, 0, "Q-ED01").accepted)
        self.assertTrue(self.session.submit().accepted)

    def test_invalid_snapshot_is_not_submitted(self):
        self._walk_to_review()
        failing = _FailingSubmitter()
        self.session.submitter = failing
        with patch("src.seqorder.engine.build_snapshot", return_value={"contract_version": "v0", "profile": {}}):
            out = self.session.submit()
        self.assertFalse(out.accepted)
        self.assertEqual(out.reason, "invalid_snapshot")
        self.assertIn("snapshot_version_mismatch:v0", out.messages)
        self.assertEqual(failing.calls, 0)
        self.assertFalse(self.session.draft.locked)

    def test_rejected_transition_keeps_its_audit_entries(self):
        out = self.session.set_sales_code("zz9")
        self.assertFalse(out.accepted)
        self.assertEqual(out.reason, "unknown_sales_code")
        trace = self.session.traces[-1]
        self.assertFalse(trace["accepted"])
        self.assertEqual(trace["variables_used"], ["sales_code"])
        self.assertEqual(self.session.draft.sales_code, "ZZ9")


class TestJsonFileSubmitter(unittest.TestCase):
    def test_order_ids_do_not_collide(self):
        with tempfile.TemporaryDirectory() as tmp:
            submitter = JsonFileSubmitter(tmp, prefix="TGIA", clock=lambda: 1.5)
            first = submitter.submit({"a": 1})
            second = submitter.submit({"a": 2})
            self.assertEqual(first.order_id, "TGIA-1500")
            self.assertEqual(second.order_id, "TGIA-1500-1")
            self.assertTrue((Path(tmp) / "TGIA-1500-1.json").exists())

    def test_unserializable_snapshot_fails_cleanly(self):
        with tempfile.TemporaryDirectory() as tmp:
            result = JsonFileSubmitter(tmp).submit({"bad": object()})
            self.assertFalse(result.success)
            self.assertIn("TypeError", result.error)


if __name__ == "__main__":
    unittest.main()
