import unittest

from src.seqorder.catalog import CatalogIndex
from src.seqorder.contracts import CONTRACT_VERSIONS, validate_contract_freeze, validate_snapshot
from src.seqorder.engine import build_snapshot
from src.seqorder.state_schema import OrderDraft


class TestContractsFreeze(unittest.TestCase):
    def test_contract_versions_are_frozen(self):
        self.assertEqual(
            CONTRACT_VERSIONS,
            {
                "draft_schema": "v1",
                "snapshot_schema": "v1",
                "catalog_workbook": "v1",
                "manifest_layout": "v1",
            },
        )

    def test_contract_validation_passes(self):
        result = validate_contract_freeze()
        self.assertTrue(result.is_valid)
        self.assertEqual(result.errors, [])


class TestSnapshotContract(unittest.TestCase):
    def test_fresh_draft_snapshot_is_valid(self):
        snapshot = build_snapshot(OrderDraft(session_id="c"), CatalogIndex.default())
        self.assertTrue(validate_snapshot(snapshot).is_valid)
        self.assertEqual(snapshot["current_step"], "identity")
        self.assertEqual(snapshot["reconciliation"]["status"], "not_applicable")

    def test_missing_keys_and_version_reported(self):
        result = validate_snapshot({"contract_version": "v0"})
        self.assertFalse(result.is_valid)
        self.assertTrue(result.errors[0].startswith("missing_snapshot_keys:"))
        self.assertEqual(result.errors[1], "snapshot_version_mismatch:v0")


if __name__ == "__main__":
    unittest.main()
