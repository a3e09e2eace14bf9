import unittest

from src.seqorder.catalog import CatalogIndex
from src.seqorder.manifest import (
    accept_imported_rows,
    add_row,
    clear_table,
    duplicate_names,
    prepare_manifest_step,
    remove_row,
    sanitize_sample_name,
    update_row,
)
from src.seqorder.state_schema import (
    ActivePackage,
    CategoryId,
    ManifestTable,
    OrderDraft,
    SampleRow,
    SampleType,
    ServiceItem,
    ServiceLine,
)


class TestSampleNames(unittest.TestCase):
    def test_sanitize_keeps_allowed_characters(self):
        self.assertEqual(sanitize_sample_name("Sample 1#α"), "Sample1")
        self.assertEqual(sanitize_sample_name("a_b-c,d"), "a_b-c,d")
        self.assertEqual(sanitize_sample_name(None), "")

    def test_duplicates_reported_once(self):
        rows = [SampleRow("A"), SampleRow("B"), SampleRow("A"), SampleRow("A"), SampleRow(""), SampleRow("")]
        self.assertEqual(duplicate_names(rows), ["A"])
        self.assertEqual(duplicate_names([SampleRow("A"), SampleRow("B"), SampleRow("C")]), [])


class TestManifestEdits(unittest.TestCase):
    def setUp(self):
        self.catalog = CatalogIndex.default()
        self.draft = OrderDraft(session_id="m", sample_type=SampleType.DNA)

    def _expected_count(self, draft):
        return sum(1 for r in draft.sample_manifest.sample_sheet if r.sample_name.strip())

    def test_sample_count_tracks_every_edit(self):
        draft = self.draft
        self.assertEqual(draft.sample_count, 0)

        steps = [
            lambda d: update_row(d, self.catalog, ManifestTable.SAMPLES, 0, "sample_name", "S1"),
            lambda d: add_row(d, self.catalog, ManifestTable.SAMPLES),
            lambda d: add_row(d, self.catalog, ManifestTable.SAMPLES),
            lambda d: update_row(d, self.catalog, ManifestTable.SAMPLES, 2, "sample_name", "S3"),
            lambda d: update_row(d, self.catalog, ManifestTable.SAMPLES, 1, "sample_name", "   "),
            lambda d: remove_row(d, ManifestTable.SAMPLES, 0),
        ]
        for step in steps:
            draft = step(draft).draft
            self.assertEqual(draft.sample_count, self._expected_count(draft))
        self.assertEqual(draft.sample_count, 1)

    def test_update_row_sanitizes_and_parses(self):
        draft = update_row(self.draft, self.catalog, ManifestTable.SAMPLES, 0, "sample_name", "my sample!").draft
        draft = update_row(draft, self.catalog, ManifestTable.SAMPLES, 0, "expected_yield_gb", "12.5").draft
        row = draft.sample_manifest.sample_sheet[0]
        self.assertEqual(row.sample_name, "mysample")
        self.assertEqual(row.expected_yield_gb, 12.5)
        self.assertEqual(self.draft.sample_manifest.sample_sheet[0].sample_name, "", "input draft unchanged")

    def test_update_row_rejections(self):
        self.assertEqual(
            update_row(self.draft, self.catalog, ManifestTable.SAMPLES, 5, "sample_name", "x").outcome.reason,
            "row_out_of_range",
        )
        self.assertEqual(
            update_row(self.draft, self.catalog, ManifestTable.SAMPLES, 0, "index1_seq", "x").outcome.reason,
            "unknown_field:index1_seq",
        )

    def test_last_row_cannot_be_removed(self):
        out = remove_row(self.draft, ManifestTable.SAMPLES, 0)
        self.assertFalse(out.accepted)
        self.assertEqual(out.outcome.reason, "last_row")

    def test_clear_table_leaves_one_blank_row(self):
        draft = self.draft.clone()
        draft.sample_manifest.sample_sheet = [SampleRow("A"), SampleRow("B")]
        cleared = clear_table(draft, self.catalog, ManifestTable.SAMPLES).draft
        self.assertEqual(cleared.sample_manifest.sample_sheet, [SampleRow()])

    def test_package_yield_is_locked(self):
        draft = self.draft.clone()
        draft.active_package = ActivePackage("WGS-30X")
        draft.selected_categories = {
            CategoryId.EXTRACTION_QC,
            CategoryId.LIBRARY,
            CategoryId.SEQUENCING,
            CategoryId.ANALYSIS,
        }
        draft.sample_type = SampleType.BLOOD
        out = update_row(draft, self.catalog, ManifestTable.SAMPLES, 0, "expected_yield_gb", "5")
        self.assertFalse(out.accepted)
        self.assertEqual(out.outcome.reason, "yield_locked_by_package")

        added = add_row(draft, self.catalog, ManifestTable.SAMPLES).draft
        self.assertEqual([r.expected_yield_gb for r in added.sample_manifest.sample_sheet], [90.0, 90.0])


class TestImportMerge(unittest.TestCase):
    def setUp(self):
        self.catalog = CatalogIndex.default()
        self.draft = OrderDraft(session_id="i", sample_type=SampleType.DNA)

    def test_placeholders_and_blank_names_dropped(self):
        rows = [
            {"sample_name": "Sample_Name"},
            {"sample_name": "Sample_Nam"},
            {"sample_name": "A1", "expected_yield_gb": "3", "tube_label": "T1"},
            {"sample_name": ""},
        ]
        out = accept_imported_rows(self.draft, self.catalog, ManifestTable.SAMPLES, rows)
        self.assertTrue(out.accepted)
        self.assertEqual(out.outcome.messages, ("imported:1", "skipped:3"))
        sheet = out.draft.sample_manifest.sample_sheet
        self.assertEqual([r.sample_name for r in sheet], ["A1"])
        self.assertEqual(sheet[0].expected_yield_gb, 3.0)
        self.assertEqual(out.draft.sample_count, 1)

    def test_merge_from_start_index(self):
        draft = self.draft.clone()
        draft.sample_manifest.sample_sheet = [SampleRow("X"), SampleRow("Y")]
        rows = [{"sample_name": "A"}, {"sample_name": "B"}, {"sample_name": "C"}]
        out = accept_imported_rows(draft, self.catalog, ManifestTable.SAMPLES, rows, start_index=1)
        self.assertEqual([r.sample_name for r in out.draft.sample_manifest.sample_sheet], ["X", "A", "B", "C"])

    def test_nothing_importable(self):
        out = accept_imported_rows(self.draft, self.catalog, ManifestTable.SAMPLES, [{"sample_name": "Sample_Name"}])
        self.assertFalse(out.accepted)
        self.assertEqual(out.outcome.reason, "no_importable_rows")

    def test_library_index_rows(self):
        draft = OrderDraft(session_id="lib", sample_type=SampleType.LIBRARY)
        rows = [{"sample_name": "L1", "index1_seq": "ACGT", "well_position": "A01"}]
        out = accept_imported_rows(draft, self.catalog, ManifestTable.LIBRARY_INDEXES, rows)
        row = out.draft.library_manifest.library_sheet[0]
        self.assertEqual((row.sample_name, row.index1_seq, row.well_position), ("L1", "ACGT", "A01"))


class TestPrepareManifestStep(unittest.TestCase):
    def setUp(self):
        self.catalog = CatalogIndex.default()

    def test_bundle_creates_rows_with_fixed_yield(self):
        draft = OrderDraft(
            session_id="bundle",
            selected_categories={CategoryId.PACKAGE},
            service_items=[ServiceItem(CategoryId.PACKAGE, [ServiceLine("AP-WES01", 3)])],
        )
        prepared, messages = prepare_manifest_step(draft, self.catalog)
        self.assertEqual(prepared.sample_type, SampleType.DNA)
        self.assertEqual([r.expected_yield_gb for r in prepared.sample_manifest.sample_sheet], [12.0, 12.0, 12.0])
        self.assertIn("sample_rows_created:2", messages)

    def _bundle_draft(self, quantity: int, names: list[str]) -> OrderDraft:
        draft = OrderDraft(
            session_id="resize",
            selected_categories={CategoryId.PACKAGE},
            service_items=[ServiceItem(CategoryId.PACKAGE, [ServiceLine("AP-WES01", quantity)])],
            sample_type=SampleType.DNA,
        )
        draft.sample_manifest.sample_sheet = [SampleRow(name) for name in names]
        return draft

    def test_named_rows_beyond_slots_are_kept(self):
        prepared, messages = prepare_manifest_step(self._bundle_draft(2, ["A", "B", "C"]), self.catalog)
        self.assertEqual([r.sample_name for r in prepared.sample_manifest.sample_sheet], ["A", "B", "C"])
        self.assertIn("sample_rows_exceed_slots:1", messages)
        self.assertNotIn("primary_sheet.rows", prepared.variables_used)

    def test_trailing_blank_rows_are_trimmed(self):
        prepared, messages = prepare_manifest_step(self._bundle_draft(2, ["A", "", "  "]), self.catalog)
        self.assertEqual([r.sample_name for r in prepared.sample_manifest.sample_sheet], ["A", ""])
        self.assertIn("sample_rows_trimmed:1", messages)
        self.assertNotIn("sample_rows_exceed_slots:1", messages)

    def test_blank_row_between_named_rows_is_kept(self):
        prepared, messages = prepare_manifest_step(self._bundle_draft(2, ["A", "", "C"]), self.catalog)
        self.assertEqual([r.sample_name for r in prepared.sample_manifest.sample_sheet], ["A", "", "C"])
        self.assertEqual(messages, ["sample_rows_exceed_slots:1"])

    def test_defaults_to_first_allowed_type(self):
        draft = OrderDraft(
            session_id="default",
            selected_categories={CategoryId.LIBRARY, CategoryId.SEQUENCING},
            sample_type=SampleType.BLOOD,
        )
        prepared, messages = prepare_manifest_step(draft, self.catalog)
        self.assertEqual(prepared.sample_type, SampleType.DNA)
        self.assertEqual(messages, ["sample_type_defaulted:dna"])

    def test_allowed_type_is_kept(self):
        draft = OrderDraft(
            session_id="keep",
            selected_categories={CategoryId.LIBRARY, CategoryId.SEQUENCING},
            sample_type=SampleType.RNA,
        )
        prepared, messages = prepare_manifest_step(draft, self.catalog)
        self.assertEqual(prepared.sample_type, SampleType.RNA)
        self.assertEqual(messages, [])


if __name__ == "__main__":
    unittest.main()
