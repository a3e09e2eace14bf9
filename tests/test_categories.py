import random
import unittest

from src.seqorder.categories import clear_categories, dependency_closure, toggle, violations
from src.seqorder.state_schema import ActivePackage, CategoryId, OrderDraft, ServiceItem


class TestCategoryToggle(unittest.TestCase):
    def setUp(self):
        self.draft = OrderDraft(session_id="cat")

    def test_extraction_selects_library_and_sequencing_in_order(self):
        transition = toggle(self.draft, CategoryId.EXTRACTION_QC)
        self.assertTrue(transition.accepted)
        self.assertEqual(
            transition.draft.selected_categories,
            {CategoryId.EXTRACTION_QC, CategoryId.LIBRARY, CategoryId.SEQUENCING},
        )
        self.assertEqual(transition.outcome.auto_selected, (CategoryId.LIBRARY, CategoryId.SEQUENCING))
        self.assertEqual(self.draft.selected_categories, set(), "input draft must not change")

    def test_dependency_blocks_and_releases_removal(self):
        draft = toggle(self.draft, CategoryId.EXTRACTION_QC).draft

        blocked = toggle(draft, CategoryId.LIBRARY)
        self.assertFalse(blocked.accepted)
        self.assertEqual(blocked.outcome.reason, "required_by:extraction_qc")
        self.assertIs(blocked.draft, draft)

        blocked_seq = toggle(draft, CategoryId.SEQUENCING)
        self.assertEqual(blocked_seq.outcome.reason, "required_by:extraction_qc,library")

        draft = toggle(draft, CategoryId.EXTRACTION_QC).draft
        released = toggle(draft, CategoryId.LIBRARY)
        self.assertTrue(released.accepted)
        self.assertEqual(released.draft.selected_categories, {CategoryId.SEQUENCING})

    def test_package_is_exclusive(self):
        draft = toggle(self.draft, CategoryId.QC).draft
        draft = toggle(draft, CategoryId.ANALYSIS).draft

        with_package = toggle(draft, CategoryId.PACKAGE)
        self.assertEqual(with_package.draft.selected_categories, {CategoryId.PACKAGE})

        back = toggle(with_package.draft, CategoryId.LIBRARY)
        self.assertTrue(back.outcome.package_dropped)
        self.assertNotIn(CategoryId.PACKAGE, back.draft.selected_categories)
        self.assertEqual(back.draft.selected_categories, {CategoryId.LIBRARY, CategoryId.SEQUENCING})

    def test_leaving_package_clears_active_preset(self):
        draft = OrderDraft(
            session_id="p",
            selected_categories={CategoryId.PACKAGE},
            active_package=ActivePackage("BUNDLE-WGS"),
            service_items=[ServiceItem(CategoryId.PACKAGE)],
        )
        out = toggle(draft, CategoryId.QC)
        self.assertIsNone(out.draft.active_package)
        self.assertEqual(out.draft.service_items, [])

    def test_toggle_off_drops_service_item(self):
        draft = OrderDraft(
            session_id="off",
            selected_categories={CategoryId.QC, CategoryId.ANALYSIS},
            service_items=[ServiceItem(CategoryId.QC), ServiceItem(CategoryId.ANALYSIS)],
        )
        out = toggle(draft, CategoryId.QC)
        self.assertEqual([i.category for i in out.draft.service_items], [CategoryId.ANALYSIS])

    def test_random_toggle_sequences_keep_closure(self):
        rng = random.Random(7)
        categories = list(CategoryId)
        for _ in range(50):
            draft = OrderDraft(session_id="rand")
            for _ in range(20):
                draft = toggle(draft, rng.choice(categories)).draft
                self.assertEqual(violations(draft.selected_categories), [])

    def test_locked_draft_rejects_toggle(self):
        draft = OrderDraft(session_id="locked", locked=True)
        out = toggle(draft, CategoryId.QC)
        self.assertFalse(out.accepted)
        self.assertEqual(out.outcome.reason, "locked")

    def test_clear_categories(self):
        self.assertFalse(clear_categories(self.draft).accepted)
        draft = toggle(self.draft, CategoryId.EXTRACTION_QC).draft
        cleared = clear_categories(draft)
        self.assertTrue(cleared.accepted)
        self.assertEqual(cleared.draft.selected_categories, set())

    def test_toggle_is_logged(self):
        draft = toggle(self.draft, CategoryId.QC).draft
        self.assertEqual(draft.variables_used, ["selected_categories"])
        self.assertEqual(draft.value_updates[0]["reason"], "toggle_on:qc")


class TestDependencyClosure(unittest.TestCase):
    def test_closure_of_library(self):
        closed, added = dependency_closure({CategoryId.LIBRARY})
        self.assertEqual(closed, {CategoryId.LIBRARY, CategoryId.SEQUENCING})
        self.assertEqual(added, [CategoryId.SEQUENCING])


if __name__ == "__main__":
    unittest.main()
