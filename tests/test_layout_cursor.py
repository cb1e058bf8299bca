import unittest

from document_engine.layout.cursor import LayoutCursor


class LayoutCursorTests(unittest.TestCase):
    def setUp(self):
        self.cursor = LayoutCursor(page_height=297, margin=15)

    def test_initial_state(self):
        self.assertEqual(self.cursor.page_index, 0)
        self.assertEqual(self.cursor.y, 15)
        self.assertEqual(self.cursor.page_count, 1)

    def test_breaks_when_section_does_not_fit(self):
        self.cursor.y = 297 - 15 - 1
        self.assertTrue(self.cursor.ensure_space(10))
        self.assertEqual(self.cursor.page_index, 1)
        self.assertEqual(self.cursor.y, 15)
        self.assertEqual(self.cursor.page_count, 2)

    def test_exact_fit_stays_on_page(self):
        self.cursor.y = 272
        self.assertFalse(self.cursor.ensure_space(10))
        self.assertEqual(self.cursor.page_index, 0)

    def test_advance_and_remaining(self):
        self.cursor.advance(40)
        self.assertEqual(self.cursor.y, 55)
        self.assertEqual(self.cursor.remaining, 227)

    def test_oversized_section_at_top_does_not_add_blank_page(self):
        with self.assertLogs("document_engine.layout.cursor", level="WARNING"):
            self.assertFalse(self.cursor.ensure_space(400))
        self.assertEqual(self.cursor.page_index, 0)

    def test_oversized_section_breaks_once(self):
        self.cursor.advance(100)
        self.assertTrue(self.cursor.ensure_space(400))
        self.assertEqual(self.cursor.page_index, 1)

    def test_update_from_table(self):
        self.cursor.update_from_table(120.5, page_index=2)
        self.assertEqual(self.cursor.page_index, 2)
        self.assertEqual(self.cursor.y, 120.5)
        with self.assertRaises(ValueError):
            self.cursor.update_from_table(50, page_index=1)

    def test_margin_must_leave_room(self):
        with self.assertRaises(ValueError):
            LayoutCursor(page_height=20, margin=10)


if __name__ == "__main__":
    unittest.main()
