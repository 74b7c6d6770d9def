import unittest

from elktail.tail.window import DedupWindow


class DedupWindowTests(unittest.TestCase):
    def test_evicts_strictly_older_entries(self) -> None:
        window = DedupWindow()
        window.add("2024-01-15T12:00:00.100Z", "a")
        window.add("2024-01-15T12:00:00.500Z", "b")
        window.add("2024-01-15T12:00:00.900Z", "c")

        evicted = window.evict_older_than("2024-01-15T12:00:00.500Z")

        self.assertEqual(evicted, 1)
        self.assertEqual(window.ids(), ["b", "c"])
        self.assertNotIn("a", window)
        self.assertIn("b", window)

    def test_eviction_can_empty_window(self) -> None:
        window = DedupWindow()
        window.add("2024-01-15T12:00:00.100Z", "a")
        self.assertEqual(window.evict_older_than("2024-01-15T12:00:01.000Z"), 1)
        self.assertEqual(len(window), 0)
        self.assertEqual(window.ids(), [])

    def test_late_entry_is_kept_in_order(self) -> None:
        window = DedupWindow()
        window.add("2024-01-15T12:00:00.100Z", "a")
        window.add("2024-01-15T12:00:00.900Z", "c")
        window.add("2024-01-15T12:00:00.500Z", "b")
        self.assertEqual(window.ids(), ["a", "b", "c"])

        window.evict_older_than("2024-01-15T12:00:00.600Z")
        self.assertEqual(window.ids(), ["c"])

    def test_same_timestamp_entries(self) -> None:
        window = DedupWindow()
        for doc_id in ("x", "y", "z"):
            window.add("2024-01-15T12:00:00.000Z", doc_id)
        self.assertEqual(window.evict_older_than("2024-01-15T12:00:00.000Z"), 0)
        self.assertEqual(len(window), 3)

    def test_membership_tracks_duplicate_ids(self) -> None:
        window = DedupWindow()
        window.add("2024-01-15T12:00:00.100Z", "a")
        window.add("2024-01-15T12:00:00.800Z", "a")
        window.evict_older_than("2024-01-15T12:00:00.500Z")
        self.assertIn("a", window)
        window.evict_older_than("2024-01-15T12:00:01.000Z")
        self.assertNotIn("a", window)


if __name__ == "__main__":
    unittest.main()
