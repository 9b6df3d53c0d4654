import unittest

from avs_operator.deduplicator import TaskDeduplicator


class TestTaskDeduplicator(unittest.TestCase):

    def setUp(self):
        self.dedup = TaskDeduplicator()

    def test_admit_reserves_task(self):
        self.assertTrue(self.dedup.admit(7))
        self.assertTrue(self.dedup.is_in_flight(7))
        self.assertFalse(self.dedup.is_processed(7))

    def test_in_flight_task_rejected(self):
        self.dedup.admit(7)
        self.assertFalse(self.dedup.admit(7))
        self.assertEqual(self.dedup.stats['duplicates_rejected'], 1)

    def test_commit_moves_to_processed(self):
        self.dedup.admit(7)
        self.dedup.commit(7)

        self.assertEqual(self.dedup.processed, frozenset({7}))
        self.assertEqual(self.dedup.in_flight, frozenset())
        self.assertFalse(self.dedup.admit(7))

    def test_rollback_allows_readmission(self):
        self.dedup.admit(42)
        self.dedup.rollback(42)

        self.assertFalse(self.dedup.is_in_flight(42))
        self.assertFalse(self.dedup.is_processed(42))
        self.assertTrue(self.dedup.admit(42))

    def test_sets_stay_disjoint(self):
        for index in range(5):
            self.dedup.admit(index)
        self.dedup.commit(1)
        self.dedup.commit(3)
        self.dedup.rollback(4)

        self.assertEqual(self.dedup.processed & self.dedup.in_flight, frozenset())
        self.assertEqual(self.dedup.in_flight, frozenset({0, 2}))

    def test_stats(self):
        self.dedup.admit(1)
        self.dedup.admit(1)
        self.dedup.commit(1)
        self.dedup.admit(2)
        self.dedup.rollback(2)

        stats = self.dedup.get_stats()
        self.assertEqual(stats['admitted'], 2)
        self.assertEqual(stats['duplicates_rejected'], 1)
        self.assertEqual(stats['committed'], 1)
        self.assertEqual(stats['rolled_back'], 1)
        self.assertEqual(stats['processed'], 1)
        self.assertEqual(stats['in_flight'], 0)


if __name__ == '__main__':
    unittest.main()
