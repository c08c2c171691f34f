# test_reconcile.py

import unittest

from fake_remote import FakeRemote
from models import PendingAction
from reconcile import flush_actions


class FlushActionsTestCase(unittest.TestCase):
    """Tests for sequential flushing and snapshot reconciliation."""

    def setUp(self):
        self.remote = FakeRemote()
        self.actions = [PendingAction('2026-03-05', 'u1'), PendingAction('2026-03-06', 'u1'), PendingAction('2026-03-07', 'u2')]

    def test_empty_queue_touches_nothing(self):
        report = flush_actions([], self.remote)
        self.assertTrue(report.ok)
        self.assertEqual(self.remote.sent, [])
        self.assertEqual(self.remote.fetch_count, 0)
        self.assertIsNone(report.snapshot)

    def test_all_succeed_sends_in_order_and_refetches(self):
        progress = []
        report = flush_actions(self.actions, self.remote, on_progress=lambda i, n: progress.append((i, n)))
        self.assertTrue(report.ok)
        self.assertEqual(report.succeeded, 3)
        self.assertEqual([p['date'] for p in self.remote.toggles()], ['2026-03-05', '2026-03-06', '2026-03-07'])
        self.assertEqual(progress, [(1, 3), (2, 3), (3, 3)])
        self.assertEqual(self.remote.fetch_count, 1)
        self.assertEqual(report.snapshot.shifts['2026-03-07'].signups, ['u2'])

    def test_partial_failure_attempts_everything_and_still_refetches(self):
        self.remote.fail_dates = {'2026-03-06'}
        report = flush_actions(self.actions, self.remote)
        self.assertFalse(report.ok)
        self.assertEqual(len(self.remote.toggles()), 3)
        self.assertEqual((report.succeeded, report.failed), (2, 1))
        self.assertEqual(report.last_error, 'Sheet is locked')
        self.assertIn('2 succeeded, 1 failed', report.message)
        self.assertNotIn('2026-03-06', report.snapshot.shifts)

    def test_total_failure(self):
        self.remote.fail_actions = {'toggleSignup'}
        report = flush_actions(self.actions, self.remote)
        self.assertEqual((report.succeeded, report.failed), (0, 3))
        self.assertIsNotNone(report.snapshot)

    def test_refetch_failure_is_reported_generically(self):
        self.remote.fail_fetch = True
        report = flush_actions(self.actions[:1], self.remote)
        self.assertFalse(report.ok)
        self.assertIsNone(report.snapshot)
        self.assertIn('snapshot fetch exploded', report.message)
        self.assertEqual(report.to_dict()['ok'], False)


if __name__ == '__main__':
    unittest.main()
