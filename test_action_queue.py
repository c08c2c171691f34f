# test_action_queue.py

import unittest

from action_queue import ActionQueue, toggle_action
from models import PendingAction


class ToggleActionTestCase(unittest.TestCase):
    """Tests for the pure cancel-out reducer."""

    def test_appends_new_pair(self):
        a, b = PendingAction('2026-03-05', 'u1'), PendingAction('2026-03-06', 'u1')
        self.assertEqual(toggle_action(toggle_action((), a), b), (a, b))

    def test_repeat_pair_cancels_out_and_keeps_order(self):
        a, b, c = PendingAction('2026-03-05', 'u1'), PendingAction('2026-03-06', 'u1'), PendingAction('2026-03-07', 'u1')
        actions = (a, b, c)
        self.assertEqual(toggle_action(actions, b), (a, c))

    def test_same_date_different_user_is_a_different_pair(self):
        a, b = PendingAction('2026-03-05', 'u1'), PendingAction('2026-03-05', 'u2')
        self.assertEqual(toggle_action((a,), b), (a, b))

    def test_does_not_mutate_input(self):
        a = PendingAction('2026-03-05', 'u1')
        actions = (a,)
        toggle_action(actions, a)
        self.assertEqual(actions, (a,))


class ActionQueueTestCase(unittest.TestCase):
    """Tests for the pending-change ledger."""

    def test_even_toggles_leave_nothing_odd_leave_one(self):
        for count in range(1, 7):
            queue = ActionQueue()
            for _ in range(count): queue.enqueue_toggle('2026-03-05', 'u1')
            self.assertEqual(len(queue), count % 2, f"after {count} toggles")

    def test_re_adding_a_cancelled_pair_goes_to_the_end(self):
        queue = ActionQueue()
        queue.enqueue_toggle('2026-03-05', 'u1')
        queue.enqueue_toggle('2026-03-06', 'u1')
        queue.enqueue_toggle('2026-03-05', 'u1')
        queue.enqueue_toggle('2026-03-05', 'u1')
        self.assertEqual([a.date for a in queue], ['2026-03-06', '2026-03-05'])

    def test_user_ids_are_stored_as_strings(self):
        queue = ActionQueue()
        queue.enqueue_toggle('2026-03-05', 7)
        self.assertEqual(queue.snapshot(), (PendingAction('2026-03-05', '7'),))
        queue.enqueue_toggle('2026-03-05', '7')
        self.assertFalse(queue)

    def test_clear_and_payloads(self):
        queue = ActionQueue()
        queue.enqueue_toggle('2026-03-05', 'u1')
        queue.enqueue_toggle('2026-03-09', 'u1')
        self.assertEqual(queue.to_list(), [{"date": "2026-03-05", "userId": "u1"}, {"date": "2026-03-09", "userId": "u1"}])
        self.assertEqual(queue.dates(), {'2026-03-05', '2026-03-09'})
        queue.clear()
        self.assertEqual(queue.size(), 0)


if __name__ == '__main__':
    unittest.main()
