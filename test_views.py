# test_views.py

import unittest

from models import AppData, ShiftDay, default_app_data_dict, resolve_active_worker
import views


def _data(shifts, holidays=()):
    raw = default_app_data_dict()
    raw['shifts'] = shifts
    raw['settings']['holidays'] = list(holidays)
    return AppData.from_dict(raw)


class ResolveActiveWorkerTestCase(unittest.TestCase):
    """The one rule every view uses to decide who works a day."""

    def test_rules(self):
        self.assertEqual(resolve_active_worker(ShiftDay('2026-03-05', ['u1', 'u2'], confirmed_user_id='u1')), 'u1')
        self.assertEqual(resolve_active_worker(ShiftDay('2026-03-05', ['u2'])), 'u2')
        self.assertIsNone(resolve_active_worker(ShiftDay('2026-03-05', ['u1', 'u2'])))
        self.assertIsNone(resolve_active_worker(ShiftDay('2026-03-05', [], confirmed_user_id='u1', is_closed=True)))
        self.assertIsNone(resolve_active_worker(ShiftDay('2026-03-05')))
        self.assertIsNone(resolve_active_worker(None))


class ViewsTestCase(unittest.TestCase):
    """Tests for the read-only calendar, stats and print renderings."""

    def setUp(self):
        self.data = _data({
            '2026-03-01': {"signups": ["u1"]},
            '2026-03-02': {"signups": ["u1", "u2"], "confirmedUserId": "u2"},
            '2026-03-03': {"signups": ["u1", "u2"]},
            '2026-03-04': {"signups": ["u3"], "isClosed": True},
            '2026-03-05': {"signups": ["u1"]},
            '2026-04-01': {"signups": ["u3"]},
            '2026-03-06': {"signups": [], "confirmedUserId": "ghost"},
        }, holidays=['2026-03-05'])

    def test_monthly_stats(self):
        stats = views.monthly_stats(self.data, 2026, 3)
        counts = {row['user']['id']: row['count'] for row in stats['rows']}
        self.assertEqual(counts, {'u1': 2, 'u2': 1, 'u3': 0})
        self.assertEqual([row['user']['id'] for row in stats['rows']], ['u1', 'u2', 'u3'])
        self.assertEqual(stats['total'], 3)
        self.assertNotIn('password', stats['rows'][0]['user'])

    def test_print_table(self):
        table = views.print_table(self.data, 2026, 3)
        cells = {c['date']: c for week in table['weeks'] for c in week if c}
        self.assertEqual(len(cells), 31)
        # March 1st 2026 is a Sunday
        self.assertEqual(table['weeks'][0][0]['day'], 1)
        self.assertEqual(cells['2026-03-01']['hours'], views.HOLIDAY_HOURS)
        self.assertEqual(cells['2026-03-02']['content'], '語晨')
        self.assertEqual(cells['2026-03-02']['hours'], views.WEEKDAY_HOURS)
        self.assertEqual(cells['2026-03-03']['content'], 'Pending')
        self.assertEqual(cells['2026-03-04']['content'], 'Closed')
        self.assertTrue(cells['2026-03-05']['is_holiday'])
        self.assertEqual(cells['2026-03-05']['hours'], views.HOLIDAY_HOURS)
        self.assertEqual(cells['2026-03-06']['content'], 'Radiographer')
        self.assertEqual(cells['2026-03-07']['content'], 'Radiographer')
        self.assertEqual(cells['2026-03-02']['color'], 'green')
        self.assertTrue(all(len(week) == 7 for week in table['weeks']))

    def test_calendar_month_for_student(self):
        student = self.data.find_user('u1')
        cal = views.calendar_month(self.data, 2026, 3, student, {'2026-03-10'})
        days = {d['date']: d for d in cal['days']}
        self.assertEqual(cal['leadingBlanks'], 0)
        self.assertTrue(days['2026-03-01']['isSignedUp'])
        self.assertFalse(days['2026-03-02']['isInteractable'])
        self.assertFalse(days['2026-03-04']['isInteractable'])
        self.assertTrue(days['2026-03-10']['isPending'])
        self.assertEqual(days['2026-03-01']['activeUserId'], 'u1')

    def test_today_status(self):
        self.assertEqual(views.today_status(self.data, '2026-03-02')['worker'], '語晨')
        self.assertEqual(views.today_status(self.data, '2026-03-01')['status'], 'auto')
        self.assertEqual(views.today_status(self.data, '2026-03-03')['text'], '2 people on standby')
        self.assertEqual(views.today_status(self.data, '2026-03-04')['status'], 'closed')
        self.assertEqual(views.today_status(self.data, '2026-03-05')['status'], 'holiday')
        self.assertEqual(views.today_status(self.data, '2026-03-20')['status'], 'unscheduled')

    def test_today_status_follows_active_worker(self):
        data = _data({
            '2026-03-10': {"signups": ["u1", "u2"], "confirmedUserId": "u1", "isClosed": True},
            '2026-03-11': {"signups": ["u1", "u2"], "confirmedUserId": "u1"},
        })
        self.assertEqual(views.today_status(data, '2026-03-10')['status'], 'closed')
        self.assertEqual(views.today_status(data, '2026-03-11')['status'], 'confirmed')
        self.assertEqual(views.today_status(data, '2026-03-11')['worker'], '昀儒')
        # confirmed id that matches no user
        self.assertEqual(views.today_status(self.data, '2026-03-06')['status'], 'unscheduled')

    def test_admin_shift_context(self):
        ctx = views.admin_shift_context(self.data, '2026-03-02')
        self.assertEqual([(s['userId'], s['state']) for s in ctx['signups']], [('u1', 'assign'), ('u2', 'formal')])
        ctx = views.admin_shift_context(self.data, '2026-03-01')
        self.assertEqual(ctx['signups'][0]['state'], 'auto')

    def test_parse_helpers(self):
        self.assertEqual(views.parse_holidays('2026-01-01\n bad \n2026-02-28, 2026/3/1'), ['2026-01-01', '2026-02-28'])
        self.assertEqual(views.parse_month('2026-03'), (2026, 3))
        with self.assertRaises(ValueError):
            views.parse_month('2026-13')


if __name__ == '__main__':
    unittest.main()
