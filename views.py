# views.py
#
# Read-only renderings of an AppData snapshot. Every view that needs to know who
# works a day goes through models.resolve_active_worker.

import calendar
import re
from datetime import date, datetime

from models import DEFAULT_WORKER_NAME, ISO_DATE_REGEX, ROLE_STUDENT, WEEKDAYS, resolve_active_worker

WEEKDAY_HOURS = '10:00-18:00'
HOLIDAY_HOURS = '10:00-17:00'
_COLOR_REGEX = re.compile(r'bg-([a-z]+)-\d+')


def parse_month(month_str=None):
    """'YYYY-MM' -> (year, month); defaults to the current month."""
    if not month_str: month_str = datetime.now().strftime('%Y-%m')
    try:
        year, month = map(int, month_str.split('-'))
        date(year, month, 1)
    except ValueError as exc:
        raise ValueError(f"Invalid month '{month_str}', expected YYYY-MM.") from exc
    return year, month


def date_key(year, month, day): return f"{year:04d}-{month:02d}-{day:02d}"


def shift_hours(date_str, holidays):
    d = datetime.strptime(date_str, '%Y-%m-%d').date()
    return HOLIDAY_HOURS if d.weekday() == 6 or date_str in holidays else WEEKDAY_HOURS


def base_color(color):
    match = _COLOR_REGEX.search(color or '')
    return match.group(1) if match else 'gray'


def monthly_stats(data, year, month):
    """Shift count per student for the month, busiest first."""
    prefix = f"{year:04d}-{month:02d}"
    students = [u for u in data.users if u.role == ROLE_STUDENT]
    counts = {s.id: 0 for s in students}
    for shift in data.shifts.values():
        if not shift.date.startswith(prefix): continue
        worker = resolve_active_worker(shift)
        if worker: counts[worker] = counts.get(worker, 0) + 1
    rows = sorted(({"user": s.to_dict(), "count": counts.get(s.id, 0)} for s in students), key=lambda r: -r['count'])
    total = sum(r['count'] for r in rows)
    for row in rows:
        row['share'] = (row['count'] / total * 100) if total else 0
        row['user'].pop('password', None)
    return {"month": prefix, "rows": rows, "total": total}


def _print_cell(data, year, month, day):
    date_str = date_key(year, month, day)
    shift = data.shift(date_str)
    holidays = data.settings.holidays
    weekday = (date(year, month, day).weekday() + 1) % 7  # Sunday = 0
    cell = {"day": day, "date": date_str, "content": DEFAULT_WORKER_NAME, "color": None, "hours": shift_hours(date_str, holidays),
            "is_closed": False, "is_pending": False, "is_sunday": weekday == 0, "is_holiday": date_str in holidays}
    if shift and shift.is_closed:
        cell.update(content='Closed', is_closed=True)
        return weekday, cell
    worker = data.find_user(resolve_active_worker(shift))
    if worker:
        cell.update(content=worker.name, color=base_color(worker.color))
    elif shift and len(shift.signups) > 1:
        cell.update(content='Pending', color='yellow', is_pending=True)
    return weekday, cell


def print_table(data, year, month):
    """Sunday-first weeks of 7 cells for the printable monthly roster."""
    weeks, week = [], [None] * 7
    days_in_month = calendar.monthrange(year, month)[1]
    for day in range(1, days_in_month + 1):
        weekday, cell = _print_cell(data, year, month, day)
        week[weekday] = cell
        if weekday == 6 or day == days_in_month:
            weeks.append(week)
            week = [None] * 7
    return {"month": f"{year:04d}-{month:02d}", "weekdays": WEEKDAYS, "weeks": weeks}


def calendar_month(data, year, month, current_user=None, pending_dates=frozenset()):
    days = []
    user_id = current_user.id if current_user else None
    is_student = bool(current_user) and current_user.role == ROLE_STUDENT
    for day in range(1, calendar.monthrange(year, month)[1] + 1):
        date_str = date_key(year, month, day)
        shift = data.shift(date_str)
        weekday = (date(year, month, day).weekday() + 1) % 7
        signups = list(shift.signups) if shift else []
        confirmed = shift.confirmed_user_id if shift else None
        closed = bool(shift and shift.is_closed)
        days.append({
            "date": date_str, "day": day, "weekday": weekday,
            "signups": signups, "confirmedUserId": confirmed, "isClosed": closed,
            "activeUserId": resolve_active_worker(shift),
            "isHoliday": date_str in data.settings.holidays,
            "isSunday": weekday == 0, "isSaturday": weekday == 6,
            "isPending": date_str in pending_dates,
            "isSignedUp": bool(user_id) and user_id in signups,
            "isInteractable": is_student and not closed and not confirmed,
            "hours": shift_hours(date_str, data.settings.holidays),
        })
    first_weekday = (date(year, month, 1).weekday() + 1) % 7
    return {"month": f"{year:04d}-{month:02d}", "leadingBlanks": first_weekday, "days": days}


def today_status(data, today=None):
    today = today or date.today().isoformat()
    shift = data.shift(today)
    active = resolve_active_worker(shift)
    status = {"date": today, "status": "unscheduled", "text": "Not scheduled yet", "worker": None}
    if today in data.settings.holidays:
        status.update(status="holiday", text="Holiday today")
    elif shift and shift.is_closed:
        status.update(status="closed", text="Closed today")
    elif active:
        worker = data.find_user(active)
        if worker and shift.confirmed_user_id: status.update(status="confirmed", text="On duty today", worker=worker.name)
        elif worker: status.update(status="auto", text="Booked today (auto)", worker=worker.name)
    elif shift and len(shift.signups) > 1:
        status.update(status="pending", text=f"{len(shift.signups)} people on standby")
    return status


def admin_shift_context(data, date_str):
    """Signup list shown when the administrator opens a day."""
    shift = data.shift(date_str)
    entries = []
    if shift:
        auto = not shift.confirmed_user_id and len(shift.signups) == 1 and not shift.is_closed
        for uid in shift.signups:
            user = data.find_user(uid)
            if not user: continue
            state = 'formal' if shift.confirmed_user_id == uid else ('auto' if auto else 'assign')
            entries.append({"userId": uid, "name": user.name, "color": user.color, "state": state})
    return {"date": date_str, "signups": entries, "isClosed": bool(shift and shift.is_closed),
            "confirmedUserId": shift.confirmed_user_id if shift else None}


def parse_holidays(text):
    """Holiday form input: one date per line (commas also accepted); malformed entries are dropped."""
    if isinstance(text, (list, tuple)): parts = text
    else: parts = re.split(r'[\n,]', text or '')
    return [p.strip() for p in parts if re.match(ISO_DATE_REGEX, str(p).strip())]
