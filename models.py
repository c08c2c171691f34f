# models.py

import copy
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

# --- Constants ---
ROLE_ADMIN = 'ADMIN'
ROLE_STUDENT = 'STUDENT'
ADMIN_USER_ID = 'admin'
DEFAULT_ADMIN_PASSWORD = 'admin'
DEFAULT_STORE_URL = 'http://localhost:5000/exec'
DEFAULT_WORKER_NAME = 'Radiographer'
WEEKDAYS = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']
ISO_DATE_REGEX = r'^\d{4}-\d{2}-\d{2}$'

COLOR_PALETTE = [
    {"name": "Red", "value": "bg-red-200 text-red-900"},
    {"name": "Orange", "value": "bg-orange-200 text-orange-900"},
    {"name": "Amber", "value": "bg-amber-200 text-amber-900"},
    {"name": "Yellow", "value": "bg-yellow-200 text-yellow-900"},
    {"name": "Lime", "value": "bg-lime-200 text-lime-900"},
    {"name": "Green", "value": "bg-green-200 text-green-900"},
    {"name": "Emerald", "value": "bg-emerald-200 text-emerald-900"},
    {"name": "Teal", "value": "bg-teal-200 text-teal-900"},
    {"name": "Cyan", "value": "bg-cyan-200 text-cyan-900"},
    {"name": "Sky", "value": "bg-sky-200 text-sky-900"},
    {"name": "Blue", "value": "bg-blue-200 text-blue-900"},
    {"name": "Indigo", "value": "bg-indigo-200 text-indigo-900"},
    {"name": "Violet", "value": "bg-violet-200 text-violet-900"},
    {"name": "Purple", "value": "bg-purple-200 text-purple-900"},
    {"name": "Fuchsia", "value": "bg-fuchsia-200 text-fuchsia-900"},
    {"name": "Pink", "value": "bg-pink-200 text-pink-900"},
    {"name": "Rose", "value": "bg-rose-200 text-rose-900"},
]

# National holidays, 2026-2027
DEFAULT_HOLIDAYS = [
    '2026-01-01', '2026-02-16', '2026-02-17', '2026-02-18', '2026-02-19', '2026-02-20',
    '2026-02-28', '2026-04-04', '2026-04-05', '2026-05-01', '2026-06-19', '2026-09-25',
    '2026-10-10',
    '2027-01-01', '2027-02-05', '2027-02-06', '2027-02-07', '2027-02-08', '2027-02-09',
    '2027-02-28', '2027-04-04', '2027-04-05', '2027-05-01', '2027-06-09', '2027-09-15',
    '2027-10-10',
]

_LOOSE_DATE_REGEX = re.compile(r'^(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})')
_TEXT_DATE_FORMATS = ('%a %b %d %Y', '%b %d %Y', '%d %b %Y')
_ISO_TIMESTAMP_REGEX = re.compile(r'^\d{4}-\d{2}-\d{2}[T ]\d{2}:\d{2}')
_ISO_FRACTION_REGEX = re.compile(r'\.\d+')


def _parse_timestamp(key):
    # older fromisoformat rejects a trailing Z and odd fraction lengths
    if key.endswith('Z'): key = key[:-1] + '+00:00'
    try: stamp = datetime.fromisoformat(_ISO_FRACTION_REGEX.sub('', key, count=1))
    except ValueError: return None
    return stamp.astimezone() if stamp.tzinfo is not None else stamp


def normalize_date_key(key):
    """Return ``key`` as ``YYYY-MM-DD`` when it can be read as a date, else unchanged.

    Timestamps with a zone (``2026-03-04T16:00:00.000Z``) are read as instants and
    filed under the local calendar day, the day the spreadsheet cell showed.
    """
    key = str(key).strip()
    if re.match(ISO_DATE_REGEX, key): return key
    if _ISO_TIMESTAMP_REGEX.match(key):
        stamp = _parse_timestamp(key)
        if stamp is not None: return stamp.strftime('%Y-%m-%d')
    match = _LOOSE_DATE_REGEX.match(key)
    if match:
        year, month, day = (int(part) for part in match.groups())
        try: return datetime(year, month, day).strftime('%Y-%m-%d')
        except ValueError: return key
    # Spreadsheet cells sometimes arrive as "Thu Mar 05 2026 00:00:00 GMT+0800 (...)"
    words = ' '.join(key.replace(',', ' ').split()[:4])
    for fmt in _TEXT_DATE_FORMATS:
        for candidate in (words, ' '.join(words.split()[:3])):
            try: return datetime.strptime(candidate, fmt).strftime('%Y-%m-%d')
            except ValueError: continue
    return key


# --- Data Model ---
@dataclass
class User:
    id: str
    name: str
    role: str = ROLE_STUDENT
    color: str = COLOR_PALETTE[0]['value']
    password: Optional[str] = None

    @property
    def is_admin(self): return self.role == ROLE_ADMIN

    def to_dict(self):
        data = {"id": self.id, "name": self.name, "role": self.role, "color": self.color}
        if self.password is not None: data["password"] = self.password
        return data

    @classmethod
    def from_dict(cls, data):
        password = data.get('password')
        return cls(
            id=str(data.get('id', '')),
            name=str(data.get('name', '')),
            role=data.get('role') or ROLE_STUDENT,
            color=data.get('color') or COLOR_PALETTE[0]['value'],
            password=None if password in (None, '') else str(password),
        )


@dataclass
class ShiftDay:
    date: str
    signups: List[str] = field(default_factory=list)
    confirmed_user_id: Optional[str] = None
    is_closed: bool = False

    def to_dict(self):
        data = {"date": self.date, "signups": list(self.signups)}
        if self.confirmed_user_id: data["confirmedUserId"] = self.confirmed_user_id
        if self.is_closed: data["isClosed"] = True
        return data

    @classmethod
    def from_dict(cls, data, date=None):
        signups = data.get('signups')
        if signups in (None, ''): signups = []
        elif isinstance(signups, str): signups = [s for s in signups.split(',') if s.strip()]
        elif not isinstance(signups, (list, tuple)): signups = [signups]
        confirmed = data.get('confirmedUserId')
        return cls(
            date=date or str(data.get('date', '')),
            signups=[str(s).strip() for s in signups],
            confirmed_user_id=str(confirmed) if confirmed not in (None, '') else None,
            is_closed=_as_bool(data.get('isClosed')),
        )


@dataclass
class AppSettings:
    admin_password: Optional[str] = DEFAULT_ADMIN_PASSWORD
    holidays: List[str] = field(default_factory=list)
    google_sheet_url: Optional[str] = DEFAULT_STORE_URL

    def to_dict(self):
        return {"adminPassword": self.admin_password, "holidays": list(self.holidays), "googleSheetUrl": self.google_sheet_url}

    @classmethod
    def from_dict(cls, data):
        holidays = data.get('holidays') or []
        if isinstance(holidays, str): holidays = holidays.split(',')
        elif not isinstance(holidays, (list, tuple)): holidays = []
        return cls(
            admin_password=data.get('adminPassword'),
            holidays=[normalize_date_key(h) for h in holidays if str(h).strip()],
            google_sheet_url=data.get('googleSheetUrl'),
        )


@dataclass
class AppData:
    users: List[User] = field(default_factory=list)
    shifts: Dict[str, ShiftDay] = field(default_factory=dict)
    settings: AppSettings = field(default_factory=AppSettings)

    def find_user(self, user_id):
        if user_id is None: return None
        return next((u for u in self.users if u.id == str(user_id)), None)

    def students(self):
        return [u for u in self.users if u.role == ROLE_STUDENT]

    def shift(self, date):
        return self.shifts.get(date)

    def to_dict(self):
        return {
            "users": [u.to_dict() for u in self.users],
            "shifts": {date: s.to_dict() for date, s in self.shifts.items()},
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, data):
        """Build a snapshot from backend JSON, normalizing user ids and shift date keys."""
        raw_shifts, raw_users, raw_settings = data.get('shifts'), data.get('users'), data.get('settings')
        shifts = {}
        for key, raw in (raw_shifts.items() if isinstance(raw_shifts, dict) else ()):
            if not isinstance(raw, dict): continue
            date = normalize_date_key(key)
            shifts[date] = ShiftDay.from_dict(raw, date=date)
        return cls(
            users=[User.from_dict(u) for u in (raw_users if isinstance(raw_users, list) else []) if isinstance(u, dict)],
            shifts=shifts,
            settings=AppSettings.from_dict(raw_settings if isinstance(raw_settings, dict) else {}),
        )


@dataclass(frozen=True)
class PendingAction:
    date: str
    user_id: str

    def to_payload(self): return {"date": self.date, "userId": self.user_id}


def _as_bool(value):
    if isinstance(value, str): return value.strip().lower() in ('true', '1', 'yes')
    return bool(value)


def default_app_data():
    """The built-in dataset used when the backend is empty or unreachable."""
    return AppData(
        users=[
            User(id='u1', name='昀儒', color='bg-blue-100 text-green-800', password='1234'),
            User(id='u2', name='語晨', color='bg-green-100 text-pink-800', password='4321'),
            User(id='u3', name='蘇蘇', color='bg-pink-100 text-blue-800', password='0000'),
        ],
        shifts={},
        settings=AppSettings(admin_password=DEFAULT_ADMIN_PASSWORD, holidays=list(DEFAULT_HOLIDAYS), google_sheet_url=DEFAULT_STORE_URL),
    )


def default_app_data_dict():
    return copy.deepcopy(default_app_data().to_dict())


def admin_user():
    return User(id=ADMIN_USER_ID, name='System Administrator', role=ROLE_ADMIN, color='bg-purple-100 text-purple-800')


def resolve_active_worker(shift):
    """Return the id of the person working ``shift``, or None.

    Closed days have nobody. A confirmed user wins over signups; a lone signup
    counts as an automatic assignment; several unconfirmed signups are pending.
    """
    if shift is None or shift.is_closed: return None
    if shift.confirmed_user_id: return shift.confirmed_user_id
    if len(shift.signups) == 1: return shift.signups[0]
    return None
