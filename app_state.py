# app_state.py

import logging
import re
import threading
import time
from contextlib import contextmanager
from dataclasses import replace

from action_queue import ActionQueue
from errors import Busy, LoginFailed, PermissionDenied, RemoteStoreError, RosterError, UnsavedChanges
from models import (COLOR_PALETTE, DEFAULT_ADMIN_PASSWORD, ISO_DATE_REGEX, ROLE_STUDENT, AppSettings, ShiftDay, User,
                    admin_user)
from reconcile import flush_actions

logger = logging.getLogger(__name__)

SHIFT_ACTIONS = ('confirm', 'close', 'clear')
USER_ACTIONS = ('add', 'edit', 'delete')


class AppState:
    """One client's working copy: the current snapshot, the pending queue and who is logged in.

    All mutation goes through the methods below. Signup toggles are queued for a
    later flush; administrative edits are written straight through, and any
    failed write is repaired by reloading the whole snapshot.
    """

    def __init__(self, remote):
        self.remote = remote
        self.data = None
        self.queue = ActionQueue()
        self.current_user = None
        self.selected_admin_date = None
        self.saving = False
        self.save_progress = ''
        self.syncing = False
        self._in_flight = threading.Lock()

    # --- Loading ---
    def load(self):
        self.data = self.remote.fetch_snapshot()
        self.queue.clear()
        logger.info(f"Loaded snapshot: {len(self.data.users)} users, {len(self.data.shifts)} shifts")
        return self.data

    def ensure_loaded(self):
        if self.data is None: self.load()
        return self.data

    def reload(self):
        return self.load()

    def sync(self, force=False):
        if self.queue and not force: raise UnsavedChanges('syncing', len(self.queue))
        with self._guard('sync'):
            self.syncing = True
            try: return self.load()
            finally: self.syncing = False

    @contextmanager
    def _guard(self, operation):
        if not self._in_flight.acquire(blocking=False): raise Busy(operation)
        try: yield
        finally: self._in_flight.release()

    @property
    def busy(self): return self._in_flight.locked()

    # --- Session ---
    def login_student(self, user_id, password=''):
        data = self.ensure_loaded()
        user = next((u for u in data.students() if u.id == str(user_id or '')), None)
        if not user: raise LoginFailed("Please choose your name.")
        if user.password and user.password != (password or ''): raise LoginFailed("Wrong password.")
        self._start_session(user)
        return user

    def login_admin(self, password):
        data = self.ensure_loaded()
        if (password or '') != (data.settings.admin_password or DEFAULT_ADMIN_PASSWORD):
            raise LoginFailed("Wrong administrator password.")
        user = admin_user()
        self._start_session(user)
        return user

    def _start_session(self, user):
        self.current_user = user
        self.selected_admin_date = None
        self.queue.clear()
        logger.info(f"{user.role} '{user.id}' logged in")

    def logout(self, force=False):
        if self.queue and not force: raise UnsavedChanges('logging out', len(self.queue))
        if self.current_user: logger.info(f"'{self.current_user.id}' logged out")
        self.current_user = None
        self.selected_admin_date = None
        self.queue.clear()

    def require_user(self):
        if not self.current_user: raise PermissionDenied("Please log in first.")
        return self.current_user

    def require_admin(self):
        if not self.require_user().is_admin: raise PermissionDenied("Administrator access required.")

    # --- Calendar clicks ---
    def click_date(self, date):
        """Dispatch a calendar click: students toggle their signup, the admin opens the day."""
        user = self.require_user()
        _check_date(date)
        if user.is_admin:
            self.selected_admin_date = date
            return {"selected": date}
        return {"toggled": self.toggle_signup(date), "pending": len(self.queue)}

    def toggle_signup(self, date):
        user = self.require_user()
        if user.role != ROLE_STUDENT: raise PermissionDenied("Only students sign up for shifts.")
        _check_date(date)
        data = self.ensure_loaded()
        shift = data.shift(date)
        if shift and (shift.is_closed or shift.confirmed_user_id): return False
        signups = list(shift.signups) if shift else []
        if user.id in signups: signups = [uid for uid in signups if uid != user.id]
        else: signups.append(user.id)
        data.shifts[date] = replace(shift, date=date, signups=signups) if shift else ShiftDay(date=date, signups=signups)
        self.queue.enqueue_toggle(date, user.id)
        return True

    # --- Batch save ---
    def save_changes(self):
        """Flush the queued toggles and adopt whatever the backend now holds."""
        if not self.queue: return flush_actions((), self.remote)
        with self._guard('save'):
            self.saving = True
            self.save_progress = 'Preparing upload...'
            try:
                report = flush_actions(self.queue.snapshot(), self.remote, on_progress=self._on_progress)
                if report.snapshot is not None:
                    self.data = report.snapshot
                    self.queue.clear()
                logger.info(report.message)
                return report
            finally:
                self.saving = False
                self.save_progress = ''

    def _on_progress(self, index, total):
        self.save_progress = f"Saving change {index} / {total}..."

    # --- Admin: shifts ---
    def select_admin_date(self, date):
        self.require_admin()
        _check_date(date)
        self.selected_admin_date = date

    def close_admin_context(self):
        self.selected_admin_date = None

    def admin_shift_action(self, action, target_user_id=None, date=None):
        self.require_admin()
        date = date or self.selected_admin_date
        if not date: raise RosterError("No date selected.")
        _check_date(date)
        if action not in SHIFT_ACTIONS: raise RosterError(f"Unknown shift action '{action}'.")
        data = self.ensure_loaded()
        shift = data.shift(date) or ShiftDay(date=date)
        if action == 'confirm':
            if not target_user_id: raise RosterError("Choose who to confirm.")
            shift = replace(shift, confirmed_user_id=str(target_user_id), is_closed=False)
        elif action == 'close':
            shift = replace(shift, is_closed=not shift.is_closed, confirmed_user_id=None)
        else:
            shift = replace(shift, confirmed_user_id=None, is_closed=False)
        data.shifts[date] = shift
        self.selected_admin_date = None
        self._write('assignShift', {"date": date, "confirmedUserId": shift.confirmed_user_id or '', "isClosed": bool(shift.is_closed)}, 'Shift update')
        return shift

    def confirm_shift(self, date, user_id): return self.admin_shift_action('confirm', user_id, date=date)

    def close_shift(self, date): return self.admin_shift_action('close', date=date)

    def clear_shift(self, date): return self.admin_shift_action('clear', date=date)

    # --- Admin: users & settings ---
    def manage_user(self, action, user):
        self.require_admin()
        if action not in USER_ACTIONS: raise RosterError(f"Unknown user action '{action}'.")
        data = self.ensure_loaded()
        if action == 'add':
            user = new_student(user.get('name'), user.get('password'), user.get('color'))
            data.users.append(user)
        else:
            existing = data.find_user(user.get('id'))
            if not existing or existing.role != ROLE_STUDENT: raise RosterError("Student not found.")
            if action == 'delete':
                user = existing
                data.users = [u for u in data.users if u.id != existing.id]
            else:
                name, password = user.get('name') or '', user.get('password') or ''
                if not name.strip() or not password.strip(): raise RosterError("Name and password are required.")
                user = replace(existing, name=name.strip(), password=password.strip(), color=user.get('color') or existing.color)
                data.users = [user if u.id == user.id else u for u in data.users]
        self._write('manageUser', {"type": action, "user": user.to_dict()}, 'User update')
        return user

    def update_settings(self, settings):
        self.require_admin()
        data = self.ensure_loaded()
        if isinstance(settings, dict): settings = AppSettings.from_dict(settings)
        data.settings = settings
        self._write('updateSettings', settings.to_dict(), 'Settings update')
        return settings

    def initialize_remote(self):
        """Overwrite the backend with the local snapshot, then reload from it."""
        self.require_admin()
        data = self.ensure_loaded()
        with self._guard('upload'):
            self.syncing = True
            try:
                self.remote.send_action('initialize', data.to_dict())
                logger.info("Backend initialized from local snapshot")
                return self.load()
            finally:
                self.syncing = False

    def _write(self, action, payload, what):
        result = self.remote.apply(action, payload)
        if not result.ok:
            logger.warning(f"{what} failed ({result.reason}); reloading authoritative data")
            self.reload()
            raise RemoteStoreError(f"{what} failed: {result.reason}")
        return result


def new_student(name, password, color=None):
    name, password = (name or '').strip(), (password or '').strip()
    if not name or not password: raise RosterError("Name and password are required.")
    return User(id=f"u_{int(time.time() * 1000)}", name=name, role=ROLE_STUDENT, color=color or COLOR_PALETTE[0]['value'], password=password)


def _check_date(date):
    if not isinstance(date, str) or not re.match(ISO_DATE_REGEX, date):
        raise RosterError(f"Invalid date '{date}', expected YYYY-MM-DD.")
