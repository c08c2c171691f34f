# backend.py
#
# Stand-in for the spreadsheet script: one endpoint, GET ?action=getData and
# POST {action, payload}. Errors are answered as {"error": ...} with status 200,
# the same way the script does it.

import json
import logging
import re
from functools import wraps

from flask import Blueprint, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm.attributes import flag_modified

from models import ISO_DATE_REGEX, ROLE_STUDENT, default_app_data, normalize_date_key

db = SQLAlchemy()
backend_bp = Blueprint('backend', __name__)


class BackendError(Exception):
    pass


# --- Decorator for Error Handling ---
def script_error_handler(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try: return f(*args, **kwargs)
        except BackendError as e:
            db.session.rollback()
            return jsonify({"error": str(e)})
        except Exception as e:
            db.session.rollback()
            logging.error(f"An error occurred in backend action '{f.__name__}': {e}", exc_info=True)
            return jsonify({"error": f"Backend failure: {e}"})
    return decorated_function


# --- Database Models ---
class UserRow(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_STUDENT)
    color = db.Column(db.String(64), nullable=False, default='')
    password = db.Column(db.String(64), nullable=True)
    def to_dict(self):
        data = { "id": self.id, "name": self.name, "role": self.role, "color": self.color }
        if self.password: data["password"] = self.password
        return data


class ShiftRow(db.Model):
    __tablename__ = 'shifts'
    date = db.Column(db.String(10), primary_key=True)
    signups = db.Column(db.JSON, default=lambda: [])
    confirmed_user_id = db.Column(db.String(64), nullable=True)
    is_closed = db.Column(db.Boolean, default=False, nullable=False)
    def to_dict(self):
        data = { "date": self.date, "signups": list(self.signups or []) }
        if self.confirmed_user_id: data["confirmedUserId"] = self.confirmed_user_id
        if self.is_closed: data["isClosed"] = True
        return data


class SettingRow(db.Model):
    __tablename__ = 'settings'
    key = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.JSON)


# --- Helper Functions ---
def _seed_if_empty():
    if UserRow.query.first() or SettingRow.query.first(): return
    _write_everything(default_app_data().to_dict())


def _write_everything(data):
    ShiftRow.query.delete()
    UserRow.query.delete()
    SettingRow.query.delete()
    for u in data.get('users') or []:
        _upsert_user(u)
    for key, s in (data.get('shifts') or {}).items():
        date = normalize_date_key(key)
        confirmed = s.get('confirmedUserId') or None
        db.session.add(ShiftRow(date=date, signups=[str(x) for x in s.get('signups') or []],
                                confirmed_user_id=str(confirmed) if confirmed else None, is_closed=bool(s.get('isClosed'))))
    _write_settings(data.get('settings') or {})
    db.session.commit()


def _write_settings(settings):
    for key in ('adminPassword', 'holidays', 'googleSheetUrl'):
        row = db.session.get(SettingRow, key)
        if row is None:
            row = SettingRow(key=key)
            db.session.add(row)
        row.value = settings.get(key)


def _upsert_user(u):
    if not u.get('id') or not u.get('name'): raise BackendError("User needs an id and a name.")
    row = db.session.get(UserRow, str(u['id']))
    if row is None:
        row = UserRow(id=str(u['id']))
        db.session.add(row)
    row.name, row.role = u['name'], u.get('role') or ROLE_STUDENT
    row.color, row.password = u.get('color') or '', u.get('password') or None
    return row


def _get_shift(date):
    if not isinstance(date, str) or not re.match(ISO_DATE_REGEX, normalize_date_key(date)):
        raise BackendError(f"Invalid date: {date}")
    date = normalize_date_key(date)
    row = db.session.get(ShiftRow, date)
    if row is None:
        row = ShiftRow(date=date, signups=[], is_closed=False)
        db.session.add(row)
    return row


def snapshot():
    settings = {s.key: s.value for s in SettingRow.query.all()}
    return {
        "users": [u.to_dict() for u in UserRow.query.order_by(UserRow.id).all()],
        "shifts": {s.date: s.to_dict() for s in ShiftRow.query.all()},
        "settings": {"adminPassword": settings.get('adminPassword'), "holidays": settings.get('holidays') or [], "googleSheetUrl": settings.get('googleSheetUrl')},
    }


# --- Actions ---
def toggle_signup(payload):
    user_id = str(payload.get('userId') or '')
    if not user_id: raise BackendError("userId is required.")
    row = _get_shift(payload.get('date'))
    if row.signups is None: row.signups = []
    if user_id in row.signups: row.signups.remove(user_id)
    else: row.signups.append(user_id)
    flag_modified(row, "signups") # JSON column mutated in place
    db.session.commit()
    return {"success": True, "shift": row.to_dict()}


def assign_shift(payload):
    row = _get_shift(payload.get('date'))
    row.confirmed_user_id = str(payload.get('confirmedUserId') or '') or None
    row.is_closed = bool(payload.get('isClosed'))
    db.session.commit()
    return {"success": True, "shift": row.to_dict()}


def manage_user(payload):
    kind, user = payload.get('type'), payload.get('user') or {}
    if kind in ('add', 'edit'):
        _upsert_user(user)
    elif kind == 'delete':
        row = db.session.get(UserRow, str(user.get('id')))
        if row is None: raise BackendError(f"User not found: {user.get('id')}")
        db.session.delete(row)
    else:
        raise BackendError(f"Unknown user operation: {kind}")
    db.session.commit()
    return {"success": True}


def update_settings(payload):
    _write_settings(payload)
    db.session.commit()
    return {"success": True}


def initialize(payload):
    if not isinstance(payload.get('users'), list): raise BackendError("initialize needs the full data set.")
    _write_everything(payload)
    return {"success": True}


ACTION_HANDLERS = {
    'toggleSignup': toggle_signup,
    'assignShift': assign_shift,
    'manageUser': manage_user,
    'updateSettings': update_settings,
    'initialize': initialize,
}


# --- Endpoint ---
@backend_bp.route("/exec", methods=['GET'])
@script_error_handler
def handle_get():
    if request.args.get('action', 'getData') != 'getData': raise BackendError(f"Unknown action: {request.args.get('action')}")
    _seed_if_empty()
    return jsonify(snapshot())


@backend_bp.route("/exec", methods=['POST'])
@script_error_handler
def handle_post():
    try:
        envelope = json.loads(request.get_data(as_text=True) or '{}')
    except ValueError:
        raise BackendError("Request body is not valid JSON.")
    if not isinstance(envelope, dict): raise BackendError("Request body must be an object.")
    handler = ACTION_HANDLERS.get(envelope.get('action'))
    if handler is None: raise BackendError(f"Unknown action: {envelope.get('action')}")
    payload = envelope.get('payload') or {}
    if not isinstance(payload, dict): raise BackendError("payload must be an object.")
    return jsonify(handler(payload))
