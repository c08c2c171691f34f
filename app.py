# app.py

import logging
import os
import threading
import uuid
from collections import OrderedDict
from functools import wraps
from flask import Flask, jsonify, request, render_template, session
from flask_cors import CORS
from flask_migrate import Migrate

from app_state import AppState
from backend import backend_bp, db
from errors import RosterError
from models import COLOR_PALETTE, DEFAULT_HOLIDAYS, DEFAULT_STORE_URL, WEEKDAYS
from remote_store import RemoteStoreClient
import views

# --- App Initialization, Config, and Extensions ---
app = Flask(__name__)
CORS(app)
logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s:%(message)s')
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-roster-secret')
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///roster.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['REMOTE_STORE_URL'] = os.environ.get('REMOTE_STORE_URL', DEFAULT_STORE_URL)
app.config['REMOTE_STORE_TIMEOUT'] = float(os.environ.get('REMOTE_STORE_TIMEOUT', 30))
app.config['MAX_CLIENT_STATES'] = int(os.environ.get('MAX_CLIENT_STATES', 200))
db.init_app(app)
migrate = Migrate(app, db)
app.register_blueprint(backend_bp)
app.extensions['remote_store'] = RemoteStoreClient(app.config['REMOTE_STORE_URL'], timeout=app.config['REMOTE_STORE_TIMEOUT'])

# One working copy per browser session, least recently used first
client_states = OrderedDict()
client_states_lock = threading.Lock()


# --- Decorator for Error Handling ---
def api_error_handler(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try: return f(*args, **kwargs)
        except RosterError as e:
            body = {"error": str(e)}
            if getattr(e, 'count', None) is not None: body["unsaved"] = e.count
            return jsonify(body), e.status_code
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logging.error(f"An error occurred in endpoint '{f.__name__}': {e}", exc_info=True)
            return jsonify({"error": "An unexpected server error occurred."}), 500
    return decorated_function


# --- Helper Functions ---
def current_state():
    sid = session.get('sid')
    with client_states_lock:
        if sid and sid in client_states:
            client_states.move_to_end(sid)
            return client_states[sid]
        sid = sid or uuid.uuid4().hex
        session['sid'] = sid
        state = client_states[sid] = AppState(app.extensions['remote_store'])
        while len(client_states) > app.config['MAX_CLIENT_STATES']:
            evicted, _ = client_states.popitem(last=False)
            logging.info(f"Dropped idle session state {evicted}")
    return state


def release_state():
    sid = session.pop('sid', None)
    with client_states_lock:
        if sid: client_states.pop(sid, None)


def state_payload(state):
    data = state.ensure_loaded()
    user = state.current_user
    return {
        "user": user.to_dict() if user else None,
        "data": data.to_dict() if user and user.is_admin else _public_data(data),
        "pending": state.queue.to_list(),
        "selectedAdminDate": state.selected_admin_date,
        "saving": state.saving, "saveProgress": state.save_progress, "syncing": state.syncing,
    }


def _public_data(data):
    payload = data.to_dict()
    for u in payload['users']: u.pop('password', None)
    payload['settings'].pop('adminPassword', None)
    return payload


def _body():
    return request.get_json(silent=True) or {}


# --- API Endpoints ---
@app.route("/api/data", methods=['GET'])
@api_error_handler
def handle_data(): return jsonify(state_payload(current_state()))

@app.route("/api/login", methods=['POST'])
@api_error_handler
def login():
    payload, state = _body(), current_state()
    if payload.get('role') == 'ADMIN': user = state.login_admin(payload.get('password'))
    else: user = state.login_student(payload.get('userId'), payload.get('password'))
    return jsonify({"message": f"Welcome, {user.name}.", **state_payload(state)})

@app.route("/api/logout", methods=['POST'])
@api_error_handler
def logout():
    current_state().logout(force=bool(_body().get('force')))
    release_state()
    return jsonify({"message": "Logged out."})

@app.route("/api/sync", methods=['POST'])
@api_error_handler
def sync():
    state = current_state()
    state.sync(force=bool(_body().get('force')))
    return jsonify({"message": "Data synchronized.", **state_payload(state)})

@app.route("/api/shifts/<string:date>/click", methods=['POST'])
@api_error_handler
def click_date(date):
    state = current_state()
    result = state.click_date(date)
    return jsonify({**result, **state_payload(state)})

@app.route("/api/save", methods=['POST'])
@api_error_handler
def save_changes():
    state = current_state()
    report = state.save_changes()
    return jsonify({"report": report.to_dict(), "message": report.message, **state_payload(state)})

@app.route("/api/admin/shifts/<string:date>", methods=['GET', 'POST'])
@api_error_handler
def admin_shift(date):
    state = current_state()
    if request.method == 'GET':
        state.select_admin_date(date)
        return jsonify(views.admin_shift_context(state.ensure_loaded(), date))
    payload = _body()
    shift = state.admin_shift_action(payload.get('action'), payload.get('userId'), date=date)
    return jsonify({"shift": shift.to_dict(), **state_payload(state)})

@app.route("/api/admin/users", methods=['POST'])
@api_error_handler
def add_user():
    user = current_state().manage_user('add', _body())
    return jsonify({"message": f"Added {user.name}.", "user": user.to_dict()})

@app.route("/api/admin/users/<string:user_id>", methods=['PUT', 'DELETE'])
@api_error_handler
def change_user(user_id):
    action = 'edit' if request.method == 'PUT' else 'delete'
    user = current_state().manage_user(action, {**_body(), "id": user_id})
    return jsonify({"message": f"{'Updated' if action == 'edit' else 'Deleted'} {user.name}.", "user": user.to_dict()})

@app.route("/api/admin/settings", methods=['GET', 'POST'])
@api_error_handler
def handle_settings():
    state = current_state()
    if request.method == 'GET':
        state.require_admin()
        return jsonify({**state.ensure_loaded().settings.to_dict(), "defaultHolidays": DEFAULT_HOLIDAYS, "colors": COLOR_PALETTE})
    payload = _body()
    current = state.ensure_loaded().settings.to_dict()
    settings = {
        "adminPassword": payload.get('adminPassword', current['adminPassword']),
        "holidays": views.parse_holidays(payload.get('holidays', current['holidays'])),
        "googleSheetUrl": payload.get('googleSheetUrl', current['googleSheetUrl']),
    }
    state.update_settings(settings)
    return jsonify({"message": "Settings saved and synchronized.", "settings": settings})

@app.route("/api/admin/initialize", methods=['POST'])
@api_error_handler
def initialize_remote():
    state = current_state()
    state.initialize_remote()
    return jsonify({"message": "Backend initialized with the current data.", **state_payload(state)})

@app.route("/api/calendar", methods=['GET'])
@api_error_handler
def get_calendar():
    state = current_state()
    year, month = views.parse_month(request.args.get('month'))
    data = state.ensure_loaded()
    return jsonify({**views.calendar_month(data, year, month, state.current_user, state.queue.dates()), "today": views.today_status(data)})

@app.route("/api/stats", methods=['GET'])
@api_error_handler
def get_stats():
    year, month = views.parse_month(request.args.get('month'))
    return jsonify(views.monthly_stats(current_state().ensure_loaded(), year, month))

# --- HTML Rendering ---
@app.route("/print")
@api_error_handler
def print_page():
    year, month = views.parse_month(request.args.get('month'))
    table = views.print_table(current_state().ensure_loaded(), year, month)
    return render_template('print.html', table=table, weekdays=WEEKDAYS)

@app.route("/")
def home(): return render_template('scheduler.html')

@app.cli.command("init-db")
def init_db():
    """Create the bundled backend's tables."""
    db.create_all()
    logging.info("Backend tables created.")

if __name__ == "__main__":
    with app.app_context(): db.create_all()
    app.run(host='0.0.0.0', port=5000, debug=True)
