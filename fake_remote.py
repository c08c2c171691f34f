# fake_remote.py
#
# In-memory stand-in for RemoteStoreClient used by the test suites.

import copy

from errors import RemoteStoreError
from models import AppData, default_app_data_dict
from remote_store import Err, Ok


class FakeRemote:
    def __init__(self, data=None):
        self.data = copy.deepcopy(data) if data is not None else default_app_data_dict()
        self.sent = []
        self.fetch_count = 0
        self.fail_dates = set()
        self.fail_actions = set()
        self.fail_fetch = False

    def fetch_snapshot(self):
        self.fetch_count += 1
        if self.fail_fetch: raise RuntimeError("snapshot fetch exploded")
        return AppData.from_dict(copy.deepcopy(self.data))

    def send_action(self, action, payload):
        self.sent.append((action, copy.deepcopy(payload)))
        if action in self.fail_actions: raise RemoteStoreError(f"{action} rejected")
        if action == 'toggleSignup' and payload['date'] in self.fail_dates:
            raise RemoteStoreError("Sheet is locked")
        getattr(self, '_' + action)(payload)
        return {"success": True}

    def apply(self, action, payload):
        try: return Ok(self.send_action(action, payload))
        except RemoteStoreError as exc: return Err(str(exc))

    def _shift(self, date):
        return self.data['shifts'].setdefault(date, {"date": date, "signups": []})

    def _toggleSignup(self, payload):
        shift = self._shift(payload['date'])
        if payload['userId'] in shift['signups']: shift['signups'].remove(payload['userId'])
        else: shift['signups'].append(payload['userId'])

    def _assignShift(self, payload):
        shift = self._shift(payload['date'])
        shift['confirmedUserId'] = payload['confirmedUserId'] or None
        shift['isClosed'] = payload['isClosed']

    def _manageUser(self, payload):
        user = payload['user']
        users = [u for u in self.data['users'] if str(u['id']) != str(user['id'])]
        if payload['type'] != 'delete': users.append(user)
        self.data['users'] = users

    def _updateSettings(self, payload):
        self.data['settings'] = copy.deepcopy(payload)

    def _initialize(self, payload):
        self.data = copy.deepcopy(payload)

    def toggles(self):
        return [p for action, p in self.sent if action == 'toggleSignup']
