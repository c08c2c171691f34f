# remote_store.py

import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import requests

from errors import RemoteStoreError
from models import AppData, default_app_data_dict

logger = logging.getLogger(__name__)

ACTIONS = ('toggleSignup', 'assignShift', 'updateSettings', 'manageUser', 'initialize')
REQUIRED_KEYS = ('users', 'shifts')
EXPECTED_SHAPES = {'users': list, 'shifts': dict, 'settings': dict}


# --- Write results ---
@dataclass(frozen=True)
class Ok:
    data: Any = None
    ok = True


@dataclass(frozen=True)
class Err:
    reason: str
    ok = False


class RemoteStoreClient:
    """Talks to the spreadsheet script that owns every persisted row."""

    def __init__(self, endpoint, timeout=30, session=None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_snapshot(self):
        """GET the whole dataset. Never raises: bad or missing data falls back to the defaults."""
        cache_buster = int(time.time() * 1000)
        try:
            response = self.session.get(self.endpoint, params={"action": "getData", "t": cache_buster}, timeout=self.timeout)
            response.raise_for_status()
            raw = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error(f"Failed to fetch data from {self.endpoint}: {exc}")
            return AppData.from_dict(default_app_data_dict())
        if not isinstance(raw, dict):
            logger.error(f"Backend returned a non-object payload: {type(raw).__name__}")
            return AppData.from_dict(default_app_data_dict())
        if raw.get('error'):
            logger.error(f"Backend reported an error while fetching data: {raw['error']}")
            return AppData.from_dict(default_app_data_dict())
        # wrong-shaped sections count as missing
        usable = {k: v for k, v in raw.items() if k in EXPECTED_SHAPES and isinstance(v, EXPECTED_SHAPES[k])}
        if not all(key in usable for key in REQUIRED_KEYS):
            logger.warning(f"Backend returned incomplete data, merging over defaults (usable keys: {sorted(usable)})")
            merged = default_app_data_dict()
            merged.update(usable)
            return AppData.from_dict(merged)
        return AppData.from_dict(usable)

    def send_action(self, action, payload):
        """POST one action envelope and return the decoded reply; raises RemoteStoreError on any failure."""
        if action not in ACTIONS: raise RemoteStoreError(f"Unknown action '{action}'.")
        body = json.dumps({"action": action, "payload": payload}, ensure_ascii=False)
        try:
            response = self.session.post(
                self.endpoint,
                data=body.encode('utf-8'),
                headers={"Content-Type": "text/plain;charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteStoreError(f"Could not reach the backend: {exc}") from exc
        if not response.ok:
            raise RemoteStoreError(f"Server error: {response.status_code}")
        try:
            result = response.json()
        except ValueError as exc:
            raise RemoteStoreError("Backend reply was not valid JSON.") from exc
        if isinstance(result, dict) and result.get('error'):
            logger.error(f"Backend rejected '{action}': {result['error']}")
            raise RemoteStoreError(str(result['error']))
        return result

    def apply(self, action, payload):
        """Like send_action, but folds failures into an Err result for single-shot writes."""
        try:
            return Ok(self.send_action(action, payload))
        except RemoteStoreError as exc:
            return Err(str(exc))
