# reconcile.py

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from errors import RemoteStoreError

logger = logging.getLogger(__name__)


@dataclass
class FlushReport:
    total: int = 0
    succeeded: int = 0
    last_error: str = ''
    snapshot: Optional[object] = None
    system_error: str = ''

    @property
    def failed(self): return self.total - self.succeeded

    @property
    def ok(self): return not self.system_error and self.succeeded == self.total

    @property
    def message(self):
        if self.system_error:
            return f"System error while saving: {self.system_error}"
        if self.total == 0:
            return "Nothing to save."
        if self.ok:
            return f"All {self.total} change(s) saved."
        return (f"Saving ran into problems: {self.succeeded} succeeded, {self.failed} failed. "
                f"Last error: {self.last_error or 'unknown error'}. Check your connection and try again.")

    def to_dict(self):
        return {"ok": self.ok, "total": self.total, "succeeded": self.succeeded, "failed": self.failed,
                "lastError": self.last_error, "message": self.message}


def flush_actions(actions, remote, on_progress: Optional[Callable[[int, int], None]] = None):
    """Send queued toggles one by one, then refetch the authoritative snapshot.

    Every action is attempted even after a failure; action i+1 is only sent once
    action i has answered. The snapshot is refetched whether or not everything
    succeeded, so failed toggles are dropped rather than retried.
    """
    actions = list(actions)
    report = FlushReport(total=len(actions))
    if not actions: return report
    try:
        for index, action in enumerate(actions):
            if on_progress: on_progress(index + 1, report.total)
            try:
                result = remote.send_action('toggleSignup', action.to_payload())
            except RemoteStoreError as exc:
                logger.warning(f"Saving signup {action.user_id}@{action.date} failed: {exc}")
                report.last_error = str(exc) or 'unknown error'
                continue
            except Exception as exc:
                logger.error(f"Unexpected failure saving signup {action.user_id}@{action.date}: {exc}", exc_info=True)
                report.last_error = str(exc) or exc.__class__.__name__
                continue
            if result:
                report.succeeded += 1
            else:
                report.last_error = 'Backend returned an empty reply.'
        if not report.ok:
            logger.warning(f"Flush finished with {report.failed} of {report.total} failure(s); reloading data")
        report.snapshot = remote.fetch_snapshot()
    except Exception as exc:
        logger.error(f"Unexpected error while flushing queued signups: {exc}", exc_info=True)
        report.system_error = str(exc) or exc.__class__.__name__
    return report
