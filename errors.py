# errors.py


class RosterError(Exception):
    """Base class for errors reported back to the person using the roster."""
    status_code = 400


class LoginFailed(RosterError):
    status_code = 403


class PermissionDenied(RosterError):
    status_code = 403


class UnsavedChanges(RosterError):
    """Raised when a destructive operation would drop queued signups."""
    status_code = 409

    def __init__(self, operation, count):
        super().__init__(f"You have {count} unsaved change(s); {operation} would discard them.")
        self.operation = operation
        self.count = count


class Busy(RosterError):
    """Raised when a remote call is already in flight for this session."""
    status_code = 409

    def __init__(self, operation='request'):
        super().__init__(f"Another {operation} is still in progress, please wait.")


class RemoteStoreError(RosterError):
    """Transport failure, HTTP error or an ``{error}`` reply from the backend."""
    status_code = 502
