# action_queue.py

from models import PendingAction


def toggle_action(actions, action):
    """Return a new action tuple with ``action`` removed if queued, else appended.

    A second toggle of the same (date, user) pair returns the user to the state
    they started from, so the pair drops out of the queue instead of piling up.
    Remaining entries keep their relative order.
    """
    if action in actions:
        index = actions.index(action)
        return tuple(actions[:index]) + tuple(actions[index + 1:])
    return tuple(actions) + (action,)


class ActionQueue:
    """Ordered ledger of signup toggles that have not reached the backend yet."""

    def __init__(self, actions=()):
        self._actions = ()
        for action in actions: self._actions = toggle_action(self._actions, action)

    def enqueue_toggle(self, date, user_id):
        self._actions = toggle_action(self._actions, PendingAction(date=date, user_id=str(user_id)))
        return len(self._actions)

    def clear(self):
        self._actions = ()

    def snapshot(self):
        return self._actions

    def dates(self):
        return {a.date for a in self._actions}

    def size(self):
        return len(self._actions)

    def __len__(self): return len(self._actions)

    def __bool__(self): return bool(self._actions)

    def __iter__(self): return iter(self._actions)

    def to_list(self):
        return [a.to_payload() for a in self._actions]
