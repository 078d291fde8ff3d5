"""Import session lifecycle rules.

Which session actions are allowed from which status, and the per-account
slot that keeps two confirms for the same account from interleaving.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from fintrack.domain.entities import ImportSession, ImportStatus
from fintrack.domain.errors import DuplicateAccountLock, InvalidSessionState

logger = logging.getLogger(__name__)

# action -> statuses the action may start from
ALLOWED_FROM = {
    "preview": frozenset({ImportStatus.UPLOADED, ImportStatus.PREVIEWED}),
    "confirm": frozenset({ImportStatus.PREVIEWED}),
    "discard": frozenset({ImportStatus.UPLOADED, ImportStatus.PREVIEWED, ImportStatus.FAILED}),
}

# status -> statuses it may move to
TRANSITIONS = {
    ImportStatus.UPLOADED: frozenset(
        {ImportStatus.PREVIEWED, ImportStatus.FAILED, ImportStatus.DISCARDED}
    ),
    ImportStatus.PREVIEWED: frozenset(
        {ImportStatus.PREVIEWED, ImportStatus.CONFIRMED, ImportStatus.FAILED, ImportStatus.DISCARDED}
    ),
    ImportStatus.FAILED: frozenset({ImportStatus.DISCARDED}),
    ImportStatus.CONFIRMED: frozenset(),
    ImportStatus.DISCARDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def can_transition(current: ImportStatus, target: ImportStatus) -> bool:
    """Return True if a session may move from ``current`` to ``target``."""
    return target in TRANSITIONS[current]


def ensure_action_allowed(session: ImportSession, action: str) -> None:
    """Check that ``action`` may run on the session in its current status.

    Raises:
        InvalidSessionState: If the session's status does not allow it
    """
    if session.status not in ALLOWED_FROM[action]:
        raise InvalidSessionState(session.id, session.status.value, action)


def ensure_transition(session: ImportSession, target: ImportStatus, action: str) -> None:
    """Check and log a status change before it is written.

    Raises:
        InvalidSessionState: If the table does not allow the move
    """
    if not can_transition(session.status, target):
        raise InvalidSessionState(session.id, session.status.value, action)
    logger.info(
        "Import session %d: %s -> %s", session.id, session.status.value, target.value
    )


class AccountImportLocks:
    """Process-local registry of per-account confirm slots.

    Acquisition never waits: a second confirm for an account that already
    holds its slot fails immediately with DuplicateAccountLock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._held: set[int] = set()

    @contextmanager
    def hold(self, account_id: int) -> Iterator[None]:
        """Hold the account's slot for the duration of the block.

        Raises:
            DuplicateAccountLock: If the slot is already held
        """
        with self._guard:
            if account_id in self._held:
                raise DuplicateAccountLock(account_id)
            self._held.add(account_id)
        try:
            yield
        finally:
            with self._guard:
                self._held.discard(account_id)

    def is_held(self, account_id: int) -> bool:
        with self._guard:
            return account_id in self._held


# Shared by every service in the process
ACCOUNT_IMPORT_LOCKS = AccountImportLocks()
