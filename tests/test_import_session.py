"""Tests for import session lifecycle rules and account locks."""

import threading
from datetime import datetime

import pytest

from fintrack.domain.entities import ImportSession, ImportStatus
from fintrack.domain.errors import DuplicateAccountLock, InvalidSessionState
from fintrack.domain.import_session import (
    TERMINAL_STATUSES,
    AccountImportLocks,
    can_transition,
    ensure_action_allowed,
    ensure_transition,
)


def make_session(status):
    now = datetime(2024, 1, 1)
    return ImportSession(
        id=1,
        account_id=1,
        filename="file.csv",
        row_count=0,
        status=status,
        error_message=None,
        format_config=None,
        csv_data=b"",
        created_at=now,
        updated_at=now,
    )


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (ImportStatus.UPLOADED, ImportStatus.PREVIEWED, True),
        (ImportStatus.UPLOADED, ImportStatus.CONFIRMED, False),
        (ImportStatus.UPLOADED, ImportStatus.FAILED, True),
        (ImportStatus.PREVIEWED, ImportStatus.PREVIEWED, True),
        (ImportStatus.PREVIEWED, ImportStatus.CONFIRMED, True),
        (ImportStatus.FAILED, ImportStatus.PREVIEWED, False),
        (ImportStatus.FAILED, ImportStatus.DISCARDED, True),
        (ImportStatus.CONFIRMED, ImportStatus.DISCARDED, False),
        (ImportStatus.DISCARDED, ImportStatus.UPLOADED, False),
    ],
)
def test_can_transition(current, target, allowed):
    assert can_transition(current, target) is allowed


def test_terminal_statuses():
    """Confirmed and discarded sessions never change again."""
    assert TERMINAL_STATUSES == {ImportStatus.CONFIRMED, ImportStatus.DISCARDED}


def test_ensure_action_allowed():
    ensure_action_allowed(make_session(ImportStatus.PREVIEWED), "confirm")

    with pytest.raises(InvalidSessionState) as exc_info:
        ensure_action_allowed(make_session(ImportStatus.UPLOADED), "confirm")

    error = exc_info.value
    assert error.current == "uploaded"
    assert error.action == "confirm"
    assert str(error) == "Cannot confirm import session 1: session is uploaded"


def test_ensure_transition_rejects_moves_out_of_terminal_state():
    with pytest.raises(InvalidSessionState):
        ensure_transition(make_session(ImportStatus.CONFIRMED), ImportStatus.FAILED, "fail")


class TestAccountImportLocks:
    """Tests for per-account confirm slots."""

    def test_second_hold_fails_fast(self):
        locks = AccountImportLocks()

        with locks.hold(1):
            assert locks.is_held(1)
            with pytest.raises(DuplicateAccountLock) as exc_info:
                with locks.hold(1):
                    pass
            assert exc_info.value.account_id == 1

        assert not locks.is_held(1)

    def test_accounts_are_independent(self):
        locks = AccountImportLocks()

        with locks.hold(1):
            with locks.hold(2):
                assert locks.is_held(1) and locks.is_held(2)

    def test_released_on_error(self):
        locks = AccountImportLocks()

        with pytest.raises(RuntimeError):
            with locks.hold(1):
                raise RuntimeError("boom")

        assert not locks.is_held(1)

    def test_held_across_threads(self):
        """A slot held by one thread is refused to another."""
        locks = AccountImportLocks()
        errors = []

        def contender():
            try:
                with locks.hold(7):
                    pass
            except DuplicateAccountLock as e:
                errors.append(e)

        with locks.hold(7):
            thread = threading.Thread(target=contender)
            thread.start()
            thread.join()

        assert len(errors) == 1
