from __future__ import annotations

from datetime import date
from types import SimpleNamespace

import pytest

from rentflow.core.errors import InvalidTransitionError, MissingReasonError, TransitionError
from rentflow.core.states import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    ContractStatus,
    append_note,
    check_transition,
    is_allowed,
    transition,
)

S = ContractStatus

ALLOWED = {
    (S.PENDING, S.ACTIVE),
    (S.PENDING, S.REJECTED),
    (S.REJECTED, S.PENDING),
    (S.ACTIVE, S.REQUESTED_TERMINATION),
    (S.ACTIVE, S.PENDING_TRANSACTION),
    (S.ACTIVE, S.TERMINATED),
    (S.ACTIVE, S.EXPIRED),
    (S.REQUESTED_TERMINATION, S.PENDING_TRANSACTION),
    (S.REQUESTED_TERMINATION, S.TERMINATED),
    (S.REQUESTED_TERMINATION, S.ACTIVE),
    (S.PENDING_TRANSACTION, S.TERMINATED),
    (S.PENDING_TRANSACTION, S.EXPIRED),
}

ALL_PAIRS = [(a, b) for a in S for b in S]


def test_table_matches_documented_edges():
    edges = {(src, dst) for src, targets in TRANSITIONS.items() for dst in targets}
    assert edges == ALLOWED


@pytest.mark.parametrize("source,target", ALL_PAIRS)
def test_every_pair_is_accepted_or_refused(source, target):
    reason = "because" if target == S.REJECTED else None
    if (source, target) in ALLOWED:
        assert check_transition(source, target, reason) == target
    else:
        with pytest.raises(InvalidTransitionError) as exc:
            check_transition(source, target, reason)
        assert exc.value.from_status == source.value
        assert exc.value.to_status == target.value


@pytest.mark.parametrize("terminal", [S.TERMINATED, S.EXPIRED])
def test_terminal_states_have_no_way_out(terminal):
    assert not any(is_allowed(terminal, target) for target in S)


def test_pending_cannot_expire_directly():
    assert not is_allowed("pending", "expired")


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(reason):
    with pytest.raises(MissingReasonError) as exc:
        check_transition(S.PENDING, S.REJECTED, reason)
    assert exc.value.code == "reason_required"
    assert isinstance(exc.value, TransitionError)


def test_unknown_status_string_is_not_silently_accepted():
    with pytest.raises(ValueError):
        check_transition("pending", "archived")


def test_status_groups():
    assert BLOCKING_STATUSES == {S.ACTIVE, S.PENDING, S.PENDING_TRANSACTION}
    assert OCCUPYING_STATUSES == {S.ACTIVE, S.REQUESTED_TERMINATION, S.PENDING_TRANSACTION}
    assert TERMINAL_STATUSES == {S.TERMINATED, S.EXPIRED}


def test_transition_writes_status_and_appends_audit_line():
    contract = SimpleNamespace(status="pending", note="[2025-01-01] created as pending")

    result = transition(contract, S.REJECTED, today=date(2025, 1, 20), reason="  wrong room ")

    assert result == S.REJECTED
    assert contract.status == "rejected"
    assert contract.note.splitlines() == [
        "[2025-01-01] created as pending",
        "[2025-01-20] pending -> rejected: wrong room",
    ]


def test_refused_transition_leaves_contract_untouched():
    contract = SimpleNamespace(status="terminated", note=None)

    with pytest.raises(InvalidTransitionError):
        transition(contract, S.ACTIVE, today=date(2025, 1, 20))

    assert contract.status == "terminated"
    assert contract.note is None


def test_append_note_starts_empty_trail():
    contract = SimpleNamespace(note=None)
    append_note(contract, "first")
    append_note(contract, "second")
    assert contract.note == "first\nsecond"
