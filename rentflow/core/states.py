"""
Contract state machine — the single authority for contract status changes.

    pending ──accept──> active ──request──> requested_termination
       │                  │                    │        │
     reject               ├─> pending_transaction <─────┘
       v                  ├─> terminated / expired
    rejected ──edit──> pending

`transition()` is the only code path that writes `contract.status`.
Every accepted transition appends an audit line to `contract.note`.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from rentflow.core.errors import InvalidTransitionError, MissingReasonError


class ContractStatus(str, Enum):
    PENDING = "pending"
    REJECTED = "rejected"
    ACTIVE = "active"
    REQUESTED_TERMINATION = "requested_termination"
    PENDING_TRANSACTION = "pending_transaction"
    TERMINATED = "terminated"
    EXPIRED = "expired"


TRANSITIONS: dict[ContractStatus, frozenset[ContractStatus]] = {
    ContractStatus.PENDING: frozenset({ContractStatus.ACTIVE, ContractStatus.REJECTED}),
    ContractStatus.REJECTED: frozenset({ContractStatus.PENDING}),
    ContractStatus.ACTIVE: frozenset(
        {
            ContractStatus.REQUESTED_TERMINATION,
            ContractStatus.PENDING_TRANSACTION,
            ContractStatus.TERMINATED,
            ContractStatus.EXPIRED,
        }
    ),
    ContractStatus.REQUESTED_TERMINATION: frozenset(
        {
            ContractStatus.PENDING_TRANSACTION,
            ContractStatus.TERMINATED,
            ContractStatus.ACTIVE,
        }
    ),
    ContractStatus.PENDING_TRANSACTION: frozenset({ContractStatus.TERMINATED, ContractStatus.EXPIRED}),
    ContractStatus.TERMINATED: frozenset(),
    ContractStatus.EXPIRED: frozenset(),
}

# Statuses that hold a claim on the room's calendar.
BLOCKING_STATUSES = frozenset(
    {ContractStatus.ACTIVE, ContractStatus.PENDING, ContractStatus.PENDING_TRANSACTION}
)

# Statuses during which the tenant physically occupies the room.
OCCUPYING_STATUSES = frozenset(
    {
        ContractStatus.ACTIVE,
        ContractStatus.REQUESTED_TERMINATION,
        ContractStatus.PENDING_TRANSACTION,
    }
)

TERMINAL_STATUSES = frozenset({ContractStatus.TERMINATED, ContractStatus.EXPIRED})

# Transitions that must carry a human-readable reason.
REASON_REQUIRED = frozenset({ContractStatus.REJECTED})


def is_allowed(from_status: ContractStatus | str, to_status: ContractStatus | str) -> bool:
    return ContractStatus(to_status) in TRANSITIONS[ContractStatus(from_status)]


def check_transition(
    from_status: ContractStatus | str,
    to_status: ContractStatus | str,
    reason: str | None = None,
) -> ContractStatus:
    """
    Validate a (from, to) pair against the table and its guards.

    Returns:
        The target status as a ContractStatus.

    Raises:
        InvalidTransitionError: the pair is not in the table.
        MissingReasonError: the target requires a reason and none was given.
    """
    source = ContractStatus(from_status)
    target = ContractStatus(to_status)

    if target not in TRANSITIONS[source]:
        raise InvalidTransitionError(source.value, target.value)

    if target in REASON_REQUIRED and not (reason or "").strip():
        raise MissingReasonError(source.value, target.value)

    return target


def transition(contract, to_status: ContractStatus | str, *, today: date, reason: str | None = None) -> ContractStatus:
    """Move `contract` to `to_status` after checking the table; records the change in the note."""
    source = ContractStatus(contract.status)
    target = check_transition(source, to_status, reason)

    contract.status = target.value
    line = f"[{today.isoformat()}] {source.value} -> {target.value}"
    if reason and reason.strip():
        line += f": {reason.strip()}"
    append_note(contract, line)
    return target


def append_note(contract, line: str) -> None:
    """Append one line to the contract's audit trail, never rewriting earlier lines."""
    current = contract.note or ""
    contract.note = f"{current}\n{line}" if current else line
