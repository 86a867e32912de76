"""
Conflict detection for room bookings.

Two contracts conflict when both are in a blocking status and their
[start_date, end_date] periods intersect with inclusive bounds:

    (new.start within existing) OR (new.end within existing) OR (new contains existing)
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable

from rentflow.core.errors import ContractConflictError
from rentflow.core.states import BLOCKING_STATUSES, ContractStatus

logger = logging.getLogger(__name__)

BLOCKING_STATUS_VALUES = tuple(sorted(s.value for s in BLOCKING_STATUSES))


def overlaps(start: date, end: date, other_start: date, other_end: date) -> bool:
    return (
        other_start <= start <= other_end
        or other_start <= end <= other_end
        or (start <= other_start and end >= other_end)
    )


def first_conflict(
    candidates: Iterable[Any],
    start: date,
    end: date,
    exclude_contract_id: int | None = None,
) -> Any | None:
    """Return the first blocking, non-deleted candidate overlapping [start, end]."""
    for contract in candidates:
        if exclude_contract_id is not None and contract.id == exclude_contract_id:
            continue
        if getattr(contract, "deleted_at", None) is not None:
            continue
        if ContractStatus(contract.status) not in BLOCKING_STATUSES:
            continue
        if overlaps(start, end, contract.start_date, contract.end_date):
            return contract
    return None


async def find_conflict(
    tx,
    room_id: int,
    start: date,
    end: date,
    exclude_contract_id: int | None = None,
) -> Any | None:
    return await tx.contracts.find_conflict(
        room_id,
        start,
        end,
        BLOCKING_STATUS_VALUES,
        exclude_contract_id=exclude_contract_id,
    )


async def assert_no_conflict(
    tx,
    room_id: int,
    start: date,
    end: date,
    exclude_contract_id: int | None = None,
) -> None:
    """Raise ContractConflictError naming the blocking contract if the period is taken."""
    existing = await find_conflict(tx, room_id, start, end, exclude_contract_id)
    if existing is None:
        return

    logger.warning(
        "Room %s conflict: requested %s..%s overlaps contract %s (%s..%s)",
        room_id,
        start.isoformat(),
        end.isoformat(),
        existing.id,
        existing.start_date.isoformat(),
        existing.end_date.isoformat(),
    )
    raise ContractConflictError(room_id, existing.id, existing.start_date, existing.end_date)
