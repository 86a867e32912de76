"""
Financial clearance gate — decides how a termination completes.

1. Drop `draft` bills of the contract (unissued forecasts never block clearance).
2. Look for bills still owed: issued, partially_paid, overdue.
3. Any left -> `pending_transaction`; the room and tenancy are untouched.
4. None left -> `expired` when today >= end_date, else `terminated`;
   the room is released through the synchronizer.

The gate is idempotent for contracts already in `pending_transaction`: with
bills still owed it leaves the contract where it is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from rentflow.core.states import ContractStatus, is_allowed, transition
from rentflow.core.synchronizer import apply_deactivation
from rentflow.models.bill import UNPAID_BILL_STATUSES

logger = logging.getLogger(__name__)

UNPAID_BILL_STATUS_VALUES = tuple(s.value for s in UNPAID_BILL_STATUSES)


@dataclass
class ClearanceOutcome:
    status: ContractStatus
    room_freed: bool
    unpaid_bill_ids: list[int]

    @property
    def cleared(self) -> bool:
        return self.status != ContractStatus.PENDING_TRANSACTION


def completion_status(current: ContractStatus | str, end_date: date, today: date) -> ContractStatus:
    """
    Final status of a cleared contract.

    `expired` once the end date is reached, unless the table has no edge to it
    from the current state, in which case the agreed termination stands.
    """
    if today >= end_date and is_allowed(current, ContractStatus.EXPIRED):
        return ContractStatus.EXPIRED
    return ContractStatus.TERMINATED


async def resolve_termination(
    tx,
    contract,
    today: date,
    *,
    reason: str | None = None,
    hold: bool = False,
) -> ClearanceOutcome:
    """
    Run the clearance steps for `contract` inside `tx`.

    Args:
        reason: Recorded on the audit trail with the transition.
        hold: Park the contract in `pending_transaction` even when no bills
            are owed (used by the sweeper while a utility cut-off is pending).
    """
    dropped = await tx.bills.delete_draft_bills(contract.id)
    if dropped:
        logger.info("Dropped %s draft bill(s) of contract %s before clearance", dropped, contract.id)

    unpaid = await tx.bills.list_bills(contract.id, UNPAID_BILL_STATUS_VALUES)
    unpaid_ids = [b.id for b in unpaid]
    current = ContractStatus(contract.status)

    if unpaid or hold:
        if current != ContractStatus.PENDING_TRANSACTION:
            transition(contract, ContractStatus.PENDING_TRANSACTION, today=today, reason=reason)
        logger.info(
            "Contract %s awaits clearance (unpaid bills: %s, held: %s)",
            contract.id,
            unpaid_ids,
            hold,
        )
        return ClearanceOutcome(ContractStatus.PENDING_TRANSACTION, False, unpaid_ids)

    target = completion_status(current, contract.end_date, today)
    transition(contract, target, today=today, reason=reason)
    freed = await apply_deactivation(tx, contract, today)
    logger.info("Contract %s cleared as %s (room freed: %s)", contract.id, target.value, freed)
    return ClearanceOutcome(target, freed, [])
