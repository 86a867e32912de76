"""
Expiry Sweeper — moves contracts whose end date has passed through the state machine.

Per contract, in its own transaction:
- `active`: clearance gate. While the building's utility cut-off for the
  contract's last period has not passed, the contract is parked in
  `pending_transaction` so the final utility bill can still be issued.
- `pending`: never approved before its period ended; rejected automatically.
- `pending_transaction`: re-resolved once the cut-off has passed.

A failure on one contract is logged and does not stop the sweep.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

from rentflow.core.clearance import resolve_termination
from rentflow.core.dates import cutoff_in_month, previous_cutoff
from rentflow.core.states import ContractStatus, transition

logger = logging.getLogger(__name__)

SWEEP_STATUSES = (
    ContractStatus.ACTIVE.value,
    ContractStatus.PENDING.value,
    ContractStatus.PENDING_TRANSACTION.value,
)

AUTO_REJECT_REASON = "period ended before approval"


def awaiting_utility_cutoff(end_date: date, today: date, cutoff_day: int | None) -> bool:
    """
    True while the utility bill covering the contract's final days is not cut yet.

    Utilities are billed on `cutoff_day` each month for the period before it.
    A contract that ended after the previous cut-off is only fully billed once
    this month's cut-off has been reached.
    """
    if not cutoff_day:
        return False
    this_cutoff = cutoff_in_month(today.year, today.month, cutoff_day)
    if today >= this_cutoff:
        return False
    return end_date > previous_cutoff(today, cutoff_day)


class ExpirySweeper:
    def __init__(self, transactions, *, dispatcher=None, clock: Callable[[], date] = date.today):
        self.transactions = transactions
        self.dispatcher = dispatcher
        self.clock = clock

    async def sweep(self) -> int:
        """Process every due contract. Returns how many changed status."""
        today = self.clock()

        async with self.transactions.begin() as tx:
            contract_ids = await tx.contracts.list_ids_for_sweep(SWEEP_STATUSES, today)

        if not contract_ids:
            logger.info("Sweep %s: nothing due", today.isoformat())
            return 0

        changed = 0
        failed = 0
        for contract_id in contract_ids:
            try:
                if await self._sweep_one(contract_id, today):
                    changed += 1
            except Exception:
                failed += 1
                logger.exception("Sweep failed for contract %s", contract_id)

        logger.info(
            "Sweep %s: %s due, %s transitioned, %s failed",
            today.isoformat(),
            len(contract_ids),
            changed,
            failed,
        )
        return changed

    async def _sweep_one(self, contract_id: int, today: date) -> bool:
        async with self.transactions.begin() as tx:
            contract = await tx.contracts.get(contract_id)
            if contract is None:
                return False
            await tx.rooms.get(contract.room_id, for_update=True)
            contract = await tx.contracts.get(contract_id, for_update=True)

            # Re-check under the lock; a user request may have moved it meanwhile.
            if contract is None or contract.end_date >= today:
                return False

            status = ContractStatus(contract.status)
            if status == ContractStatus.PENDING:
                transition(contract, ContractStatus.REJECTED, today=today, reason=AUTO_REJECT_REASON)
                tx.outbox.add(
                    "contract_rejected",
                    contract.tenant_user_id,
                    contract_id=contract.id,
                    reason=AUTO_REJECT_REASON,
                )
                changed = True
            elif status in (ContractStatus.ACTIVE, ContractStatus.PENDING_TRANSACTION):
                cutoff_day = await tx.rooms.billing_cutoff_day(contract.room_id)
                hold = awaiting_utility_cutoff(contract.end_date, today, cutoff_day)
                if hold and status == ContractStatus.PENDING_TRANSACTION:
                    return False
                outcome = await resolve_termination(
                    tx,
                    contract,
                    today,
                    reason="end date passed",
                    hold=hold,
                )
                changed = outcome.status != status
                if changed:
                    tx.outbox.add(
                        f"contract_{outcome.status.value}",
                        contract.tenant_user_id,
                        contract_id=contract.id,
                        room_freed=outcome.room_freed,
                        unpaid_bill_ids=outcome.unpaid_bill_ids,
                    )
            else:
                return False

        await tx.outbox.drain(self.dispatcher)
        return changed
