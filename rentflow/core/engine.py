"""
Contract Lifecycle Engine — the public surface of the contract core.

Every mutating operation follows the same shape:

    validate input (no transaction yet)
    -> open transaction
    -> lock the room row, then the contract row
    -> not-found check, then access check
    -> conflict check (create / update / approve / restore)
    -> transition table -> synchronizer / clearance gate
    -> commit
    -> drain the outbox (notifications)

Conflict detection happens under the room lock, so two requests for the same
room cannot both pass the check and both commit.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import Any, Callable

from rentflow.core.access import Action, Actor, ensure_allowed, listing_scope
from rentflow.core.clearance import resolve_termination
from rentflow.core.conflicts import assert_no_conflict
from rentflow.core.errors import (
    ContractNotFoundError,
    ContractStateError,
    ContractValidationError,
)
from rentflow.core.states import (
    BLOCKING_STATUSES,
    OCCUPYING_STATUSES,
    ContractStatus,
    append_note,
    check_transition,
    transition,
)
from rentflow.core.stores import ContractFilters, ContractPage
from rentflow.core.synchronizer import apply_activation, apply_deactivation
from rentflow.core.terms import ContractPolicy, ContractTerms, terms_from_payload, validate_terms

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "start_date",
    "duration_months",
    "rent_amount",
    "deposit_amount",
    "penalty_rate",
    "payment_cycle_months",
    "file_key",
)

EDITABLE_STATUSES = frozenset({ContractStatus.PENDING, ContractStatus.REJECTED})

MAX_PAGE_SIZE = 100


class ApprovalDecision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


class TerminationAnswer(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


def _parse_choice(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ContractValidationError([f"{field_name} must be one of: {allowed}"]) from None


def _require_text(value: str | None, field_name: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ContractValidationError([f"{field_name} is required"])
    return text


def _check_filters(filters: ContractFilters) -> None:
    violations = []
    if filters.page < 1:
        violations.append("page must be at least 1")
    if not 1 <= filters.limit <= MAX_PAGE_SIZE:
        violations.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    if filters.status is not None and filters.status not in {s.value for s in ContractStatus}:
        violations.append(f"unknown status: {filters.status}")
    if filters.start_from and filters.start_to and filters.start_from > filters.start_to:
        violations.append("start_from must not be after start_to")
    if violations:
        raise ContractValidationError(violations)


class ContractLifecycleEngine:
    """
    Orchestrates contract operations over injected repositories.

    Usage:
        engine = ContractLifecycleEngine(SqlTransactionManager(async_session), dispatcher=notifier)
        contract = await engine.create_contract(terms, actor=actor)
        contract = await engine.approve_contract(contract.id, "accept", actor=tenant)
    """

    def __init__(
        self,
        transactions,
        *,
        policy: ContractPolicy | None = None,
        dispatcher=None,
        clock: Callable[[], date] = date.today,
    ):
        self.transactions = transactions
        self.policy = policy or ContractPolicy()
        self.dispatcher = dispatcher
        self.clock = clock

    def today(self) -> date:
        return self.clock()

    # --- Reads ---

    async def get_contract(self, contract_id: int, actor: Actor | None = None, *, include_deleted: bool = False):
        async with self.transactions.begin() as tx:
            contract = await tx.contracts.get(contract_id, include_deleted=include_deleted)
            if contract is None:
                raise ContractNotFoundError(contract_id)
            room = await tx.rooms.get(contract.room_id)
            await self._authorize(tx, actor, Action.READ, contract, room)
        return contract

    async def list_contracts(self, filters: ContractFilters | None = None, actor: Actor | None = None) -> ContractPage:
        """
        Non-deleted contracts visible to `actor`, newest first, one page at a time.

        A tenant's own id replaces any tenant filter they pass. A manager who
        manages no building gets an empty page.
        """
        filters = filters or ContractFilters()
        _check_filters(filters)

        async with self.transactions.begin() as tx:
            scope = await listing_scope(tx, actor)
            if scope.is_empty:
                return ContractPage(items=[], total=0, page=filters.page, limit=filters.limit)
            if scope.tenant_user_id is not None:
                filters = replace(filters, tenant_user_id=scope.tenant_user_id)
            items, total = await tx.contracts.list_contracts(filters, building_ids=scope.building_ids)

        return ContractPage(items=items, total=total, page=filters.page, limit=filters.limit)

    # --- Creation and editing ---

    async def create_contract(self, terms: ContractTerms | dict, actor: Actor | None = None):
        """Validate, check the room calendar and store a new contract in `pending`."""
        if isinstance(terms, dict):
            terms = terms_from_payload(terms)
        today = self.today()
        validate_terms(terms, self.policy, today)
        end_date = terms.end_date

        async with self.transactions.begin() as tx:
            room = await tx.rooms.get(terms.room_id, for_update=True)
            if room is None or not room.is_active:
                raise ContractValidationError([f"room {terms.room_id} not found or inactive"])

            await ensure_allowed(
                tx,
                actor,
                Action.CREATE,
                building_id=room.building_id,
                tenant_user_id=terms.tenant_user_id,
            )
            await assert_no_conflict(tx, room.id, terms.start_date, end_date)

            contract = await tx.contracts.create(
                room_id=room.id,
                tenant_user_id=terms.tenant_user_id,
                start_date=terms.start_date,
                duration_months=terms.duration_months,
                end_date=end_date,
                rent_amount=terms.rent_amount,
                deposit_amount=terms.deposit_amount,
                penalty_rate=terms.penalty_rate,
                payment_cycle_months=terms.payment_cycle_months,
                status=ContractStatus.PENDING.value,
                note=terms.note,
                file_key=terms.file_key,
            )
            append_note(contract, f"[{today.isoformat()}] created as {ContractStatus.PENDING.value}")

            tx.outbox.add(
                "contract_created",
                contract.tenant_user_id,
                contract_id=contract.id,
                room_id=room.id,
                room_number=room.room_number,
                start_date=contract.start_date.isoformat(),
                end_date=contract.end_date.isoformat(),
            )

        logger.info(
            "Contract %s created for room %s, tenant %s (%s..%s)",
            contract.id,
            contract.room_id,
            contract.tenant_user_id,
            contract.start_date,
            contract.end_date,
        )
        await tx.outbox.drain(self.dispatcher)
        return contract

    async def update_contract(self, contract_id: int, changes: dict[str, Any], actor: Actor | None = None):
        """
        Edit a contract that is still `pending` or `rejected`.

        Dates and amounts are re-validated and the calendar re-checked with the
        contract itself excluded. Editing a rejected contract re-submits it
        (`rejected -> pending`). A `note` in `changes` is appended to the trail.
        """
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS) - {"note"})
        if unknown:
            raise ContractValidationError([f"fields cannot be updated: {', '.join(unknown)}"])

        today = self.today()
        current = await self._peek(contract_id, actor, Action.UPDATE)
        validate_terms(ContractTerms.of(current).merged(changes), self.policy, today)

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.UPDATE, contract, room)

            status = ContractStatus(contract.status)
            if status not in EDITABLE_STATUSES:
                raise ContractStateError(f"Contract {contract_id} cannot be edited while {status.value}")

            # Re-merge against the locked row; it may have changed since the peek.
            terms = validate_terms(ContractTerms.of(contract).merged(changes), self.policy, today)
            await assert_no_conflict(tx, room.id, terms.start_date, terms.end_date, exclude_contract_id=contract.id)

            contract.start_date = terms.start_date
            contract.duration_months = terms.duration_months
            contract.end_date = terms.end_date
            contract.rent_amount = terms.rent_amount
            contract.deposit_amount = terms.deposit_amount
            contract.penalty_rate = terms.penalty_rate
            contract.payment_cycle_months = terms.payment_cycle_months
            contract.file_key = terms.file_key

            if changes.get("note"):
                append_note(contract, str(changes["note"]).strip())
            if status == ContractStatus.REJECTED:
                transition(contract, ContractStatus.PENDING, today=today, reason="resubmitted after edits")
            else:
                append_note(contract, f"[{today.isoformat()}] terms updated")

            tx.outbox.add("contract_updated", contract.tenant_user_id, contract_id=contract.id, status=contract.status)

        await tx.outbox.drain(self.dispatcher)
        return contract

    # --- Approval ---

    async def approve_contract(
        self,
        contract_id: int,
        action: ApprovalDecision | str,
        reason: str | None = None,
        actor: Actor | None = None,
    ):
        """`pending -> active` (accept) or `pending -> rejected` (reject, reason required)."""
        decision = _parse_choice(ApprovalDecision, action, "action")
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.APPROVE, contract, room)

            if decision == ApprovalDecision.REJECT:
                transition(contract, ContractStatus.REJECTED, today=today, reason=reason)
                await self._notify_managers(tx, room, "contract_rejected", contract_id=contract.id, reason=reason)
            else:
                check_transition(contract.status, ContractStatus.ACTIVE)
                if contract.end_date <= today:
                    raise ContractStateError(f"Contract {contract_id} ended on {contract.end_date.isoformat()}")
                await assert_no_conflict(
                    tx, room.id, contract.start_date, contract.end_date, exclude_contract_id=contract.id
                )
                transition(contract, ContractStatus.ACTIVE, today=today)
                await apply_activation(tx, contract)
                await self._notify_managers(tx, room, "contract_activated", contract_id=contract.id)
                tx.outbox.add("contract_activated", contract.tenant_user_id, contract_id=contract.id)

        await tx.outbox.drain(self.dispatcher)
        return contract

    # --- Termination ---

    async def request_termination(self, contract_id: int, reason: str, actor: Actor | None = None):
        """`active -> requested_termination`; the tenant is asked to confirm."""
        reason = _require_text(reason, "reason")
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.REQUEST_TERMINATION, contract, room)

            transition(contract, ContractStatus.REQUESTED_TERMINATION, today=today, reason=reason)
            tx.outbox.add(
                "termination_requested",
                contract.tenant_user_id,
                contract_id=contract.id,
                reason=reason,
            )

        await tx.outbox.drain(self.dispatcher)
        return contract

    async def handle_termination_request(
        self,
        contract_id: int,
        action: TerminationAnswer | str,
        actor: Actor | None = None,
    ):
        """
        Tenant's answer to a termination request.

        approve -> clearance gate (`pending_transaction`, `terminated` or `expired`)
        reject  -> back to `active`
        """
        answer = _parse_choice(TerminationAnswer, action, "action")
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.ANSWER_TERMINATION, contract, room)
            self._require_status(contract, ContractStatus.REQUESTED_TERMINATION)

            if answer == TerminationAnswer.REJECT:
                # requested_termination does not block, so the period may have been claimed meanwhile.
                await assert_no_conflict(
                    tx, room.id, contract.start_date, contract.end_date, exclude_contract_id=contract.id
                )
                transition(contract, ContractStatus.ACTIVE, today=today, reason="termination declined by tenant")
                await self._notify_managers(tx, room, "termination_declined", contract_id=contract.id)
            else:
                outcome = await resolve_termination(tx, contract, today, reason="termination accepted by tenant")
                await self._notify_managers(
                    tx,
                    room,
                    "termination_accepted",
                    contract_id=contract.id,
                    status=outcome.status.value,
                    unpaid_bill_ids=outcome.unpaid_bill_ids,
                )
                self._notify_outcome(tx, contract, outcome)

        await tx.outbox.drain(self.dispatcher)
        return contract

    async def force_terminate(self, contract_id: int, reason: str, evidence: str, actor: Actor | None = None):
        """Administrative completion of a termination request the tenant did not answer."""
        reason = _require_text(reason, "reason")
        evidence = _require_text(evidence, "evidence")
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.FORCE_TERMINATE, contract, room)
            self._require_status(contract, ContractStatus.REQUESTED_TERMINATION)

            append_note(contract, f"[{today.isoformat()}] forced termination evidence: {evidence}")
            outcome = await resolve_termination(tx, contract, today, reason=f"forced: {reason}")
            tx.outbox.add(
                "contract_force_terminated",
                contract.tenant_user_id,
                contract_id=contract.id,
                reason=reason,
                status=outcome.status.value,
            )

        await tx.outbox.drain(self.dispatcher)
        return contract

    async def resolve_pending_transaction(self, contract_id: int, actor: Actor | None = None):
        """Re-run the clearance gate on a contract stuck in `pending_transaction`."""
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.RESOLVE, contract, room)
            self._require_status(contract, ContractStatus.PENDING_TRANSACTION)

            outcome = await resolve_termination(tx, contract, today, reason="financial clearance completed")
            if outcome.cleared:
                self._notify_outcome(tx, contract, outcome)
            else:
                logger.info("Contract %s still has unpaid bills %s", contract.id, outcome.unpaid_bill_ids)

        await tx.outbox.drain(self.dispatcher)
        return contract

    # --- Deletion ---

    async def delete_contract(self, contract_id: int, actor: Actor | None = None):
        """Soft delete. A contract still holding its room gives the room back."""
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id)
            await self._authorize(tx, actor, Action.DELETE, contract, room)

            if ContractStatus(contract.status) in OCCUPYING_STATUSES:
                await apply_deactivation(tx, contract, today)
            append_note(contract, f"[{today.isoformat()}] deleted")
            await tx.contracts.soft_delete(contract)

        logger.info("Contract %s soft-deleted", contract_id)
        return contract

    async def restore_contract(self, contract_id: int, actor: Actor | None = None):
        """
        Undo a soft delete.

        A contract that claims the room again is re-checked against the
        calendar; one that occupies the room is re-synchronized while its
        end date is still ahead.
        """
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id, include_deleted=True)
            await self._authorize(tx, actor, Action.RESTORE, contract, room)
            if contract.deleted_at is None:
                raise ContractStateError(f"Contract {contract_id} is not deleted")

            status = ContractStatus(contract.status)
            if status in BLOCKING_STATUSES or status in OCCUPYING_STATUSES:
                await assert_no_conflict(
                    tx, room.id, contract.start_date, contract.end_date, exclude_contract_id=contract.id
                )

            await tx.contracts.restore(contract)
            append_note(contract, f"[{today.isoformat()}] restored")

            if status in OCCUPYING_STATUSES and contract.end_date > today:
                await apply_activation(tx, contract)

        logger.info("Contract %s restored (%s)", contract_id, contract.status)
        return contract

    async def hard_delete_contract(self, contract_id: int, actor: Actor | None = None) -> None:
        """Irreversibly remove a contract. Refused while any bill references it."""
        today = self.today()

        async with self.transactions.begin() as tx:
            contract, room = await self._lock(tx, contract_id, include_deleted=True)
            await self._authorize(tx, actor, Action.HARD_DELETE, contract, room)

            bill_count = await tx.bills.count_for_contract(contract.id)
            if bill_count:
                raise ContractStateError(f"Contract {contract_id} is referenced by {bill_count} bill(s)")

            if room is not None and room.current_contract_id == contract.id:
                await apply_deactivation(tx, contract, today)
            await tx.contracts.hard_delete(contract)

        logger.warning("Contract %s permanently deleted", contract_id)

    # --- Expiry ---

    async def sweep_expired(self) -> int:
        from rentflow.core.sweeper import ExpirySweeper

        return await ExpirySweeper(self.transactions, dispatcher=self.dispatcher, clock=self.clock).sweep()

    # --- Helpers ---

    async def _peek(self, contract_id: int, actor: Actor | None, action: Action):
        """Unlocked read with the not-found and access checks, for validation ahead of the locked pass."""
        async with self.transactions.begin() as tx:
            contract = await tx.contracts.get(contract_id)
            if contract is None:
                raise ContractNotFoundError(contract_id)
            room = await tx.rooms.get(contract.room_id)
            await self._authorize(tx, actor, action, contract, room)
        return contract

    @staticmethod
    async def _lock(tx, contract_id: int, *, include_deleted: bool = False):
        """Lock the contract's room, then the contract itself. Room first on every path."""
        contract = await tx.contracts.get(contract_id, include_deleted=include_deleted)
        if contract is None:
            raise ContractNotFoundError(contract_id)

        room = await tx.rooms.get(contract.room_id, for_update=True)
        contract = await tx.contracts.get(contract_id, include_deleted=include_deleted, for_update=True)
        if contract is None:
            raise ContractNotFoundError(contract_id)
        return contract, room

    @staticmethod
    async def _authorize(tx, actor: Actor | None, action: Action, contract, room) -> None:
        await ensure_allowed(
            tx,
            actor,
            action,
            building_id=room.building_id if room is not None else -1,
            tenant_user_id=contract.tenant_user_id,
        )

    @staticmethod
    def _require_status(contract, expected: ContractStatus) -> None:
        if ContractStatus(contract.status) != expected:
            raise ContractStateError(
                f"Contract {contract.id} is {contract.status}, expected {expected.value}"
            )

    @staticmethod
    async def _notify_managers(tx, room, event_type: str, **data) -> None:
        if room is None:
            return
        for manager_id in await tx.access.manager_ids(room.building_id):
            tx.outbox.add(event_type, manager_id, room_id=room.id, **data)

    @staticmethod
    def _notify_outcome(tx, contract, outcome) -> None:
        tx.outbox.add(
            f"contract_{outcome.status.value}",
            contract.tenant_user_id,
            contract_id=contract.id,
            room_freed=outcome.room_freed,
            unpaid_bill_ids=outcome.unpaid_bill_ids,
        )
