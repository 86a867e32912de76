from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from fakes import FakeDatabase, FakeTenancy, FakeTransactionManager
from rentflow.core.clearance import completion_status, resolve_termination
from rentflow.core.errors import CapacityExceededError, ContractStateError
from rentflow.core.synchronizer import apply_activation, apply_deactivation


def _db_with_contract(status: str = "active", max_tenants: int = 1):
    db = FakeDatabase()
    db.add_room(101, max_tenants=max_tenants)
    contract = db.add_contract(
        room_id=101,
        tenant_user_id=55,
        start_date=date(2025, 2, 1),
        duration_months=12,
        end_date=date(2026, 2, 1),
        rent_amount=Decimal("5000000"),
        status=status,
    )
    return db, contract


@pytest.mark.asyncio
async def test_activation_occupies_room_and_opens_single_row():
    db, contract = _db_with_contract()
    # Stale open row for the same tenant from an earlier stay.
    db.tenancies[1] = FakeTenancy(id=1, room_id=101, tenant_user_id=55, contract_id=None, moved_in_at=date(2024, 1, 1))
    db._ids["tenancies"] = 1

    async with FakeTransactionManager(db).begin() as tx:
        await apply_activation(tx, contract)

    assert db.rooms[101].status == "occupied"
    assert db.rooms[101].current_contract_id == contract.id
    current = db.current_tenancies(101)
    assert len(current) == 1
    assert current[0].contract_id == contract.id
    assert current[0].moved_in_at == date(2025, 2, 1)
    assert db.tenancies[1].moved_out_at == date(2025, 2, 1)


@pytest.mark.asyncio
async def test_activation_beyond_capacity_raises():
    db, contract = _db_with_contract()
    db.tenancies[1] = FakeTenancy(id=1, room_id=101, tenant_user_id=99, contract_id=None, moved_in_at=date(2024, 1, 1))
    db._ids["tenancies"] = 1

    with pytest.raises(CapacityExceededError):
        async with FakeTransactionManager(db).begin() as tx:
            await apply_activation(tx, contract)

    assert db.rooms[101].status == "available"
    assert db.rooms[101].current_contract_id is None
    assert list(db.tenancies) == [1]


@pytest.mark.asyncio
async def test_activation_of_contract_without_room_fails():
    db, contract = _db_with_contract()
    contract.room_id = 404

    with pytest.raises(ContractStateError):
        async with FakeTransactionManager(db).begin() as tx:
            await apply_activation(tx, contract)


@pytest.mark.asyncio
async def test_deactivation_frees_room_it_holds():
    db, contract = _db_with_contract()
    async with FakeTransactionManager(db).begin() as tx:
        await apply_activation(tx, contract)

    async with FakeTransactionManager(db).begin() as tx:
        freed = await apply_deactivation(tx, contract, date(2025, 6, 1))

    assert freed is True
    assert db.rooms[101].status == "available"
    assert db.current_tenancies(101) == []


@pytest.mark.asyncio
async def test_deactivation_leaves_reassigned_room():
    db, contract = _db_with_contract()
    async with FakeTransactionManager(db).begin() as tx:
        await apply_activation(tx, contract)
    db.rooms[101].current_contract_id = 77

    async with FakeTransactionManager(db).begin() as tx:
        freed = await apply_deactivation(tx, contract, date(2025, 6, 1))

    assert freed is False
    assert db.rooms[101].status == "occupied"
    assert db.rooms[101].current_contract_id == 77
    assert db.current_tenancies(101) == []


@pytest.mark.parametrize(
    "current,today,expected",
    [
        ("active", date(2025, 6, 1), "terminated"),
        ("active", date(2026, 2, 1), "expired"),
        ("pending_transaction", date(2026, 3, 1), "expired"),
        ("requested_termination", date(2026, 3, 1), "terminated"),
    ],
)
def test_completion_status(current, today, expected):
    assert completion_status(current, date(2026, 2, 1), today).value == expected


@pytest.mark.asyncio
async def test_clearance_is_idempotent_while_bills_are_owed():
    db, contract = _db_with_contract(status="pending_transaction")
    bill = db.add_bill(contract.id, "issued")
    note_before = contract.note

    async with FakeTransactionManager(db).begin() as tx:
        outcome = await resolve_termination(tx, contract, date(2025, 6, 1))

    assert outcome.status.value == "pending_transaction"
    assert outcome.unpaid_bill_ids == [bill.id]
    assert outcome.cleared is False
    assert outcome.room_freed is False
    assert contract.status == "pending_transaction"
    assert contract.note == note_before


@pytest.mark.asyncio
async def test_clearance_hold_parks_contract_without_debt():
    db, contract = _db_with_contract()

    async with FakeTransactionManager(db).begin() as tx:
        outcome = await resolve_termination(tx, contract, date(2026, 2, 5), reason="end date passed", hold=True)

    assert outcome.status.value == "pending_transaction"
    assert outcome.unpaid_bill_ids == []
    assert outcome.cleared is False
    assert outcome.room_freed is False
    assert contract.status == "pending_transaction"
