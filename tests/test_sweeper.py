from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from fakes import FakeDatabase, FakeTenancy, RecordingDispatcher, make_engine
from rentflow.core.sweeper import AUTO_REJECT_REASON, ExpirySweeper, awaiting_utility_cutoff


def _seed_contract(db: FakeDatabase, room_id: int, status: str, *, start: date, end: date, tenant: int = 55):
    contract = db.add_contract(
        room_id=room_id,
        tenant_user_id=tenant,
        start_date=start,
        duration_months=(end.year - start.year) * 12 + end.month - start.month,
        end_date=end,
        rent_amount=Decimal("5000000"),
        status=status,
    )
    if status in ("active", "pending_transaction"):
        room = db.rooms[room_id]
        room.status = "occupied"
        room.current_contract_id = contract.id
        row_id = db.next_id("tenancies")
        db.tenancies[row_id] = FakeTenancy(
            id=row_id,
            room_id=room_id,
            tenant_user_id=tenant,
            contract_id=contract.id,
            moved_in_at=start,
        )
    return contract


def _db() -> FakeDatabase:
    db = FakeDatabase()
    db.add_room(101, building_id=1)
    db.add_room(102, building_id=1)
    db.add_room(301, building_id=3)
    db.managers.add((7, 1))
    return db


@pytest.mark.parametrize(
    "end_date,today,cutoff_day,expected",
    [
        # no cut-off configured
        (date(2025, 3, 1), date(2025, 3, 5), None, False),
        # ended after last month's cut-off, this month's not reached yet
        (date(2025, 3, 1), date(2025, 3, 5), 10, True),
        # this month's cut-off reached
        (date(2025, 3, 1), date(2025, 3, 10), 10, False),
        # ended before last month's cut-off, already billed
        (date(2025, 2, 5), date(2025, 3, 5), 10, False),
        # cut-off day clamped to short month
        (date(2025, 2, 20), date(2025, 2, 27), 31, True),
    ],
)
def test_awaiting_utility_cutoff(end_date, today, cutoff_day, expected):
    assert awaiting_utility_cutoff(end_date, today, cutoff_day) is expected


@pytest.mark.asyncio
async def test_sweep_expires_cleared_contract_and_frees_room():
    dispatcher = RecordingDispatcher()
    engine, db = make_engine(_db(), dispatcher=dispatcher, today=date(2025, 3, 5))
    contract = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 3, 1))

    transitioned = await engine.sweep_expired()

    assert transitioned == 1
    assert db.contracts[contract.id].status == "expired"
    assert db.contracts[contract.id].note.endswith("active -> expired: end date passed")
    assert db.rooms[101].status == "available"
    assert db.current_tenancies(101) == []
    assert dispatcher.event_types() == ["contract_expired"]


@pytest.mark.asyncio
async def test_sweep_ignores_contracts_not_yet_past_end_date():
    engine, db = make_engine(_db(), today=date(2025, 3, 1))
    contract = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 3, 1))

    assert await engine.sweep_expired() == 0
    assert db.contracts[contract.id].status == "active"


@pytest.mark.asyncio
async def test_sweep_rejects_pending_contract_past_end_date():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    contract = _seed_contract(db, 101, "pending", start=date(2025, 1, 1), end=date(2025, 3, 1))

    assert await engine.sweep_expired() == 1
    assert db.contracts[contract.id].status == "rejected"
    assert db.contracts[contract.id].note.endswith(AUTO_REJECT_REASON)


@pytest.mark.asyncio
async def test_sweep_parks_indebted_contract_once():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    contract = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 3, 1))
    db.add_bill(contract.id, "overdue")

    assert await engine.sweep_expired() == 1
    assert db.contracts[contract.id].status == "pending_transaction"
    assert db.rooms[101].status == "occupied"

    assert await engine.sweep_expired() == 0
    assert db.contracts[contract.id].status == "pending_transaction"


@pytest.mark.asyncio
async def test_sweep_holds_until_utility_cutoff_then_expires():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    db.cutoff_days[1] = 10
    contract = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 3, 1))

    assert await engine.sweep_expired() == 1
    assert db.contracts[contract.id].status == "pending_transaction"
    assert db.rooms[101].current_contract_id == contract.id

    engine.clock = lambda: date(2025, 3, 7)
    assert await engine.sweep_expired() == 0

    engine.clock = lambda: date(2025, 3, 10)
    assert await engine.sweep_expired() == 1
    assert db.contracts[contract.id].status == "expired"
    assert db.rooms[101].status == "available"


@pytest.mark.asyncio
async def test_sweep_failure_on_one_contract_does_not_stop_others():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    broken = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 2, 1))
    healthy = _seed_contract(db, 102, "active", start=date(2025, 1, 1), end=date(2025, 3, 1), tenant=60)
    db.failing_contract_ids.add(broken.id)

    assert await engine.sweep_expired() == 1

    assert db.contracts[broken.id].status == "active"
    assert db.rooms[101].status == "occupied"
    assert db.contracts[healthy.id].status == "expired"
    assert db.rooms[102].status == "available"
    assert db.rollbacks == 1


@pytest.mark.asyncio
async def test_sweep_skips_deleted_and_terminal_contracts():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    done = _seed_contract(db, 101, "terminated", start=date(2025, 1, 1), end=date(2025, 3, 1))
    deleted = _seed_contract(db, 102, "pending", start=date(2025, 1, 1), end=date(2025, 3, 1))
    deleted.deleted_at = deleted.start_date

    assert await engine.sweep_expired() == 0
    assert db.contracts[done.id].status == "terminated"
    assert db.contracts[deleted.id].status == "pending"


@pytest.mark.asyncio
async def test_sweeper_leaves_reassigned_room_alone():
    engine, db = make_engine(_db(), today=date(2025, 3, 5))
    old = _seed_contract(db, 101, "active", start=date(2025, 1, 1), end=date(2025, 3, 1))
    db.rooms[101].current_contract_id = 999

    sweeper = ExpirySweeper(engine.transactions, clock=engine.clock)
    assert await sweeper.sweep() == 1

    assert db.contracts[old.id].status == "expired"
    assert db.rooms[101].status == "occupied"
    assert db.rooms[101].current_contract_id == 999
    assert db.current_tenancies(101) == []
