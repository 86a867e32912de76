from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from fakes import make_engine
from rentflow.core.access import Actor, Role
from rentflow.core.dates import contract_end_date
from rentflow.core.errors import ContractValidationError
from rentflow.core.stores import ContractFilters

OWNER = Actor(user_id=1, role=Role.OWNER)
MANAGER = Actor(user_id=7, role=Role.MANAGER)
OTHER_MANAGER = Actor(user_id=8, role=Role.MANAGER)
IDLE_MANAGER = Actor(user_id=9, role=Role.MANAGER)
TENANT = Actor(user_id=55, role=Role.TENANT)


def _seeded():
    engine, db = make_engine()
    db.add_room(101, building_id=1)
    db.add_room(102, building_id=1)
    db.add_room(201, building_id=2)
    db.managers.add((MANAGER.user_id, 1))
    db.managers.add((OTHER_MANAGER.user_id, 2))

    def add(room_id, tenant_user_id, start, status, **extra):
        return db.add_contract(
            room_id=room_id,
            tenant_user_id=tenant_user_id,
            start_date=start,
            duration_months=6,
            end_date=contract_end_date(start, 6),
            rent_amount=Decimal("4500000"),
            status=status,
            **extra,
        )

    contracts = {
        "a": add(101, 55, date(2025, 1, 1), "active"),
        "b": add(102, 56, date(2025, 3, 1), "pending"),
        "c": add(201, 55, date(2025, 5, 1), "pending"),
        "gone": add(201, 57, date(2025, 2, 1), "terminated", deleted_at=datetime(2025, 1, 10, tzinfo=timezone.utc)),
    }
    return engine, db, contracts


def _ids(page) -> list[int]:
    return [c.id for c in page.items]


@pytest.mark.asyncio
async def test_owner_lists_every_live_contract_newest_first():
    engine, _, c = _seeded()

    page = await engine.list_contracts(actor=OWNER)

    assert _ids(page) == [c["c"].id, c["b"].id, c["a"].id]
    assert page.total == 3
    assert page.pages == 1


@pytest.mark.asyncio
async def test_system_caller_is_unrestricted():
    engine, _, _ = _seeded()
    assert (await engine.list_contracts()).total == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "actor,expected",
    [
        (MANAGER, ["b", "a"]),
        (OTHER_MANAGER, ["c"]),
        (TENANT, ["c", "a"]),
    ],
)
async def test_listing_is_scoped_by_role(actor, expected):
    engine, _, c = _seeded()

    page = await engine.list_contracts(actor=actor)

    assert _ids(page) == [c[key].id for key in expected]
    assert page.total == len(expected)


@pytest.mark.asyncio
async def test_tenant_cannot_widen_scope_with_tenant_filter():
    engine, _, c = _seeded()

    page = await engine.list_contracts(ContractFilters(tenant_user_id=56), actor=TENANT)

    assert _ids(page) == [c["c"].id, c["a"].id]


@pytest.mark.asyncio
async def test_manager_without_buildings_gets_empty_page():
    engine, _, _ = _seeded()

    page = await engine.list_contracts(ContractFilters(page=2, limit=5), actor=IDLE_MANAGER)

    assert page.items == []
    assert page.total == 0
    assert page.pages == 0
    assert (page.page, page.limit) == (2, 5)


@pytest.mark.asyncio
async def test_filters_narrow_the_listing():
    engine, _, c = _seeded()

    by_status = await engine.list_contracts(ContractFilters(status="pending"), actor=OWNER)
    by_room = await engine.list_contracts(ContractFilters(room_id=201), actor=OWNER)
    by_tenant = await engine.list_contracts(ContractFilters(tenant_user_id=56), actor=OWNER)
    by_start = await engine.list_contracts(
        ContractFilters(start_from=date(2025, 2, 1), start_to=date(2025, 3, 1)), actor=OWNER
    )

    assert _ids(by_status) == [c["c"].id, c["b"].id]
    assert _ids(by_room) == [c["c"].id]
    assert _ids(by_tenant) == [c["b"].id]
    assert _ids(by_start) == [c["b"].id]


@pytest.mark.asyncio
async def test_manager_filter_outside_their_buildings_finds_nothing():
    engine, _, _ = _seeded()

    page = await engine.list_contracts(ContractFilters(room_id=201), actor=MANAGER)

    assert page.items == []
    assert page.total == 0


@pytest.mark.asyncio
async def test_pagination():
    engine, _, c = _seeded()

    first = await engine.list_contracts(ContractFilters(limit=2), actor=OWNER)
    second = await engine.list_contracts(ContractFilters(page=2, limit=2), actor=OWNER)
    beyond = await engine.list_contracts(ContractFilters(page=3, limit=2), actor=OWNER)

    assert _ids(first) == [c["c"].id, c["b"].id]
    assert _ids(second) == [c["a"].id]
    assert beyond.items == []
    assert first.total == second.total == 3
    assert first.pages == 2


@pytest.mark.asyncio
async def test_bad_filters_are_refused_before_any_transaction():
    engine, db, _ = _seeded()

    with pytest.raises(ContractValidationError) as exc:
        await engine.list_contracts(
            ContractFilters(
                status="bogus",
                start_from=date(2025, 6, 1),
                start_to=date(2025, 1, 1),
                page=0,
                limit=101,
            ),
            actor=OWNER,
        )

    assert exc.value.violations == [
        "page must be at least 1",
        "limit must be between 1 and 100",
        "unknown status: bogus",
        "start_from must not be after start_to",
    ]
    assert db.commits == 0
