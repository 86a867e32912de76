"""
SQLAlchemy implementations of the repository interfaces.

One `SqlTransaction` wraps one AsyncSession inside `session.begin()`; all of
its stores share that session, so everything they write commits or rolls
back together. Row locks use SELECT ... FOR UPDATE and are held until the
transaction ends.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import AsyncIterator, Iterable

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rentflow.core.outbox import Outbox
from rentflow.core.stores import ContractFilters
from rentflow.models import Bill, BillStatus, Building, BuildingManager, Contract, Room, RoomTenant


class SqlContractStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, contract_id: int, *, include_deleted: bool = False, for_update: bool = False) -> Contract | None:
        contract = await self.session.get(
            Contract,
            contract_id,
            with_for_update=for_update or None,
            populate_existing=for_update,
        )
        if contract is None or (contract.deleted_at is not None and not include_deleted):
            return None
        return contract

    async def create(self, **values) -> Contract:
        contract = Contract(**values)
        self.session.add(contract)
        await self.session.flush()
        return contract

    async def find_conflict(
        self,
        room_id: int,
        start: date,
        end: date,
        statuses: Iterable[str],
        exclude_contract_id: int | None = None,
    ) -> Contract | None:
        query = (
            select(Contract)
            .where(
                Contract.room_id == room_id,
                Contract.status.in_(list(statuses)),
                Contract.deleted_at.is_(None),
                or_(
                    and_(Contract.start_date <= start, Contract.end_date >= start),
                    and_(Contract.start_date <= end, Contract.end_date >= end),
                    and_(Contract.start_date >= start, Contract.end_date <= end),
                ),
            )
            .order_by(Contract.start_date)
            .limit(1)
        )
        if exclude_contract_id is not None:
            query = query.where(Contract.id != exclude_contract_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_ids_for_sweep(self, statuses: Iterable[str], ended_before: date) -> list[int]:
        result = await self.session.execute(
            select(Contract.id)
            .where(
                Contract.status.in_(list(statuses)),
                Contract.end_date < ended_before,
                Contract.deleted_at.is_(None),
            )
            .order_by(Contract.end_date, Contract.id)
        )
        return list(result.scalars().all())

    async def list_contracts(
        self, filters: ContractFilters, *, building_ids: Iterable[int] | None = None
    ) -> tuple[list[Contract], int]:
        query = select(Contract).where(Contract.deleted_at.is_(None))
        if building_ids is not None:
            query = query.join(Room, Room.id == Contract.room_id).where(Room.building_id.in_(list(building_ids)))
        if filters.room_id is not None:
            query = query.where(Contract.room_id == filters.room_id)
        if filters.tenant_user_id is not None:
            query = query.where(Contract.tenant_user_id == filters.tenant_user_id)
        if filters.status is not None:
            query = query.where(Contract.status == filters.status)
        if filters.start_from is not None:
            query = query.where(Contract.start_date >= filters.start_from)
        if filters.start_to is not None:
            query = query.where(Contract.start_date <= filters.start_to)

        total = await self.session.scalar(select(func.count()).select_from(query.subquery()))
        result = await self.session.execute(
            query.order_by(Contract.created_at.desc(), Contract.id.desc()).offset(filters.offset).limit(filters.limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def soft_delete(self, contract: Contract) -> None:
        contract.deleted_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def restore(self, contract: Contract) -> None:
        contract.deleted_at = None
        await self.session.flush()

    async def hard_delete(self, contract: Contract) -> None:
        # Room pointer changes must reach the database before the row they point at goes.
        await self.session.flush()
        # Occupancy history outlives the legal contract.
        await self.session.execute(
            update(RoomTenant).where(RoomTenant.contract_id == contract.id).values(contract_id=None)
        )
        await self.session.delete(contract)
        await self.session.flush()


class SqlRoomStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, room_id: int, *, for_update: bool = False) -> Room | None:
        return await self.session.get(
            Room,
            room_id,
            with_for_update=for_update or None,
            populate_existing=for_update,
        )

    async def billing_cutoff_day(self, room_id: int) -> int | None:
        result = await self.session.execute(
            select(Building.bill_due_day).join(Room, Room.building_id == Building.id).where(Room.id == room_id)
        )
        return result.scalar_one_or_none()


class SqlTenancyStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def close_current(self, room_id: int, tenant_user_id: int, moved_out_at: date) -> int:
        result = await self.session.execute(
            update(RoomTenant)
            .where(
                RoomTenant.room_id == room_id,
                RoomTenant.tenant_user_id == tenant_user_id,
                RoomTenant.is_current.is_(True),
            )
            .values(is_current=False, moved_out_at=moved_out_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def count_current(self, room_id: int) -> int:
        result = await self.session.execute(
            select(func.count(RoomTenant.id)).where(
                RoomTenant.room_id == room_id,
                RoomTenant.is_current.is_(True),
            )
        )
        return int(result.scalar_one())

    async def open(self, room_id: int, tenant_user_id: int, contract_id: int | None, moved_in_at: date) -> RoomTenant:
        row = RoomTenant(
            room_id=room_id,
            tenant_user_id=tenant_user_id,
            contract_id=contract_id,
            is_current=True,
            moved_in_at=moved_in_at,
        )
        self.session.add(row)
        await self.session.flush()
        return row


class SqlBillReader:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_bills(self, contract_id: int, statuses: Iterable[str]) -> list[Bill]:
        result = await self.session.execute(
            select(Bill)
            .where(Bill.contract_id == contract_id, Bill.status.in_(list(statuses)))
            .order_by(Bill.id)
        )
        return list(result.scalars().all())

    async def delete_draft_bills(self, contract_id: int) -> int:
        result = await self.session.execute(
            delete(Bill)
            .where(Bill.contract_id == contract_id, Bill.status == BillStatus.DRAFT.value)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def count_for_contract(self, contract_id: int) -> int:
        result = await self.session.execute(select(func.count(Bill.id)).where(Bill.contract_id == contract_id))
        return int(result.scalar_one())


class SqlAccessStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def manages_building(self, user_id: int, building_id: int) -> bool:
        result = await self.session.execute(
            select(BuildingManager.id).where(
                BuildingManager.user_id == user_id,
                BuildingManager.building_id == building_id,
            )
        )
        return result.first() is not None

    async def manager_ids(self, building_id: int) -> list[int]:
        result = await self.session.execute(
            select(BuildingManager.user_id).where(BuildingManager.building_id == building_id)
        )
        return list(result.scalars().all())

    async def managed_building_ids(self, user_id: int) -> list[int]:
        result = await self.session.execute(
            select(BuildingManager.building_id)
            .where(BuildingManager.user_id == user_id)
            .order_by(BuildingManager.building_id)
        )
        return list(result.scalars().all())


class SqlTransaction:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.contracts = SqlContractStore(session)
        self.rooms = SqlRoomStore(session)
        self.tenancies = SqlTenancyStore(session)
        self.bills = SqlBillReader(session)
        self.access = SqlAccessStore(session)
        self.outbox = Outbox()


class SqlTransactionManager:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[SqlTransaction]:
        async with self.session_factory() as session:
            async with session.begin():
                yield SqlTransaction(session)
