"""
Repository interfaces used by the lifecycle engine.

The engine never touches a database client directly. Every call receives a
`Transaction`: one atomic unit of work exposing one store per entity plus an
outbox for side effects that must only happen after commit. Implementations:

    rentflow.core.sql_stores.SqlTransactionManager  (SQLAlchemy AsyncSession)
    tests/fakes.py                                  (in-memory, for tests)
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Protocol

from rentflow.core.outbox import Outbox


@dataclass(frozen=True)
class ContractFilters:
    """Listing filters. `start_from` and `start_to` bound start_date inclusively."""

    room_id: int | None = None
    tenant_user_id: int | None = None
    status: str | None = None
    start_from: date | None = None
    start_to: date | None = None
    page: int = 1
    limit: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class ContractPage:
    items: list[Any]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit)


class ContractStore(Protocol):
    async def get(self, contract_id: int, *, include_deleted: bool = False, for_update: bool = False) -> Any | None:
        """Return the contract or None. Soft-deleted rows are hidden unless include_deleted."""

    async def create(self, **values: Any) -> Any:
        """Insert a contract and return it with its id assigned."""

    async def find_conflict(
        self,
        room_id: int,
        start: date,
        end: date,
        statuses: Iterable[str],
        exclude_contract_id: int | None = None,
    ) -> Any | None:
        """First non-deleted contract of `room_id` in `statuses` overlapping [start, end] inclusively."""

    async def list_ids_for_sweep(self, statuses: Iterable[str], ended_before: date) -> list[int]:
        """Ids of non-deleted contracts in `statuses` whose end_date < ended_before."""

    async def list_contracts(
        self, filters: ContractFilters, *, building_ids: Iterable[int] | None = None
    ) -> tuple[list[Any], int]:
        """
        One page of non-deleted contracts matching `filters`, newest first, and the total match count.

        `building_ids`, when given, limits the result to rooms in those buildings.
        """

    async def soft_delete(self, contract: Any) -> None: ...

    async def restore(self, contract: Any) -> None: ...

    async def hard_delete(self, contract: Any) -> None: ...


class RoomStore(Protocol):
    async def get(self, room_id: int, *, for_update: bool = False) -> Any | None:
        """Return the room; with for_update the row stays locked until the transaction ends."""

    async def billing_cutoff_day(self, room_id: int) -> int | None:
        """Utility-billing cut-off day of the room's building, if configured."""


class TenancyStore(Protocol):
    async def close_current(self, room_id: int, tenant_user_id: int, moved_out_at: date) -> int:
        """Close every open row for (room, tenant); returns how many were closed."""

    async def count_current(self, room_id: int) -> int:
        """Number of open tenancy rows in the room."""

    async def open(self, room_id: int, tenant_user_id: int, contract_id: int | None, moved_in_at: date) -> Any:
        """Insert a new open tenancy row."""


class BillReader(Protocol):
    async def list_bills(self, contract_id: int, statuses: Iterable[str]) -> list[Any]: ...

    async def delete_draft_bills(self, contract_id: int) -> int: ...

    async def count_for_contract(self, contract_id: int) -> int: ...


class AccessStore(Protocol):
    async def manages_building(self, user_id: int, building_id: int) -> bool: ...

    async def manager_ids(self, building_id: int) -> list[int]: ...

    async def managed_building_ids(self, user_id: int) -> list[int]: ...


class Transaction(Protocol):
    contracts: ContractStore
    rooms: RoomStore
    tenancies: TenancyStore
    bills: BillReader
    access: AccessStore
    outbox: Outbox


class TransactionManager(Protocol):
    def begin(self) -> AbstractAsyncContextManager[Transaction]:
        """Open a transaction; commits on normal exit, rolls back if the block raises."""
