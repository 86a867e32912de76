"""
Room/tenancy synchronizer — keeps room occupancy and tenancy history in step
with contract state. Both entry points run inside the caller's transaction;
any exception they raise aborts that transaction as a whole.
"""

from __future__ import annotations

import logging
from datetime import date

from rentflow.core.errors import CapacityExceededError, ContractStateError
from rentflow.models.room import RoomStatus

logger = logging.getLogger(__name__)


async def apply_activation(tx, contract) -> None:
    """
    Point the room at `contract` and open a tenancy row for its tenant.

    Steps:
    1. room.current_contract_id = contract.id, room.status = occupied
    2. close any open tenancy row for (room, tenant)
    3. refuse if the room would exceed max_tenants
    4. open a new tenancy row moved in at contract.start_date
    """
    room = await tx.rooms.get(contract.room_id, for_update=True)
    if room is None:
        raise ContractStateError(f"Room {contract.room_id} of contract {contract.id} does not exist")

    room.current_contract_id = contract.id
    room.status = RoomStatus.OCCUPIED.value

    await tx.tenancies.close_current(room.id, contract.tenant_user_id, contract.start_date)

    current = await tx.tenancies.count_current(room.id)
    if current + 1 > room.max_tenants:
        logger.warning(
            "Activation of contract %s refused: room %s holds %s/%s tenants",
            contract.id,
            room.id,
            current,
            room.max_tenants,
        )
        raise CapacityExceededError(room.id, room.max_tenants, current)

    await tx.tenancies.open(room.id, contract.tenant_user_id, contract.id, contract.start_date)
    logger.info("Room %s occupied by contract %s", room.id, contract.id)


async def apply_deactivation(tx, contract, today: date) -> bool:
    """
    Release the room held by `contract` and close the tenant's open tenancy row.

    The room is only released when it still points at this contract; a room
    already handed to another contract is left untouched.

    Returns:
        True when the room was freed.
    """
    room = await tx.rooms.get(contract.room_id, for_update=True)
    freed = False

    if room is not None and room.current_contract_id == contract.id:
        room.current_contract_id = None
        room.status = RoomStatus.AVAILABLE.value
        freed = True
        logger.info("Room %s released by contract %s", room.id, contract.id)
    elif room is not None:
        logger.info(
            "Room %s now belongs to contract %s; leaving it as is while closing contract %s",
            room.id,
            room.current_contract_id,
            contract.id,
        )

    await tx.tenancies.close_current(contract.room_id, contract.tenant_user_id, today)
    return freed
