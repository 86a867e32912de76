from rentflow.models.bill import Bill, BillStatus
from rentflow.models.building import Building, BuildingManager
from rentflow.models.contract import Contract
from rentflow.models.room import Room, RoomStatus
from rentflow.models.tenancy import RoomTenant

__all__ = [
    "Bill",
    "BillStatus",
    "Building",
    "BuildingManager",
    "Contract",
    "Room",
    "RoomStatus",
    "RoomTenant",
]
