from __future__ import annotations

from enum import Enum

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentflow.models.base import Base, IdMixin, TimestampMixin


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"


class Room(IdMixin, TimestampMixin, Base):
    __tablename__ = "rooms"
    __table_args__ = (Index("ix_rooms_building_id", "building_id"),)

    building_id: Mapped[int] = mapped_column(Integer, ForeignKey("buildings.id"), nullable=False)
    room_number: Mapped[str] = mapped_column(String(32), nullable=False)
    max_tenants: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=RoomStatus.AVAILABLE.value, nullable=False)
    # Written only by the room/tenancy synchronizer.
    current_contract_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("contracts.id", use_alter=True, name="fk_rooms_current_contract_id"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    building: Mapped["Building"] = relationship(back_populates="rooms")
