from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, text
from sqlalchemy.orm import Mapped, mapped_column

from rentflow.models.base import Base, IdMixin, TimestampMixin


class RoomTenant(IdMixin, TimestampMixin, Base):
    """Physical occupancy history of a room, independent of the legal contract."""

    __tablename__ = "room_tenants"
    __table_args__ = (
        Index(
            "uq_room_tenants_current",
            "room_id",
            "tenant_user_id",
            unique=True,
            postgresql_where=text("is_current"),
        ),
        Index("ix_room_tenants_room_id_is_current", "room_id", "is_current"),
    )

    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False)
    tenant_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    contract_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    moved_in_at: Mapped[date] = mapped_column(Date, nullable=False)
    moved_out_at: Mapped[date | None] = mapped_column(Date, nullable=True)
