from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, SmallInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentflow.models.base import Base, IdMixin, TimestampMixin


class Building(IdMixin, TimestampMixin, Base):
    __tablename__ = "buildings"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Day of month on which utility bills for the previous period are cut.
    bill_due_day: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    rooms: Mapped[list["Room"]] = relationship(back_populates="building")


class BuildingManager(IdMixin, Base):
    __tablename__ = "building_managers"
    __table_args__ = (
        UniqueConstraint("building_id", "user_id", name="uq_building_managers_building_user"),
    )

    building_id: Mapped[int] = mapped_column(Integer, ForeignKey("buildings.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
