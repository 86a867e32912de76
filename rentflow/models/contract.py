from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rentflow.core.states import ContractStatus
from rentflow.models.base import Base, IdMixin, TimestampMixin


class Contract(IdMixin, TimestampMixin, Base):
    __tablename__ = "contracts"
    __table_args__ = (
        Index("ix_contracts_room_id_status", "room_id", "status"),
        Index("ix_contracts_tenant_user_id", "tenant_user_id"),
        Index("ix_contracts_status_end_date", "status", "end_date"),
    )

    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("rooms.id"), nullable=False)
    tenant_user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False)
    # Derived from start_date + duration_months; never written independently.
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    deposit_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    penalty_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=0, nullable=False)
    payment_cycle_months: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=ContractStatus.PENDING.value, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
