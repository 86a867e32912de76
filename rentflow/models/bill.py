from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from rentflow.models.base import Base, IdMixin, TimestampMixin


class BillStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PARTIALLY_PAID = "partially_paid"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


# Bills that still hold money owed by the tenant.
UNPAID_BILL_STATUSES = (BillStatus.ISSUED, BillStatus.PARTIALLY_PAID, BillStatus.OVERDUE)


class Bill(IdMixin, TimestampMixin, Base):
    """Owned by billing; the contract core only reads these and drops stale drafts."""

    __tablename__ = "bills"
    __table_args__ = (Index("ix_bills_contract_id_status", "contract_id", "status"),)

    contract_id: Mapped[int] = mapped_column(Integer, ForeignKey("contracts.id"), nullable=False)
    bill_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(32), default=BillStatus.DRAFT.value, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
