from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    tenant_user_id: int
    start_date: date
    duration_months: int
    end_date: date
    rent_amount: Decimal
    deposit_amount: Decimal
    penalty_rate: Decimal
    payment_cycle_months: int
    status: str
    note: str | None
    file_key: str | None
    deleted_at: datetime | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContractCreateRequest(BaseModel):
    room_id: int
    tenant_user_id: int
    start_date: date
    duration_months: int
    rent_amount: Decimal
    deposit_amount: Decimal = Decimal("0")
    penalty_rate: Decimal = Decimal("0")
    payment_cycle_months: int = 1
    note: str | None = None
    file_key: str | None = None


class ContractUpdateRequest(BaseModel):
    start_date: date | None = None
    duration_months: int | None = None
    rent_amount: Decimal | None = None
    deposit_amount: Decimal | None = None
    penalty_rate: Decimal | None = None
    payment_cycle_months: int | None = None
    note: str | None = None
    file_key: str | None = None


class ApprovalRequest(BaseModel):
    action: Literal["accept", "reject"]
    reason: str | None = None


class TerminationRequest(BaseModel):
    reason: str = Field(min_length=1)


class TerminationAnswerRequest(BaseModel):
    action: Literal["approve", "reject"]


class ForceTerminationRequest(BaseModel):
    reason: str = Field(min_length=1)
    evidence: str = Field(min_length=1, description="Storage key of the uploaded evidence file")


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    pages: int


class ContractListResponse(BaseModel):
    data: list[ContractResponse]
    pagination: Pagination


class SweepResponse(BaseModel):
    transitioned: int


class ErrorResponse(BaseModel):
    code: str
    detail: str
    data: dict = Field(default_factory=dict)
