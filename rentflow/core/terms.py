"""
Contract terms — input normalization and policy validation.

All checks run before a transaction is opened, so a rejected request never
leaves partial state behind. Manually entered data and candidate payloads
produced by the document pipeline go through the same `validate_terms()`.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from rentflow.config import Settings
from rentflow.core.dates import add_months, contract_end_date
from rentflow.core.errors import ContractValidationError


@dataclass(frozen=True)
class ContractPolicy:
    start_max_past_months: int = 6
    start_max_future_months: int = 12
    max_duration_months: int = 60
    max_penalty_rate: Decimal = Decimal("100")

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractPolicy":
        return cls(
            start_max_past_months=settings.contract_start_max_past_months,
            start_max_future_months=settings.contract_start_max_future_months,
            max_duration_months=settings.contract_max_duration_months,
            max_penalty_rate=Decimal(str(settings.contract_max_penalty_rate)),
        )


@dataclass(frozen=True)
class ContractTerms:
    room_id: int | None
    tenant_user_id: int | None
    start_date: date | None
    duration_months: int | None
    rent_amount: Decimal | None
    deposit_amount: Decimal = Decimal("0")
    penalty_rate: Decimal = Decimal("0")
    payment_cycle_months: int = 1
    note: str | None = None
    file_key: str | None = None

    @property
    def end_date(self) -> date | None:
        if self.start_date is None or self.duration_months is None:
            return None
        return contract_end_date(self.start_date, self.duration_months)

    def merged(self, changes: dict[str, Any]) -> "ContractTerms":
        """Copy with every non-None entry of `changes` applied."""
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in changes.items() if k in known and v is not None})

    @classmethod
    def of(cls, contract) -> "ContractTerms":
        return cls(
            room_id=contract.room_id,
            tenant_user_id=contract.tenant_user_id,
            start_date=contract.start_date,
            duration_months=contract.duration_months,
            rent_amount=Decimal(str(contract.rent_amount)),
            deposit_amount=Decimal(str(contract.deposit_amount or 0)),
            penalty_rate=Decimal(str(contract.penalty_rate or 0)),
            payment_cycle_months=contract.payment_cycle_months,
            note=contract.note,
            file_key=contract.file_key,
        )


def validate_terms(terms: ContractTerms, policy: ContractPolicy, today: date) -> ContractTerms:
    """
    Check terms against the policy.

    Returns:
        The same terms when valid.

    Raises:
        ContractValidationError listing every violation found.
    """
    violations: list[str] = []

    missing = [
        name
        for name in ("room_id", "tenant_user_id", "start_date", "duration_months", "rent_amount")
        if getattr(terms, name) is None
    ]
    if missing:
        violations.append(f"missing required fields: {', '.join(missing)}")

    amounts: dict[str, Decimal | None] = {}
    for name in ("rent_amount", "deposit_amount", "penalty_rate"):
        value = getattr(terms, name)
        if value is not None and not value.is_finite():
            violations.append(f"{name} must be a finite number")
            value = None
        amounts[name] = value

    rent, deposit, penalty = amounts["rent_amount"], amounts["deposit_amount"], amounts["penalty_rate"]
    if rent is not None and rent <= 0:
        violations.append("rent_amount must be greater than 0")
    if deposit is not None and deposit < 0:
        violations.append("deposit_amount must not be negative")
    if penalty is not None and not (0 <= penalty <= policy.max_penalty_rate):
        violations.append(f"penalty_rate must be between 0 and {policy.max_penalty_rate}")

    if terms.duration_months is not None:
        if terms.duration_months < 1:
            violations.append("duration_months must be at least 1")
        elif terms.duration_months > policy.max_duration_months:
            violations.append(f"duration_months must not exceed {policy.max_duration_months}")

    if terms.payment_cycle_months is None or terms.payment_cycle_months < 1:
        violations.append("payment_cycle_months must be at least 1")
    elif terms.duration_months is not None and terms.payment_cycle_months > terms.duration_months:
        violations.append("payment_cycle_months must not exceed duration_months")

    if terms.start_date is not None:
        earliest = add_months(today, -policy.start_max_past_months)
        latest = add_months(today, policy.start_max_future_months)
        if terms.start_date < earliest:
            violations.append(f"start_date {terms.start_date.isoformat()} is before {earliest.isoformat()}")
        elif terms.start_date > latest:
            violations.append(f"start_date {terms.start_date.isoformat()} is after {latest.isoformat()}")

    if violations:
        raise ContractValidationError(violations)
    return terms


class ContractCandidate(BaseModel):
    """
    Loosely typed contract payload (form data or a document-pipeline candidate).

    Numbers and dates may arrive as strings; empty strings count as absent.
    Month counts must be whole numbers and amounts must be finite. A payload
    carrying only an explicit end_date is accepted when it lies a whole number
    of months after start_date. Required fields stay optional here so that
    `validate_terms()` reports them together with the policy violations.
    """

    room_id: int | None = None
    tenant_user_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    duration_months: int | None = None
    rent_amount: Decimal | None = Field(default=None, allow_inf_nan=False)
    deposit_amount: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    penalty_rate: Decimal = Field(default=Decimal("0"), allow_inf_nan=False)
    payment_cycle_months: int = 1
    note: str | None = None
    file_key: str | None = None

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != ""}
        return data

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def strip_time_of_day(cls, value: Any) -> Any:
        # Document extractors emit midnight timestamps for plain dates.
        if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
            return value[:10]
        return value

    @model_validator(mode="after")
    def duration_from_end_date(self) -> "ContractCandidate":
        if self.duration_months is None and self.start_date is not None and self.end_date is not None:
            months = _whole_months_between(self.start_date, self.end_date)
            if months is None:
                raise ValueError("end_date must fall a whole number of months after start_date")
            self.duration_months = months
        return self

    def to_terms(self) -> ContractTerms:
        return ContractTerms(
            room_id=self.room_id,
            tenant_user_id=self.tenant_user_id,
            start_date=self.start_date,
            duration_months=self.duration_months,
            rent_amount=self.rent_amount,
            deposit_amount=self.deposit_amount,
            penalty_rate=self.penalty_rate,
            payment_cycle_months=self.payment_cycle_months,
            note=self.note,
            file_key=self.file_key,
        )


def terms_from_payload(payload: dict) -> ContractTerms:
    """
    Build terms from a loosely typed payload.

    Raises:
        ContractValidationError listing every field that could not be read.
    """
    try:
        candidate = ContractCandidate.model_validate(payload)
    except ValidationError as e:
        raise ContractValidationError([_describe(error) for error in e.errors()]) from None
    return candidate.to_terms()


def _describe(error: dict) -> str:
    field_name = ".".join(str(part) for part in error["loc"])
    message = error["msg"].removeprefix("Value error, ")
    return f"{field_name}: {message}" if field_name else message


def _whole_months_between(start: date, end: date) -> int | None:
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months >= 1 and add_months(start, months) == end:
        return months
    return None
