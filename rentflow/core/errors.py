"""
Typed errors raised by the contract lifecycle core.

Each class carries a machine-readable `code` and the structured data a caller
needs (blocking contract, illegal state pair, violations), so the API layer
and the CLI can react by type instead of parsing messages.

    ContractError
    ├── ContractValidationError
    ├── ContractNotFoundError
    ├── PermissionDeniedError
    ├── ContractConflictError
    ├── TransitionError
    │   ├── InvalidTransitionError
    │   └── MissingReasonError
    ├── ContractStateError
    └── CapacityExceededError
"""

from __future__ import annotations

from datetime import date


class ContractError(Exception):
    code: str = "contract_error"


class ContractValidationError(ContractError):
    code = "validation_failed"

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__("Invalid contract data: " + "; ".join(self.violations))


class ContractNotFoundError(ContractError):
    code = "contract_not_found"

    def __init__(self, contract_id: int):
        self.contract_id = contract_id
        super().__init__(f"Contract {contract_id} not found")


class PermissionDeniedError(ContractError):
    code = "permission_denied"

    def __init__(self, action: str, detail: str = ""):
        self.action = action
        message = f"Not allowed to {action}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ContractConflictError(ContractError):
    """The room already has a blocking contract whose period overlaps the requested one."""

    code = "contract_conflict"

    def __init__(self, room_id: int, contract_id: int, start_date: date, end_date: date):
        self.room_id = room_id
        self.contract_id = contract_id
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            f"Room {room_id} is already claimed by contract {contract_id} "
            f"({start_date.isoformat()} to {end_date.isoformat()})"
        )


class TransitionError(ContractError):
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, message: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(message)


class InvalidTransitionError(TransitionError):
    def __init__(self, from_status: str, to_status: str):
        super().__init__(from_status, to_status, f"Invalid transition: {from_status} -> {to_status}")


class MissingReasonError(TransitionError):
    code = "reason_required"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            from_status,
            to_status,
            f"Transition {from_status} -> {to_status} requires a reason",
        )


class ContractStateError(ContractError):
    """The operation is not available for the contract in its current state."""

    code = "invalid_state"


class CapacityExceededError(ContractError):
    code = "room_capacity_exceeded"

    def __init__(self, room_id: int, max_tenants: int, current: int):
        self.room_id = room_id
        self.max_tenants = max_tenants
        self.current = current
        super().__init__(f"Room {room_id} is full ({current}/{max_tenants} tenants)")
