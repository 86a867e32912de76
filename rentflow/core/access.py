"""
Access decision points for contract operations.

Identity comes from the caller (authentication is not handled here).
`actor=None` stands for a trusted system caller such as the sweeper or the CLI.

    OWNER    — everything
    MANAGER  — contracts of rooms in buildings they manage; no hard delete
    TENANT   — own contracts only: read, accept/reject, answer a termination request

Listings are scoped the same way: a tenant lists only their own contracts and
a manager only the contracts of rooms in buildings they manage.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from rentflow.core.errors import PermissionDeniedError


class Role(str, Enum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    TENANT = "TENANT"


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    APPROVE = "approve"
    UPDATE = "update"
    REQUEST_TERMINATION = "request_termination"
    ANSWER_TERMINATION = "answer_termination"
    FORCE_TERMINATE = "force_terminate"
    RESOLVE = "resolve"
    DELETE = "delete"
    RESTORE = "restore"
    HARD_DELETE = "hard_delete"


TENANT_ACTIONS = frozenset({Action.READ, Action.APPROVE, Action.ANSWER_TERMINATION})
OWNER_ONLY_ACTIONS = frozenset({Action.HARD_DELETE})


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role


async def ensure_allowed(tx, actor: Actor | None, action: Action, *, building_id: int, tenant_user_id: int) -> None:
    """Raise PermissionDeniedError unless `actor` may perform `action` on the contract."""
    if actor is None or actor.role == Role.OWNER:
        return

    if action in OWNER_ONLY_ACTIONS:
        raise PermissionDeniedError(action.value, "only the owner may do this")

    if actor.role == Role.TENANT:
        if action not in TENANT_ACTIONS:
            raise PermissionDeniedError(action.value, "tenants cannot perform this action")
        if tenant_user_id != actor.user_id:
            raise PermissionDeniedError(action.value, "contract belongs to another tenant")
        return

    if actor.role == Role.MANAGER:
        if not await tx.access.manages_building(actor.user_id, building_id):
            raise PermissionDeniedError(action.value, f"building {building_id} is not managed by this user")
        return

    raise PermissionDeniedError(action.value, f"unknown role {actor.role}")


@dataclass(frozen=True)
class ListingScope:
    """Rows `actor` may list. A None field means no restriction on that column."""

    tenant_user_id: int | None = None
    building_ids: tuple[int, ...] | None = None

    @property
    def is_empty(self) -> bool:
        return self.building_ids is not None and not self.building_ids


async def listing_scope(tx, actor: Actor | None) -> ListingScope:
    if actor is None or actor.role == Role.OWNER:
        return ListingScope()
    if actor.role == Role.TENANT:
        return ListingScope(tenant_user_id=actor.user_id)
    if actor.role == Role.MANAGER:
        return ListingScope(building_ids=tuple(await tx.access.managed_building_ids(actor.user_id)))
    raise PermissionDeniedError(Action.READ.value, f"unknown role {actor.role}")
