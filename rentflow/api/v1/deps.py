from __future__ import annotations

from functools import lru_cache

from fastapi import Header, HTTPException, status

from rentflow.bootstrap import build_engine
from rentflow.core.access import Actor, Role
from rentflow.core.engine import ContractLifecycleEngine


@lru_cache(maxsize=1)
def get_engine() -> ContractLifecycleEngine:
    return build_engine()


async def get_actor(
    x_user_id: int | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor:
    """Identity is established upstream; this only reads what the gateway forwarded."""
    if x_user_id is None or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity headers")
    try:
        role = Role(x_user_role.upper())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role: {x_user_role}")
    return Actor(user_id=x_user_id, role=role)
