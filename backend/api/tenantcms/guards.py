from __future__ import annotations

from typing import Callable, Iterable, Optional, Set

from fastapi import Depends

from .errors import AuthenticationError, AuthorizationError
from .identity import current_actor
from .models import Actor, Role


def _effective_roles(role: Role) -> Set[Role]:
    # platform_admin satisfies every tenant_admin check
    if role is Role.PLATFORM_ADMIN:
        return {Role.PLATFORM_ADMIN, Role.TENANT_ADMIN}
    return {role}


def ensure_authenticated(actor: Optional[Actor]) -> Actor:
    if actor is None:
        raise AuthenticationError("Authentication required")
    return actor


def ensure_role(actor: Optional[Actor], allowed_roles: Iterable[Role]) -> Actor:
    allowed = {Role(r) for r in allowed_roles}
    actor = ensure_authenticated(actor)
    if not (_effective_roles(actor.role) & allowed):
        raise AuthorizationError.for_roles(r.value for r in allowed)
    return actor


def has_role(actor: Optional[Actor], allowed_roles: Iterable[Role]) -> bool:
    if actor is None:
        return False
    return bool(_effective_roles(actor.role) & {Role(r) for r in allowed_roles})


# ----- FastAPI dependencies -----

def require_authenticated(actor: Optional[Actor] = Depends(current_actor)) -> Actor:
    return ensure_authenticated(actor)


def require_role(*roles: Role) -> Callable[..., Actor]:
    allowed = frozenset(roles)

    def dep(actor: Optional[Actor] = Depends(current_actor)) -> Actor:
        return ensure_role(actor, allowed)

    return dep


require_platform_admin = require_role(Role.PLATFORM_ADMIN)
require_any_admin = require_role(Role.TENANT_ADMIN, Role.PLATFORM_ADMIN)
