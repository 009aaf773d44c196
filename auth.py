"""Principal supplied by the upstream authentication gateway.

Token issuance and verification live outside this service. The gateway
forwards the authenticated user id and roles as headers, which are trusted
as-is. Deployments with a different auth source override ``get_principal``
through ``app.dependency_overrides``.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from fastapi import Header

from errors import AuthenticationError, AuthorizationError

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@dataclass(frozen=True)
class Principal:
    user_id: int
    roles: FrozenSet[str] = field(default_factory=lambda: frozenset({USER_ROLE}))

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


def require_admin(principal: Principal, action: str) -> None:
    if not principal.is_admin:
        raise AuthorizationError(f"Unauthorized. Only admins can {action} places.")


async def get_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_roles: Optional[str] = Header(default=None),
) -> Principal:
    if not x_user_id:
        raise AuthenticationError("Unauthorized.")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise AuthenticationError("Unauthorized.") from None

    roles = frozenset(
        role.strip().lower() for role in (x_user_roles or USER_ROLE).split(",") if role.strip()
    )
    return Principal(user_id=user_id, roles=roles or frozenset({USER_ROLE}))
