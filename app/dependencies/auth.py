from collections.abc import Callable
from enum import Enum
from typing import Annotated

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer


class Role(str, Enum):
    """Supported roles."""

    ADMIN = "admin"
    MANAGER = "manager"
    ATTENDANT = "attendant"
    RECEPTION = "reception"


class User:
    """Simple representation of an authenticated staff member."""

    def __init__(self, username: str, roles: tuple[Role, ...], display_name: str | None = None):
        self.username = username
        self.roles = roles
        self.display_name = display_name or username

    def has_role(self, role: Role) -> bool:
        return role in self.roles


bearer_scheme = HTTPBearer(auto_error=False)

ANONYMOUS = User(username="anonymous", roles=())

_ALL_ROLES = (Role.ADMIN, Role.MANAGER, Role.ATTENDANT, Role.RECEPTION)

# Static token directory standing in for the real identity provider.
_TOKEN_MAP: dict[str, tuple[str, str, tuple[Role, ...]]] = {
    "admin-token": ("admin", "Administração", _ALL_ROLES),
    "manager-token": ("coordenacao", "Coordenação", (Role.MANAGER, Role.ATTENDANT, Role.RECEPTION)),
    "attendant-1-token": ("guiche1", "Guichê 1", (Role.ATTENDANT,)),
    "attendant-2-token": ("guiche2", "Guichê 2", (Role.ATTENDANT,)),
    "reception-token": ("recepcao", "Recepção", (Role.RECEPTION,)),
}


def resolve_user_from_token(token: str | None) -> User:
    if not token:
        return ANONYMOUS
    if token not in _TOKEN_MAP:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    username, display_name, roles = _TOKEN_MAP[token]
    return User(username=username, roles=roles, display_name=display_name)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)]
) -> User:
    """Map a bearer token to a known staff member; no token means anonymous."""

    return resolve_user_from_token(None if credentials is None else credentials.credentials)


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
