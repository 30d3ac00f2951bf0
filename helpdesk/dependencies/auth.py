from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from helpdesk.tickets.catalog import ReferenceCatalog
from helpdesk.tickets.models import User, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


def get_catalog(request: Request) -> ReferenceCatalog:
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        raise HTTPException(status_code=503, detail="Reference catalog is not loaded")
    return catalog


def resolve_user_from_token(token: str | None, catalog: ReferenceCatalog) -> User | None:
    """Return the directory user named by the bearer token.

    Demonstration stub: the token is the user id itself. A missing token
    yields ``None``; an unknown one is rejected.
    """

    if token is None:
        return None

    user = catalog.user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    request: Request,
) -> User:
    cached = getattr(request.state, "user", None)
    if isinstance(cached, User):
        return cached

    token = credentials.credentials if credentials is not None else None
    user = resolve_user_from_token(token, get_catalog(request))
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    request.state.user = user
    return user


def role_required(role: UserRole) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
