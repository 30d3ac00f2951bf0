from types import SimpleNamespace

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from helpdesk.dependencies.auth import get_current_user, resolve_user_from_token, role_required
from helpdesk.tickets.models import UserRole

from tests.factories import make_user


@pytest.mark.asyncio
async def test_role_required_allows_authorized_user():
    dependency = role_required(UserRole.ADMIN)
    user = make_user("alice", role=UserRole.ADMIN)
    result = await dependency(user)  # type: ignore[arg-type]
    assert result.id == "alice"


@pytest.mark.asyncio
async def test_role_required_rejects_unauthorized_user():
    dependency = role_required(UserRole.ADMIN)
    user = make_user("bob", role=UserRole.MANAGER)
    with pytest.raises(HTTPException) as exc:
        await dependency(user)  # type: ignore[arg-type]

    assert exc.value.status_code == 403
    assert exc.value.detail == "Insufficient permissions"


def test_resolve_user_from_token(catalog):
    assert resolve_user_from_token(None, catalog) is None
    assert resolve_user_from_token("u5", catalog).role is UserRole.MANAGER
    with pytest.raises(HTTPException) as exc:
        resolve_user_from_token("ghost", catalog)
    assert exc.value.status_code == 401


def _request(catalog, user=None):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(catalog=catalog)), state=SimpleNamespace(user=user))


@pytest.mark.asyncio
async def test_get_current_user_caches_on_request(catalog):
    request = _request(catalog)
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="u7")

    user = await get_current_user(credentials, request)  # type: ignore[arg-type]

    assert user.id == "u7"
    assert request.state.user is user
    assert await get_current_user(None, request) is user  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_get_current_user_requires_credentials(catalog):
    with pytest.raises(HTTPException) as exc:
        await get_current_user(None, _request(catalog))  # type: ignore[arg-type]
    assert exc.value.status_code == 401
