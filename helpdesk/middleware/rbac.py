"""Role-based access control middleware for FastAPI."""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from helpdesk.dependencies.auth import resolve_user_from_token


class RBACMiddleware(BaseHTTPMiddleware):
    """Populate the request state with the authenticated directory user."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        authorization = request.headers.get("Authorization")
        catalog = getattr(request.app.state, "catalog", None)
        if not authorization or catalog is None:
            return await call_next(request)

        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() != "bearer":
            return JSONResponse(status_code=401, content={"detail": "Invalid authentication credentials"})

        try:
            user = resolve_user_from_token(credentials.strip() or None, catalog)
        except HTTPException as exc:
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

        if user is not None:
            request.state.user = user
        return await call_next(request)
