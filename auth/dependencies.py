"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token transports are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. JWT cookie ("access_token") -- set by POST /auth/login for browsers.

Both carry the same signed JWT, so neither can be forged without SECRET_KEY.

try_get_identity() is the soft variant (returns None on failure).
get_current_identity() wraps it and raises Unauthorized.
require_admin() and require_self_or_admin() then apply the pure policies
from auth/guard.py and raise Forbidden.

The ordering is the contract: a request with no usable token is always 401,
never 403, whatever resource it asks for.

Layer rule: no imports from api/, library/, or cache/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.guard import ensure_admin, ensure_self_or_admin
from auth.models import Identity
from auth.tokens import decode_access_token
from core.errors import Unauthorized


def _token_from_request(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get("access_token") or None


def try_get_identity(request: Request) -> Identity | None:
    """Decode the request's token. Returns None when absent or invalid. Never raises."""
    token = _token_from_request(request)
    if not token:
        return None
    return decode_access_token(token)


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises Unauthorized if no valid token was presented.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = try_get_identity(request)
    if identity is None:
        raise Unauthorized("Authentication required.")
    request.state.identity = identity
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """Require isAdmin. Unauthorized if unauthenticated, Forbidden if not admin."""
    return ensure_admin(identity)


def require_self_or_admin(
    username: str,
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Require that the caller is the {username} in the route path, or an admin.

    FastAPI fills `username` from the path parameter of the same name, so this
    dependency only fits routes shaped like /users/{username}/...
    """
    return ensure_self_or_admin(identity, username)
