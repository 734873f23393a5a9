"""
api/routes/v1/users.py -- The users resource and per-user library routes.

Routes:
  POST   /users                                  -- create user (admin only) -> 201 {user, token}
  GET    /users                                  -- list users (admin only)  -> {users}
  GET    /users/{username}                       -- user + enriched works (self or admin)
  PATCH  /users/{username}                       -- update name/email; password required (self or admin)
  DELETE /users/{username}                       -- remove user and library (self or admin)
  POST   /users/{username}/userLib/{work_id}     -- add work to library (self or admin)
  PATCH  /users/{username}/userLib/{work_id}     -- change entry annotations (self or admin)
  DELETE /users/{username}/userLib/{work_id}     -- remove work from library (self or admin)

Auth policy is declared per route with Depends(require_admin) or
Depends(require_self_or_admin). The latter reads the {username} path
parameter, so every self-or-admin route keeps that exact name.

Handlers are plain `def`: bcrypt and catalog lookups block, and FastAPI runs
sync handlers in its thread pool.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import (
    AddedEnvelope,
    DeletedEnvelope,
    EntryEnvelope,
    LibraryEntryCreate,
    LibraryEntryResponse,
    LibraryEntryUpdate,
    RemovedEnvelope,
    UserCreate,
    UserDetailEnvelope,
    UserDetailResponse,
    UserEnvelope,
    UserListEnvelope,
    UserResponse,
    UserTokenEnvelope,
    UserUpdate,
)
from auth.dependencies import require_admin, require_self_or_admin
from library.directory import UserDirectory
from library.manager import LibraryManager

router = APIRouter()


def _directory(request: Request) -> UserDirectory:
    return request.app.state.directory


def _manager(request: Request) -> LibraryManager:
    return request.app.state.library


# ---------------------------------------------------------------------------
# Admin-only collection routes
# ---------------------------------------------------------------------------


@router.post(
    "/users",
    response_model=UserTokenEnvelope,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_user(request: Request, body: UserCreate) -> UserTokenEnvelope:
    """Create a user. Admin only; the new user may itself be an admin.

    This is not the self-service registration endpoint (see POST /auth/register).
    Returns the new user and a token issued for them.
    """
    user, token = _directory(request).register(
        username=body.username,
        name=body.name,
        email=body.email,
        password=body.password,
        is_admin=body.is_admin,
    )
    return UserTokenEnvelope(user=UserResponse.from_user(user), token=token)


@router.get("/users", response_model=UserListEnvelope, dependencies=[Depends(require_admin)])
def list_users(request: Request) -> UserListEnvelope:
    users = _directory(request).list_users()
    return UserListEnvelope(users=[UserResponse.from_user(u) for u in users])


# ---------------------------------------------------------------------------
# Self-or-admin user routes
# ---------------------------------------------------------------------------


@router.get(
    "/users/{username}",
    response_model=UserDetailEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def get_user(request: Request, username: str) -> UserDetailEnvelope:
    """Return the user with their library.

    Each entry whose work has an external id is enriched with title and
    composer from the catalog. A failed lookup leaves those fields null; it
    never fails the request.
    """
    user, entries = _directory(request).get(username)
    detail = UserDetailResponse(
        username=user.username,
        name=user.name,
        email=user.email,
        isAdmin=user.is_admin,
        works=[LibraryEntryResponse.from_entry(e) for e in entries],
    )
    return UserDetailEnvelope(user=detail)


@router.patch(
    "/users/{username}",
    response_model=UserEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def update_user(request: Request, username: str, body: UserUpdate) -> UserEnvelope:
    """Update name and/or email. The account's current password must be supplied.

    The password check is separate from the route guard: passing the guard
    as an admin does not waive it.
    """
    user = _directory(request).update(username, body.password, name=body.name, email=body.email)
    return UserEnvelope(user=UserResponse.from_user(user))


@router.delete(
    "/users/{username}",
    response_model=DeletedEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def delete_user(request: Request, username: str) -> DeletedEnvelope:
    _directory(request).remove(username)
    return DeletedEnvelope(deleted=username)


# ---------------------------------------------------------------------------
# Library entries
# ---------------------------------------------------------------------------


@router.post(
    "/users/{username}/userLib/{work_id}",
    response_model=AddedEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def add_to_library(
    request: Request,
    username: str,
    work_id: int,
    body: Optional[LibraryEntryCreate] = None,
) -> AddedEnvelope:
    """Add a work to the user's library. 409 if it is already there."""
    annotations = body.model_dump() if body is not None else {}
    _manager(request).add_to_library(username, work_id, **annotations)
    return AddedEnvelope(added=work_id)


@router.patch(
    "/users/{username}/userLib/{work_id}",
    response_model=EntryEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def update_library_entry(
    request: Request,
    username: str,
    work_id: int,
    body: LibraryEntryUpdate,
) -> EntryEnvelope:
    # Explicit null clears the borrower; for every other field null means "leave as is".
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None or k == "borrower"}
    entry = _manager(request).update_entry(username, work_id, **changes)
    return EntryEnvelope(entry=LibraryEntryResponse.from_entry(entry))


@router.delete(
    "/users/{username}/userLib/{work_id}",
    response_model=RemovedEnvelope,
    dependencies=[Depends(require_self_or_admin)],
)
def remove_from_library(request: Request, username: str, work_id: int) -> RemovedEnvelope:
    _manager(request).remove_from_library(username, work_id)
    return RemovedEnvelope(removed=work_id)
