"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these own the shape.

Layer rule: no imports from api/, library/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered library owner.

    username is the primary identifier and never changes after creation.
    hashed_password is opaque bcrypt output; it is never serialized outward
    (the API response models have no field for it).
    """

    username: str
    name: str
    email: str
    hashed_password: str
    is_admin: bool = False
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The decoded claim carried by an access token.

    This is what the Authorization Guard reasons about. It is built from the
    token alone; no database lookup is involved.
    """

    username: str
    is_admin: bool = False
