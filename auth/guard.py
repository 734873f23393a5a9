"""
auth/guard.py -- Authorization policies over a decoded Identity.

Two reusable predicates:
  ensure_self_or_admin(identity, username) -- the caller is that user, or an admin
  ensure_admin(identity)                   -- the caller is an admin

Both are pure: no I/O, no side effects, no database. They assume the token has
already been decoded; a missing identity is an Unauthorized decided earlier by
auth/dependencies.py, never a Forbidden decided here.
"""

from __future__ import annotations

from auth.models import Identity
from core.errors import Forbidden


def is_self_or_admin(identity: Identity, username: str) -> bool:
    return identity.is_admin or identity.username == username


def ensure_self_or_admin(identity: Identity, username: str) -> Identity:
    """Allow if the caller owns the resource keyed by username, or is an admin."""
    if not is_self_or_admin(identity, username):
        raise Forbidden("You may only act on your own account.")
    return identity


def ensure_admin(identity: Identity) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Admin access required.")
    return identity
