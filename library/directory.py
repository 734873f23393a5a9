"""
library/directory.py -- The user directory: register, read, update, remove.

Two gates protect every mutation of a user record:
  1. The route-level guard (auth/dependencies.py): the caller is that user
     or an admin.
  2. update() re-verifies the submitted password against the stored hash
     before touching any field. This holds even for an admin acting on
     someone else's account -- it is re-authentication, not identity matching.

remove() cascades in a fixed order: library entries first, then the user
row. If the second step fails the user still exists with an empty library,
which is a valid state; the reverse order could leave orphaned entries.

The users and library tables live in separate stores with no foreign key,
so a concurrent add_to_library() can land between the two deletes. remove()
sweeps the library once more after the user row is gone, and
add_to_library() re-checks the user after its insert and undoes it if the
user has vanished. Either way no entry outlives its user.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import UserStore
from auth.tokens import authenticate_user, create_token_for, hash_password, verify_password
from core.errors import Conflict, NotFound, Unauthorized, ValidationError
from library.manager import LibraryManager
from library.models import LibraryEntry

logger = logging.getLogger("sheetshelf.directory")


def normalize_email(email: str) -> str:
    """Emails compare case-insensitively; store them lower-cased."""
    return email.strip().lower()


class UserDirectory:
    def __init__(self, users: UserStore, library: LibraryManager) -> None:
        self.users = users
        self.library = library

    def register(
        self,
        username: str,
        name: str,
        email: str,
        password: str,
        is_admin: bool = False,
    ) -> tuple[User, str]:
        """Create a user and issue their first token.

        The shape of the input has been validated at the HTTP boundary. This
        method owns uniqueness: the pre-checks give a precise message, and the
        UNIQUE constraints catch whatever races past them.
        """
        email = normalize_email(email)
        if self.users.get_by_username(username) is not None:
            raise Conflict(f"Duplicate username: {username}")
        if self.users.get_by_email(email) is not None:
            raise Conflict(f"Duplicate email: {email}")

        user = User(
            username=username,
            name=name,
            email=email,
            hashed_password=hash_password(password),
            is_admin=is_admin,
        )
        try:
            self.users.create_user(user)
        except IntegrityError as exc:
            raise Conflict("A user with that username or email already exists.") from exc

        created = self._require(username)
        logger.info("User %s registered (admin=%s)", username, is_admin)
        return created, create_token_for(created)

    def login(self, username: str, password: str) -> tuple[User, str]:
        """Exchange a username and password for a token.

        Unknown user and wrong password produce the same error.
        """
        user = authenticate_user(self.users, username, password)
        if user is None:
            raise Unauthorized("Invalid username or password.")
        return user, create_token_for(user)

    def list_users(self) -> list[User]:
        return self.users.list_users()

    def get(self, username: str) -> tuple[User, list[LibraryEntry]]:
        """Return the user and their enriched library entries."""
        user = self._require(username)
        return user, self.library.entries_for(username)

    def update(
        self,
        username: str,
        password: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """Change name and/or email after re-verifying the account password."""
        if email is not None:
            email = normalize_email(email)
        user = self._require(username)
        if not verify_password(password, user.hashed_password):
            logger.info("Rejected update for %s: bad password", username)
            raise Unauthorized("Bad password")

        changes: dict = {}
        if name is not None:
            changes["name"] = name
        if email is not None and email != user.email:
            owner = self.users.get_by_email(email)
            if owner is not None and owner.username != username:
                raise Conflict(f"Duplicate email: {email}")
            changes["email"] = email
        if name is None and email is None:
            raise ValidationError("No fields to update.")

        if changes:
            try:
                self.users.update_user(username, **changes)
            except IntegrityError as exc:
                raise Conflict("A user with that email already exists.") from exc
        return self._require(username)

    def remove(self, username: str) -> None:
        """Delete a user and every entry in their library."""
        self._require(username)
        removed = self.library.remove_all_for(username)
        if not self.users.delete_user(username):
            raise NotFound(f"No user: {username}")
        # Sweep entries added between the two deletes.
        removed += self.library.remove_all_for(username)
        logger.info("User %s removed with %d library entries", username, removed)

    def _require(self, username: str) -> User:
        user = self.users.get_by_username(username)
        if user is None:
            raise NotFound(f"No user: {username}")
        return user
