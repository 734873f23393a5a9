"""
library/manager.py -- Attach, detach and annotate works in a user's library.

Duplicate policy: adding a (user, work) pair that already exists is a
Conflict, not a silent no-op. The UNIQUE(username, work_id) constraint in
library/store.py decides; the manager only translates IntegrityError.

Reads go through entries_for(), which returns the stored entries with
catalog enrichment applied (see library/enrichment.py).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from auth.store import UserStore
from core.catalog import CatalogClient
from core.errors import Conflict, NotFound, ValidationError
from library.enrichment import enrich_entries
from library.models import ENTRY_ANNOTATIONS, LibraryEntry, Work
from library.store import LibraryStore

logger = logging.getLogger("sheetshelf.library")


class LibraryManager:
    def __init__(
        self,
        users: UserStore,
        library: LibraryStore,
        catalog: CatalogClient,
        max_workers: int = 8,
    ) -> None:
        self.users = users
        self.library = library
        self.catalog = catalog
        self.max_workers = max_workers

    # ------------------------------------------------------------------
    # Works
    # ------------------------------------------------------------------

    def create_work(
        self,
        external_id: Optional[str] = None,
        title: Optional[str] = None,
        composer: Optional[str] = None,
    ) -> Work:
        if not (external_id or title):
            raise ValidationError("A work needs an external_id or a title.")
        work_id = self.library.create_work(Work(external_id=external_id, title=title, composer=composer))
        logger.info("Work %d created (external_id=%s)", work_id, external_id)
        return self.get_work(work_id)

    def get_work(self, work_id: int) -> Work:
        work = self.library.get_work(work_id)
        if work is None:
            raise NotFound(f"Work {work_id} not found.")
        return work

    def list_works(self) -> list[Work]:
        return self.library.list_works()

    def delete_work(self, work_id: int) -> None:
        """Delete a work; every entry referencing it goes with it."""
        if not self.library.delete_work(work_id):
            raise NotFound(f"Work {work_id} not found.")
        logger.info("Work %d deleted", work_id)

    # ------------------------------------------------------------------
    # Library entries
    # ------------------------------------------------------------------

    def add_to_library(self, username: str, work_id: int, **annotations: Any) -> LibraryEntry:
        """Shelve work_id for username.

        Raises NotFound if the user or the work is missing, Conflict if the
        work is already in the user's library.
        """
        _check_annotations(annotations)
        if self.users.get_by_username(username) is None:
            raise NotFound(f"User '{username}' not found.")
        if self.library.get_work(work_id) is None:
            raise NotFound(f"Work {work_id} not found.")

        entry = LibraryEntry(username=username, work_id=work_id, **annotations)
        try:
            self.library.add_entry(entry)
        except IntegrityError as exc:
            raise Conflict(f"Work {work_id} is already in {username}'s library.") from exc

        # The user may have been removed between the check above and the insert.
        if self.users.get_by_username(username) is None:
            self.library.remove_entry(username, work_id)
            raise NotFound(f"User '{username}' not found.")

        logger.info("Work %d added to %s's library", work_id, username)
        return self.library.get_entry(username, work_id)

    def remove_from_library(self, username: str, work_id: int) -> None:
        if not self.library.remove_entry(username, work_id):
            raise NotFound(f"Work {work_id} is not in {username}'s library.")
        logger.info("Work %d removed from %s's library", work_id, username)

    def update_entry(self, username: str, work_id: int, **changes: Any) -> LibraryEntry:
        """Change annotations on an existing entry."""
        _check_annotations(changes)
        if not changes:
            raise ValidationError("No fields to update.")
        if not self.library.update_entry(username, work_id, **changes):
            raise NotFound(f"Work {work_id} is not in {username}'s library.")
        return self.library.get_entry(username, work_id)

    def entries_for(self, username: str) -> list[LibraryEntry]:
        """Return username's entries with catalog title/composer attached."""
        entries = self.library.list_entries(username)
        return enrich_entries(entries, self.catalog.work_detail, max_workers=self.max_workers)

    def remove_all_for(self, username: str) -> int:
        return self.library.remove_entries_for_user(username)


def _check_annotations(fields: dict) -> None:
    unknown = set(fields) - set(ENTRY_ANNOTATIONS)
    if unknown:
        raise ValidationError(f"Unknown library entry fields: {', '.join(sorted(unknown))}")
