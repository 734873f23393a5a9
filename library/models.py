"""
library/models.py -- Domain dataclasses for works and library entries.

These are pure data containers with zero logic. Business rules (duplicate
policy, cascades, enrichment) live in library/manager.py and
library/directory.py.
"""

from dataclasses import dataclass, replace
from typing import Optional


@dataclass
class Work:
    """A canonical musical-work record, shared by every user who shelves it.

    title and composer may be empty locally. When external_id is set they are
    resolved from the catalog at read time (see library/enrichment.py).

    id is None before the record is written to the database.
    """

    external_id: Optional[str] = None
    title: Optional[str] = None
    composer: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class LibraryEntry:
    """One user's annotated relation to one work.

    external_id, title and composer are copied from the referenced Work when
    the entry is read, so a caller sees a flat record. The Work row itself is
    never modified by enrichment.

    id is None before the record is written to the database.
    """

    username: str
    work_id: int
    owned: bool = False
    played: bool = False
    digital: bool = False
    physical: bool = False
    notes: str = ""
    loaned_out: bool = False
    borrower: Optional[str] = None
    added_at: str = ""  # ISO 8601
    external_id: Optional[str] = None
    title: Optional[str] = None
    composer: Optional[str] = None
    id: Optional[int] = None

    def with_details(self, title: Optional[str], composer: Optional[str]) -> "LibraryEntry":
        return replace(self, title=title, composer=composer)


# Annotation fields a caller may set on add or change on update.
ENTRY_ANNOTATIONS = ("owned", "played", "digital", "physical", "notes", "loaned_out", "borrower")
