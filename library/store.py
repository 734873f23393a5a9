"""
library/store.py -- SQLAlchemy-backed persistence for works and library entries.

Uses SQLAlchemy Core (not ORM) so the dataclasses in library/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. LibraryStore is the repository; the
_row_to_* functions are the mappers. Services never touch SQL directly.

Constraints:
  UNIQUE(username, work_id) on library_entries -- a user shelves a work at
  most once. A second insert raises IntegrityError, which the manager maps
  to Conflict.

Cascades are explicit. Nothing relies on ON DELETE CASCADE: callers delete a
user's (or a work's) entries first, then the owning row, so "no orphaned
entry" holds whatever the database engine's foreign key settings are.

Usage:
    store = LibraryStore()
    work_id = store.create_work(Work(external_id="1234"))
    store.add_entry(LibraryEntry(username="clara", work_id=work_id, owned=True))
    entries = store.list_entries("clara")
    store.close()
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Engine

from auth.store import make_engine
from core.config import get_settings
from library.models import LibraryEntry, Work

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_works = Table(
    "works",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("external_id", String(32)),  # Open Opus work id
    Column("title", String(500)),
    Column("composer", String(255)),
    Column("created_at", String(32), nullable=False),
)

_entries = Table(
    "library_entries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False, index=True),
    Column("work_id", Integer, nullable=False, index=True),
    Column("owned", Integer, nullable=False, server_default="0"),
    Column("played", Integer, nullable=False, server_default="0"),
    Column("digital", Integer, nullable=False, server_default="0"),
    Column("physical", Integer, nullable=False, server_default="0"),
    Column("notes", Text, nullable=False, server_default=""),
    Column("loaned_out", Integer, nullable=False, server_default="0"),
    Column("borrower", String(255)),
    Column("added_at", String(32), nullable=False),
    UniqueConstraint("username", "work_id", name="uq_user_work"),
)

_BOOL_FIELDS = ("owned", "played", "digital", "physical", "loaned_out")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_db(fields: dict) -> dict:
    """Convert bool annotations to SQLite 0/1 integers."""
    return {k: (1 if v else 0) if k in _BOOL_FIELDS else v for k, v in fields.items()}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LibraryStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Works
    # ------------------------------------------------------------------

    def create_work(self, work: Work) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _works.insert().values(
                    external_id=work.external_id,
                    title=work.title,
                    composer=work.composer,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_work(self, work_id: int) -> Optional[Work]:
        with self.engine.connect() as conn:
            row = conn.execute(_works.select().where(_works.c.id == work_id)).fetchone()
        return _row_to_work(row) if row is not None else None

    def list_works(self) -> list[Work]:
        with self.engine.connect() as conn:
            rows = conn.execute(_works.select().order_by(_works.c.id)).fetchall()
        return [_row_to_work(r) for r in rows]

    def delete_work(self, work_id: int) -> bool:
        """Delete a work and every library entry that references it.

        Both deletes run in one transaction, entries first.
        """
        with self.engine.begin() as conn:
            conn.execute(_entries.delete().where(_entries.c.work_id == work_id))
            result = conn.execute(_works.delete().where(_works.c.id == work_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Library entries
    # ------------------------------------------------------------------

    def add_entry(self, entry: LibraryEntry) -> int:
        """Insert a library entry and return its ID.

        Raises sqlalchemy.exc.IntegrityError if (username, work_id) exists.
        """
        values = _to_db(
            {
                "owned": entry.owned,
                "played": entry.played,
                "digital": entry.digital,
                "physical": entry.physical,
                "notes": entry.notes or "",
                "loaned_out": entry.loaned_out,
                "borrower": entry.borrower,
            }
        )
        with self.engine.connect() as conn:
            result = conn.execute(
                _entries.insert().values(
                    username=entry.username,
                    work_id=entry.work_id,
                    added_at=_now_iso(),
                    **values,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_entry(self, username: str, work_id: int) -> Optional[LibraryEntry]:
        with self.engine.connect() as conn:
            row = conn.execute(
                self._entry_query().where((_entries.c.username == username) & (_entries.c.work_id == work_id))
            ).fetchone()
        return _row_to_entry(row) if row is not None else None

    def list_entries(self, username: str) -> list[LibraryEntry]:
        """Return a user's entries joined with their works, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                self._entry_query().where(_entries.c.username == username).order_by(_entries.c.id)
            ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def count_entries(self, username: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_entries).where(_entries.c.username == username)
            ).scalar()
        return result or 0

    def update_entry(self, username: str, work_id: int, **fields) -> bool:
        """Update annotation fields on an entry. Returns True if a row was updated."""
        if not fields:
            return False
        with self.engine.connect() as conn:
            result = conn.execute(
                _entries.update()
                .where((_entries.c.username == username) & (_entries.c.work_id == work_id))
                .values(**_to_db(fields))
            )
            conn.commit()
        return result.rowcount > 0

    def remove_entry(self, username: str, work_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _entries.delete().where((_entries.c.username == username) & (_entries.c.work_id == work_id))
            )
            conn.commit()
        return result.rowcount > 0

    def remove_entries_for_user(self, username: str) -> int:
        """Delete every entry owned by username. Returns the number removed."""
        with self.engine.connect() as conn:
            result = conn.execute(_entries.delete().where(_entries.c.username == username))
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _entry_query():
        return select(
            _entries,
            _works.c.external_id,
            _works.c.title,
            _works.c.composer,
        ).select_from(_entries.outerjoin(_works, _entries.c.work_id == _works.c.id))


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_work(row) -> Work:
    return Work(
        id=row.id,
        external_id=row.external_id,
        title=row.title,
        composer=row.composer,
        created_at=row.created_at,
    )


def _row_to_entry(row) -> LibraryEntry:
    return LibraryEntry(
        id=row.id,
        username=row.username,
        work_id=row.work_id,
        owned=bool(row.owned),
        played=bool(row.played),
        digital=bool(row.digital),
        physical=bool(row.physical),
        notes=row.notes or "",
        loaned_out=bool(row.loaned_out),
        borrower=row.borrower,
        added_at=row.added_at,
        external_id=row.external_id,
        title=row.title,
        composer=row.composer,
    )
