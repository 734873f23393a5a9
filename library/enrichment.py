"""
library/enrichment.py -- Best-effort catalog enrichment of library entries.

Every entry whose work carries an external_id is looked up in the catalog
with that entry's own id, whatever the size of the library. A successful
lookup replaces title/composer on the returned entry. A failed lookup leaves
whatever the local Work row holds (often nothing) and the read carries on:
enrichment never fails a request.

Lookups are independent, so they run concurrently on a small thread pool.
Executor.map yields results in submission order, which keeps the output
aligned with the input entries.
"""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from library.models import LibraryEntry

logger = logging.getLogger("sheetshelf.enrichment")

Lookup = Callable[[str], Optional[dict[str, Any]]]


def _safe_lookup(lookup: Lookup, external_id: str) -> Optional[dict[str, Any]]:
    # CatalogClient already reports failures as None. This guard covers a
    # lookup that raises anyway (e.g. a cache read error) so one bad entry
    # cannot abort the others.
    try:
        return lookup(external_id)
    except Exception:
        logger.warning("Catalog lookup raised for %s", external_id, exc_info=True)
        return None


def enrich_entries(
    entries: list[LibraryEntry],
    lookup: Lookup,
    max_workers: int = 8,
) -> list[LibraryEntry]:
    """Return a new list of entries with catalog title/composer attached.

    The input list and its entries are not modified.
    """
    targets = [(i, e.external_id) for i, e in enumerate(entries) if e.external_id]
    if not targets:
        return list(entries)

    workers = max(1, min(max_workers, len(targets)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="catalog") as pool:
        details = list(pool.map(lambda ext_id: _safe_lookup(lookup, ext_id), [ext for _, ext in targets]))

    enriched = list(entries)
    resolved = 0
    for (index, _), detail in zip(targets, details):
        if detail is None:
            continue
        entry = enriched[index]
        enriched[index] = entry.with_details(
            title=detail.get("title") or entry.title,
            composer=detail.get("composer") or entry.composer,
        )
        resolved += 1

    if resolved < len(targets):
        logger.info("Catalog enrichment resolved %d of %d entries", resolved, len(targets))
    return enriched
