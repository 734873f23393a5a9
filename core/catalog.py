"""
catalog.py -- Lookups against the external composer/work catalog (Open Opus).

The catalog is a remote collaborator with its own failure modes. Every
failure (network error, timeout, non-2xx, unexpected JSON) is logged and
reported as None. Nothing here raises and nothing here retries.

Endpoint used:
  GET {base_url}/work/detail/{external_id}.json
  -> {"status": {...}, "composer": {"complete_name": ...}, "work": {"title": ...}}
"""

import logging
from typing import Any, Optional

import requests

from cache.store import CatalogCache
from core.config import OPEN_OPUS_API

logger = logging.getLogger("sheetshelf.catalog")

WORK_DETAIL_PATH = "/work/detail/{external_id}.json"

# Module-level session shared across all lookups for connection pooling.
# max_redirects=3 replaces the requests default of 30 -- this is a known public
# API and a short redirect budget limits SSRF via redirect chains.
_session = requests.Session()
_session.max_redirects = 3


def fetch_work_detail(
    external_id: str,
    base_url: str = OPEN_OPUS_API,
    timeout: float = 10.0,
) -> Optional[dict[str, Any]]:
    """Fetch title and composer for one catalog work.

    Returns {"title": str | None, "composer": str | None}, or None when the
    lookup failed in any way.
    """
    url = base_url + WORK_DETAIL_PATH.format(external_id=external_id)
    try:
        resp = _session.get(url, timeout=timeout)
        resp.raise_for_status()
        body = resp.json()
        work = body.get("work") or {}
        composer = body.get("composer") or {}
        if not work and not composer:
            logger.warning("Catalog returned no work for %s", external_id)
            return None
        return {
            "title": work.get("title"),
            "composer": composer.get("complete_name"),
        }
    except requests.RequestException as e:
        logger.warning("Catalog fetch failed for %s: %s", external_id, e)
        return None
    except (ValueError, AttributeError) as e:
        # ValueError: body is not JSON. AttributeError: JSON of the wrong shape.
        logger.warning("Catalog returned malformed data for %s: %s", external_id, e)
        return None


class CatalogClient:
    """Catalog lookups bound to the configured base URL, timeout and cache.

    Built once in the API lifespan from Settings and shared by every request.
    The cache is optional so the CLI can run a one-off lookup without it.
    """

    def __init__(
        self,
        base_url: str = OPEN_OPUS_API,
        timeout: float = 10.0,
        cache: Optional[CatalogCache] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.cache = cache

    def work_detail(self, external_id: str) -> Optional[dict[str, Any]]:
        if self.cache is not None:
            cached = self.cache.get(external_id)
            if cached is not None:
                return cached

        detail = fetch_work_detail(external_id, base_url=self.base_url, timeout=self.timeout)

        if detail is not None and self.cache is not None:
            self.cache.set(external_id, detail)
        return detail
