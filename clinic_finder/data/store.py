"""
In-memory clinic document store.

Holds the loaded clinic snapshot and answers the narrow query surface the
search pipeline needs: status membership, equality on state, city, tier and
verified, "contains any" on services and tags, a search-term match, a fixed
order and cursor pagination. View tracking is the only write path.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from clinic_finder.utils.cleaning import normalize_clinic_record, normalize_state, resolve_verified
from clinic_finder.utils.filters import ClinicFilter
from clinic_finder.utils.matching import matches_search_term
from clinic_finder.utils.tiers import resolve_tier, tier_priority

logger = logging.getLogger(__name__)

# Ring buffer size of trafficMeta.topSearchTerms
MAX_TOP_SEARCH_TERMS = 20


class ClinicSearchError(Exception):
    """Base class for search failures surfaced to the UI."""


class ClinicQueryError(ClinicSearchError):
    """The clinic store could not answer a query."""


@dataclass(frozen=True)
class StoredDocument:
    """One query hit. Pass it back as ``start_after`` to continue after it."""

    id: Any
    data: Dict[str, Any] = field(compare=False, repr=False)
    sort_key: Tuple[int, float, str] = field(compare=False, repr=False)


def _total_clicks(record: Mapping[str, Any]) -> float:
    traffic = record.get("trafficMeta")
    if not isinstance(traffic, Mapping):
        return 0.0
    try:
        return float(traffic.get("totalClicks") or 0)
    except (TypeError, ValueError):
        return 0.0


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    try:
        return list(value)
    except TypeError:
        return []


def store_sort_key(record: Mapping[str, Any]) -> Tuple[int, float, str]:
    """Tier priority, then totalClicks descending, then id."""
    return (tier_priority(resolve_tier(record)), -_total_clicks(record), str(record.get("id")))


def matches_store_filters(record: Mapping[str, Any], filters: ClinicFilter) -> bool:
    if filters.status and record.get("status") not in filters.status:
        return False
    if filters.state and normalize_state(record.get("state")) != filters.state:
        return False
    if filters.city and record.get("city") != filters.city:
        return False
    if filters.tier and resolve_tier(record) != filters.tier:
        return False
    if filters.verified and not resolve_verified(record):
        return False
    if filters.store_services and not set(_as_list(record.get("services"))) & set(filters.store_services):
        return False
    if filters.store_tags and not set(_as_list(record.get("tags"))) & set(filters.store_tags):
        return False
    # Matched on the normalized record so legacy documents without searchableTerms still hit
    if filters.search_term and not matches_search_term(normalize_clinic_record(record), filters.search_term):
        return False
    return True


class InMemoryClinicStore:
    """Clinic documents keyed by id.

    Usage:
        store = InMemoryClinicStore(records)
        hits = store.query(ClinicFilter(state="TX"), limit=21)
        more = store.query(ClinicFilter(state="TX"), limit=21, start_after=hits[-1])
    """

    def __init__(self, records: Iterable[Mapping[str, Any]] = ()):
        self._lock = threading.Lock()
        self._documents: Dict[Any, Dict[str, Any]] = {}
        for record in records:
            clinic_id = record.get("id")
            if clinic_id is None or clinic_id == "":
                raise ValueError(f"Clinic record without an id: {record.get('name')!r}")
            if clinic_id in self._documents:
                logger.warning(f"Duplicate clinic id {clinic_id!r}; keeping the first record")
                continue
            self._documents[clinic_id] = copy.deepcopy(dict(record))
        logger.info(f"Clinic store initialized with {len(self._documents)} clinics")

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, clinic_id: Any) -> bool:
        return clinic_id in self._documents

    def get(self, clinic_id: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._documents.get(clinic_id)
            return copy.deepcopy(record) if record is not None else None

    def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for record in self._documents.values():
                if record.get("slug") == slug:
                    return copy.deepcopy(record)
        return None

    def query(
        self,
        filters: Optional[ClinicFilter] = None,
        limit: int = 20,
        start_after: Optional[StoredDocument] = None,
    ) -> List[StoredDocument]:
        """
        Run a filtered, ordered, paginated query.

        Args:
            filters: Store-side filters; the radius is ignored here
            limit: Maximum number of documents to return
            start_after: Cursor from a previous query

        Returns:
            Matching documents in store order

        Raises:
            ValueError: if ``limit`` is not a positive integer
        """
        if not isinstance(limit, int) or isinstance(limit, bool) or limit <= 0:
            raise ValueError(f"Query limit must be a positive integer, got {limit!r}")
        filters = filters or ClinicFilter()

        with self._lock:
            hits = [
                StoredDocument(id=clinic_id, data=copy.deepcopy(record), sort_key=store_sort_key(record))
                for clinic_id, record in self._documents.items()
                if matches_store_filters(record, filters)
            ]

        hits.sort(key=lambda doc: doc.sort_key)
        if start_after is not None:
            hits = [doc for doc in hits if doc.sort_key > start_after.sort_key]
        return hits[:limit]

    def record_view(self, clinic_id: Any, search_term: Optional[str] = None) -> Dict[str, Any]:
        """
        Count one profile view and remember the search term that led to it.

        Returns:
            The updated ``trafficMeta`` mapping (a copy)

        Raises:
            KeyError: if the clinic does not exist
        """
        with self._lock:
            record = self._documents.get(clinic_id)
            if record is None:
                raise KeyError(clinic_id)

            traffic = record.get("trafficMeta")
            if not isinstance(traffic, dict):
                traffic = {}
                record["trafficMeta"] = traffic

            traffic["totalClicks"] = int(_total_clicks(record)) + 1

            terms = [t for t in _as_list(traffic.get("topSearchTerms")) if isinstance(t, str)]
            term = search_term.strip() if isinstance(search_term, str) else ""
            if term and term not in terms:
                if len(terms) >= MAX_TOP_SEARCH_TERMS:
                    terms = terms[len(terms) - MAX_TOP_SEARCH_TERMS + 1 :]
                terms.append(term)
            traffic["topSearchTerms"] = terms
            traffic["lastViewed"] = datetime.now(timezone.utc).isoformat()

            return copy.deepcopy(traffic)
