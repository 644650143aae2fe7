"""Search pipeline shared by the Streamlit pages.

A search is: fetch one store page, normalize it into a DataFrame, annotate
distances, apply the client-side filters and rank. Pages built here are
plain data; the UI decides how to show them.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Optional, Tuple

import pandas as pd

from clinic_finder.data.store import ClinicQueryError, ClinicSearchError, InMemoryClinicStore, StoredDocument
from clinic_finder.utils.cleaning import CLINIC_COLUMNS, clinics_to_frame, normalize_state
from clinic_finder.utils.config import get_search_config
from clinic_finder.utils.filters import ClinicFilter
from clinic_finder.utils.geocoding import GeoPoint, geocode_location
from clinic_finder.utils.matching import matches_search_term
from clinic_finder.utils.scoring import SENTINEL_DISTANCE, calculate_distances, rank_clinics
from clinic_finder.utils.suggestions import get_search_suggestions, get_treatment_suggestions
from clinic_finder.utils.tiers import normalize_tier, tier_priority
from clinic_finder.utils.validation import validate_coordinates

logger = logging.getLogger(__name__)

__all__ = [
    "ClinicQueryError",
    "ClinicSearchError",
    "EMPTY_RESULTS_MESSAGE",
    "SEARCH_ERROR_MESSAGE",
    "SearchPage",
    "SearchSession",
    "annotate_distances",
    "apply_filters",
    "fetch_page",
    "get_nearby_clinics",
    "get_suggestions",
    "record_clinic_view",
    "resolve_reference_point",
    "run_search",
    "search_by_treatments",
]

EMPTY_RESULTS_MESSAGE = "No clinics match your search. Try a larger radius or fewer filters."
SEARCH_ERROR_MESSAGE = "We couldn't load clinics right now. Please try again."

# Treatment batch searches run at most this many lookups
MAX_BATCH_TREATMENTS = 5


@dataclass
class SearchPage:
    """One page of ranked results.

    ``filters`` is the filter set actually used, including a reference point
    resolved from a typed location; ``generation`` ties the page to the
    :class:`SearchSession` search that produced it.
    """

    clinics: pd.DataFrame
    cursor: Optional[StoredDocument] = None
    has_more: bool = False
    reference: Optional[GeoPoint] = None
    filters: ClinicFilter = field(default_factory=ClinicFilter)
    generation: int = 0
    appended: bool = False

    @property
    def is_empty(self) -> bool:
        return self.clinics is None or self.clinics.empty


def annotate_distances(clinic_df: pd.DataFrame, lat: float, lng: float) -> pd.DataFrame:
    """Return a copy of ``clinic_df`` with a ``distance`` column in miles."""
    df = clinic_df.copy()
    df["distance"] = calculate_distances(lat, lng, df) if not df.empty else pd.Series(dtype=float)
    return df


def _list_intersects(values: Any, wanted: set) -> bool:
    if not isinstance(values, (list, tuple, set)):
        return False
    return bool(wanted.intersection(values))


def apply_filters(clinic_df: pd.DataFrame, filters: Optional[ClinicFilter]) -> pd.DataFrame:
    """
    Keep the rows that pass every filter in ``filters``.

    Each filter contributes its own boolean mask and the masks are AND-ed, so
    the order filters are listed in never matters. The radius filter needs a
    ``distance`` column; it is computed here when the caller did not.

    Args:
        clinic_df: Normalized clinic frame
        filters: Filters to apply; None keeps every row

    Returns:
        Filtered frame with the original index and row order
    """
    if filters is None or clinic_df is None or clinic_df.empty:
        return clinic_df

    df = clinic_df
    mask = pd.Series(True, index=df.index)

    if filters.status:
        mask &= df["status"].isin(filters.status)

    if filters.state:
        mask &= df["state"].map(normalize_state) == filters.state

    if filters.city:
        mask &= df["city"] == filters.city

    if filters.services:
        wanted = set(filters.services)
        mask &= df["services"].map(lambda values: _list_intersects(values, wanted))

    if filters.tags:
        wanted = set(filters.tags)
        mask &= df["tags"].map(lambda values: _list_intersects(values, wanted))

    if filters.tier:
        mask &= df["tier"].map(normalize_tier) == filters.tier

    if filters.verified:
        mask &= df["verified"].fillna(False).astype(bool)

    if filters.radius is not None:
        if filters.has_reference_point:
            if "distance" not in df.columns:
                df = annotate_distances(df, filters.lat, filters.lng)
            distance = pd.to_numeric(df["distance"], errors="coerce").fillna(SENTINEL_DISTANCE)
            mask &= (distance != SENTINEL_DISTANCE) & (distance <= filters.radius)
        else:
            logger.info(f"Radius filter of {filters.radius} miles ignored: no reference point")

    if filters.search_term:
        term = filters.search_term
        mask &= df.apply(lambda row: matches_search_term(row, term), axis=1).astype(bool)

    return df[mask]


def _query_documents(
    store: InMemoryClinicStore,
    filters: Optional[ClinicFilter],
    page_size: int,
    cursor: Optional[StoredDocument] = None,
) -> Tuple[List[StoredDocument], bool]:
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")

    try:
        docs = store.query(filters, limit=page_size + 1, start_after=cursor)
    except Exception as e:
        logger.error(f"Clinic query failed: {type(e).__name__}: {e}")
        raise ClinicQueryError(f"Clinic query failed: {e}") from e

    return docs[:page_size], len(docs) > page_size


def fetch_page(
    store: InMemoryClinicStore,
    filters: Optional[ClinicFilter],
    page_size: int,
    cursor: Optional[StoredDocument] = None,
) -> Tuple[List[dict], Optional[StoredDocument], bool]:
    """
    Fetch one page of raw clinic records from the store.

    One record more than ``page_size`` is requested; its presence sets
    ``has_more`` and it is then dropped from the page.

    Returns:
        Tuple of (records, next_cursor, has_more)

    Raises:
        ValueError: if ``page_size`` is not positive
        ClinicQueryError: if the store query fails
    """
    docs, has_more = _query_documents(store, filters, page_size, cursor)
    next_cursor = docs[-1] if docs else None
    return [doc.data for doc in docs], next_cursor, has_more


def resolve_reference_point(
    filters: ClinicFilter, location: Optional[str] = None
) -> Tuple[ClinicFilter, Optional[GeoPoint]]:
    """Work out the point distances are measured from.

    Explicit ``lat``/``lng`` in the filters win over a typed location. When
    the location can't be geocoded the default centre is used for ordering
    only and any radius is dropped.
    """
    if filters.has_reference_point:
        return filters, GeoPoint(lat=filters.lat, lng=filters.lng)

    if not location or not location.strip():
        return filters, None

    point = geocode_location(location)
    filters = filters.with_reference_point(point.lat, point.lng)
    if point.is_fallback and filters.radius is not None:
        logger.info(f"Could not geocode '{location}'; searching without the {filters.radius} mile radius")
        filters = replace(filters, radius=None)
    return filters, point


def _passing_positions(
    docs: List[StoredDocument], filters: ClinicFilter, reference: Optional[GeoPoint]
) -> set:
    # clinics_to_frame keeps one row per document, in order, on a RangeIndex
    clinic_df = clinics_to_frame(doc.data for doc in docs)
    if reference is not None and not clinic_df.empty:
        clinic_df = annotate_distances(clinic_df, reference.lat, reference.lng)
    return set(apply_filters(clinic_df, filters).index)


def run_search(
    store: InMemoryClinicStore,
    filters: Optional[ClinicFilter] = None,
    page_size: int = 20,
    cursor: Optional[StoredDocument] = None,
    location: Optional[str] = None,
) -> SearchPage:
    """
    Fetch, normalize, annotate, filter and rank one page of clinics.

    Store pages are read until ``page_size`` clinics pass the client-side
    filters (radius, search term) or the store has nothing left. The
    returned cursor is the last document examined, so an empty page always
    comes with ``has_more=False``.
    """
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    filters, reference = resolve_reference_point(filters or ClinicFilter(), location)

    kept = []
    next_cursor = cursor
    has_more = True
    examined = 0
    while has_more and len(kept) < page_size:
        docs, has_more = _query_documents(store, filters, page_size, next_cursor)
        examined += len(docs)
        passing = _passing_positions(docs, filters, reference)
        for position, doc in enumerate(docs):
            next_cursor = doc
            if position not in passing:
                continue
            kept.append(doc.data)
            if len(kept) == page_size:
                has_more = has_more or position < len(docs) - 1
                break

    clinic_df = clinics_to_frame(kept)
    if reference is not None:
        clinic_df = annotate_distances(clinic_df, reference.lat, reference.lng)
    clinic_df = rank_clinics(clinic_df, by_distance=reference is not None)

    logger.debug(f"Search page: {examined} examined, {len(clinic_df)} kept, has_more={has_more}")
    return SearchPage(
        clinics=clinic_df,
        cursor=next_cursor,
        has_more=has_more,
        reference=reference,
        filters=filters,
    )


class SearchSession:
    """Result state of one user's search, kept in ``st.session_state``.

    Every :meth:`search` starts a new generation. A page only lands through
    :meth:`commit` while its generation is current, so a slow response from
    an earlier search can never overwrite newer results.
    """

    def __init__(self, store: InMemoryClinicStore, page_size: Optional[int] = None):
        self.store = store
        self.page_size = int(page_size or get_search_config()["page_size"])
        self.generation = 0
        self.filters = ClinicFilter()
        self.reference: Optional[GeoPoint] = None
        self.results = pd.DataFrame(columns=CLINIC_COLUMNS)
        self.cursor: Optional[StoredDocument] = None
        self.has_more = False

    def search(self, filters: Optional[ClinicFilter] = None, location: Optional[str] = None) -> SearchPage:
        self.generation += 1
        generation = self.generation
        page = run_search(self.store, filters, self.page_size, location=location)
        page.generation = generation
        return page

    def load_more(self) -> Optional[SearchPage]:
        """Fetch the page after the current results, or None when there is none."""
        if not self.has_more or self.cursor is None:
            return None
        page = run_search(self.store, self.filters, self.page_size, cursor=self.cursor)
        page.generation = self.generation
        page.appended = True
        return page

    def commit(self, page: SearchPage) -> bool:
        """Adopt ``page`` as the visible results. Returns False for a stale page."""
        if page.generation != self.generation:
            logger.debug(f"Dropping stale search page (generation {page.generation}, current {self.generation})")
            return False

        if page.appended:
            combined = pd.concat([self.results, page.clinics], ignore_index=True)
            self.results = combined.drop_duplicates(subset=["id"], keep="first").reset_index(drop=True)
        else:
            self.results = page.clinics
            self.filters = page.filters
            self.reference = page.reference

        self.cursor = page.cursor
        self.has_more = page.has_more
        return True

    @property
    def is_empty(self) -> bool:
        return self.results.empty


def record_clinic_view(store: InMemoryClinicStore, clinic_id: Any, search_term: Optional[str] = None) -> bool:
    """Record a profile view. Returns False when the clinic does not exist."""
    try:
        store.record_view(clinic_id, search_term)
    except KeyError:
        logger.warning(f"Cannot record view for unknown clinic {clinic_id!r}")
        return False
    return True


def get_nearby_clinics(
    store: InMemoryClinicStore,
    lat: float,
    lng: float,
    radius_miles: float = 50,
    max_results: int = 10,
    filters: Optional[ClinicFilter] = None,
) -> pd.DataFrame:
    """
    Clinics with coordinates within ``radius_miles`` of a point, nearest first.

    Raises:
        ValueError: for invalid coordinates or a negative radius
    """
    is_valid, message = validate_coordinates(lat, lng)
    if not is_valid:
        raise ValueError(message)

    filters = replace(filters or ClinicFilter(), lat=float(lat), lng=float(lng), radius=float(radius_miles))
    if len(store) == 0 or max_results <= 0:
        return pd.DataFrame(columns=CLINIC_COLUMNS + ["distance"])

    try:
        docs = store.query(filters, limit=len(store))
    except Exception as e:
        logger.error(f"Nearby clinic query failed: {type(e).__name__}: {e}")
        raise ClinicQueryError(f"Nearby clinic query failed: {e}") from e

    clinic_df = annotate_distances(clinics_to_frame(doc.data for doc in docs), filters.lat, filters.lng)
    clinic_df = apply_filters(clinic_df, filters)
    return rank_clinics(clinic_df, by_distance=True).head(max_results).reset_index(drop=True)


def search_by_treatments(
    store: InMemoryClinicStore,
    treatments: Iterable[str],
    location: Optional[str] = None,
    page_size: int = 50,
) -> pd.DataFrame:
    """
    Search for several treatments at once and merge the hits.

    Only the first five treatments are searched, each through every result
    page. Each clinic appears once, with ``matchedTreatments`` listing the
    treatments it matched. Results are ordered by tier, then by how many
    treatments matched.
    """
    terms = [t.strip() for t in treatments if isinstance(t, str) and t.strip()][:MAX_BATCH_TREATMENTS]
    if not terms:
        return pd.DataFrame(columns=CLINIC_COLUMNS + ["matchedTreatments", "matchCount"])

    base_filters, reference = resolve_reference_point(ClinicFilter(), location)

    merged = {}
    matched = {}
    for term in terms:
        term_filters = replace(base_filters, search_term=term)
        cursor = None
        while True:
            page = run_search(store, term_filters, page_size, cursor)
            for row in page.clinics.to_dict(orient="records"):
                clinic_id = row["id"]
                if clinic_id not in merged:
                    merged[clinic_id] = row
                    matched[clinic_id] = []
                if term not in matched[clinic_id]:
                    matched[clinic_id].append(term)
            if not page.has_more:
                break
            cursor = page.cursor

    if not merged:
        return pd.DataFrame(columns=CLINIC_COLUMNS + ["matchedTreatments", "matchCount"])

    clinic_df = pd.DataFrame(list(merged.values()))
    clinic_df["matchedTreatments"] = [matched[cid] for cid in merged]
    clinic_df["matchCount"] = clinic_df["matchedTreatments"].map(len)

    clinic_df = rank_clinics(clinic_df, by_distance=reference is not None)
    clinic_df["_tier_rank"] = clinic_df["tier"].map(tier_priority)
    clinic_df["_match_rank"] = -clinic_df["matchCount"]
    clinic_df = clinic_df.sort_values(by=["_tier_rank", "_match_rank"], kind="mergesort")
    return clinic_df.drop(columns=["_tier_rank", "_match_rank"]).reset_index(drop=True)


def get_suggestions(query: str, clinic_df: pd.DataFrame, max_results: Optional[int] = None) -> dict:
    """Search-bar suggestions from searchable clinics plus matching treatment names.

    Clinics outside the default status filter never appear. Each list is
    capped at the configured ``search.suggestion_limit``.
    """
    if max_results is None:
        max_results = int(get_search_config()["suggestion_limit"])
    searchable = apply_filters(clinic_df, ClinicFilter())
    suggestions = get_search_suggestions(query, searchable, max_results=max_results)
    suggestions["treatments"] = get_treatment_suggestions(query, max_results=max_results)
    return suggestions
