"""Typed search filters.

Search pages and query strings hand filters around as plain mappings; they
are converted into a :class:`ClinicFilter` at the boundary so that misspelled
keys fail loudly instead of being ignored.
"""
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Tuple

from .cleaning import normalize_state
from .tiers import is_known_tier, normalize_tier

# Front-end (camelCase) spellings accepted by ClinicFilter.from_mapping
FILTER_KEY_ALIASES = {
    "searchTerm": "search_term",
    "verifiedOnly": "verified",
    "verified_only": "verified",
}

# Store "array contains any" queries take at most this many values
MAX_ARRAY_FILTER_VALUES = 10

# Text spellings of boolean filters, as they arrive from query strings
TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off", ""}


class UnknownFilterError(ValueError):
    """Raised when a filter mapping contains a key the search does not support."""

    def __init__(self, keys):
        self.keys = sorted(keys)
        super().__init__(f"Unknown search filter(s): {', '.join(self.keys)}")


def _to_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    try:
        items = tuple(str(v).strip() for v in value if v is not None and str(v).strip())
    except TypeError:
        raise ValueError(f"Filter '{key}' must be a list of strings") from None
    return items


def _to_bool(value: Any, key: str) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        raise ValueError(f"Filter '{key}' must be true or false, got {value!r}")
    return bool(value)


def _to_float(value: Any, key: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Filter '{key}' must be numeric, got {value!r}") from None


@dataclass(frozen=True)
class ClinicFilter:
    """Every supported search filter. All fields are optional and AND-combined."""

    state: Optional[str] = None
    city: Optional[str] = None
    services: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    tier: Optional[str] = None
    verified: bool = False
    status: Tuple[str, ...] = ("Active", "active")
    search_term: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius: Optional[float] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ClinicFilter":
        """Build a filter from a loosely typed mapping.

        Raises:
            UnknownFilterError: for keys that are not filters
            ValueError: for values of the wrong type or an unrecognised tier
        """
        if not data:
            return cls()

        known = {f.name for f in fields(cls)}
        values = {}
        unknown = []
        for raw_key, value in data.items():
            key = FILTER_KEY_ALIASES.get(raw_key, raw_key)
            if key not in known:
                unknown.append(raw_key)
                continue
            values[key] = value
        if unknown:
            raise UnknownFilterError(unknown)

        return cls(
            state=values.get("state") or None,
            city=values.get("city") or None,
            services=_to_tuple(values.get("services"), "services"),
            tags=_to_tuple(values.get("tags"), "tags"),
            tier=values.get("tier") or None,
            verified=_to_bool(values.get("verified", False), "verified"),
            status=_to_tuple(values["status"], "status") if "status" in values else cls.status,
            search_term=values.get("search_term") or None,
            lat=_to_float(values.get("lat"), "lat"),
            lng=_to_float(values.get("lng"), "lng"),
            radius=_to_float(values.get("radius"), "radius"),
        )

    def __post_init__(self):
        if self.tier is not None:
            if not is_known_tier(self.tier):
                raise ValueError(f"Unknown tier: {self.tier!r}")
            object.__setattr__(self, "tier", normalize_tier(self.tier))
        if self.state is not None:
            object.__setattr__(self, "state", normalize_state(self.state))
        if self.radius is not None and self.radius < 0:
            raise ValueError("Search radius cannot be negative")
        if (self.lat is None) != (self.lng is None):
            raise ValueError("Both lat and lng are required for a reference point")

    @property
    def has_reference_point(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def store_services(self) -> Tuple[str, ...]:
        return self.services[:MAX_ARRAY_FILTER_VALUES]

    @property
    def store_tags(self) -> Tuple[str, ...]:
        return self.tags[:MAX_ARRAY_FILTER_VALUES]

    def with_reference_point(self, lat: float, lng: float) -> "ClinicFilter":
        return replace(self, lat=float(lat), lng=float(lng))
