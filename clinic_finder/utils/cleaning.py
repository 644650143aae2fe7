"""Clinic record normalization: states, slugs, coordinates and the search frame."""
import logging
import math
import re
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from .matching import create_searchable_terms
from .tiers import resolve_tier

logger = logging.getLogger(__name__)

STATE_MAPPING = {
    "ALABAMA": "AL",
    "ALASKA": "AK",
    "ARIZONA": "AZ",
    "ARKANSAS": "AR",
    "CALIFORNIA": "CA",
    "COLORADO": "CO",
    "CONNECTICUT": "CT",
    "DELAWARE": "DE",
    "FLORIDA": "FL",
    "GEORGIA": "GA",
    "HAWAII": "HI",
    "IDAHO": "ID",
    "ILLINOIS": "IL",
    "INDIANA": "IN",
    "IOWA": "IA",
    "KANSAS": "KS",
    "KENTUCKY": "KY",
    "LOUISIANA": "LA",
    "MAINE": "ME",
    "MARYLAND": "MD",
    "MASSACHUSETTS": "MA",
    "MICHIGAN": "MI",
    "MINNESOTA": "MN",
    "MISSISSIPPI": "MS",
    "MISSOURI": "MO",
    "MONTANA": "MT",
    "NEBRASKA": "NE",
    "NEVADA": "NV",
    "NEW HAMPSHIRE": "NH",
    "NEW JERSEY": "NJ",
    "NEW MEXICO": "NM",
    "NEW YORK": "NY",
    "NORTH CAROLINA": "NC",
    "NORTH DAKOTA": "ND",
    "OHIO": "OH",
    "OKLAHOMA": "OK",
    "OREGON": "OR",
    "PENNSYLVANIA": "PA",
    "RHODE ISLAND": "RI",
    "SOUTH CAROLINA": "SC",
    "SOUTH DAKOTA": "SD",
    "TENNESSEE": "TN",
    "TEXAS": "TX",
    "UTAH": "UT",
    "VERMONT": "VT",
    "VIRGINIA": "VA",
    "WASHINGTON": "WA",
    "WEST VIRGINIA": "WV",
    "WISCONSIN": "WI",
    "WYOMING": "WY",
    "DISTRICT OF COLUMBIA": "DC",
}

STATE_CODES = frozenset(STATE_MAPPING.values())

# Column layout of the normalized search frame
CLINIC_COLUMNS = [
    "id",
    "name",
    "slug",
    "address",
    "city",
    "state",
    "zip",
    "phone",
    "website",
    "lat",
    "lng",
    "tier",
    "status",
    "verified",
    "services",
    "tags",
    "searchableTerms",
    "totalClicks",
    "topSearchTerms",
]


def normalize_state(value: Any) -> str:
    """Return the two-letter code for a state name; unknown values pass through stripped."""
    if not isinstance(value, str):
        return ""
    cleaned = value.strip()
    upper = cleaned.upper()
    if upper in STATE_CODES:
        return upper
    return STATE_MAPPING.get(upper, cleaned)


def slugify(text: Any) -> str:
    """Lowercase, hyphen-separated, URL-safe version of ``text``."""
    slug = str(text).lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = slug.replace("&", "-and-")
    slug = re.sub(r"[^\w\-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def create_clinic_slug(name: str, city: str, state: str) -> str:
    return slugify(f"{name}-{city}-{state}")


def safe_numeric_conversion(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    try:
        if value is None or pd.isna(value):
            return default
        return float(value)
    except (ValueError, TypeError):
        return default


def has_valid_coordinates(lat: Any, lng: Any) -> bool:
    """False for missing, non-numeric, NaN or zero coordinates.

    Zero is how unset coordinates are stored, so a clinic sitting on the
    equator or prime meridian is treated as unlocated.
    """
    lat_f = safe_numeric_conversion(lat, None)
    lng_f = safe_numeric_conversion(lng, None)
    if lat_f is None or lng_f is None:
        return False
    if math.isnan(lat_f) or math.isnan(lng_f) or math.isinf(lat_f) or math.isinf(lng_f):
        return False
    return lat_f != 0 and lng_f != 0


def _string_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    try:
        return [str(v) for v in value if v is not None and str(v).strip()]
    except TypeError:
        return []


def resolve_verified(record: Mapping[str, Any]) -> bool:
    if record.get("verified") is True:
        return True
    validation = record.get("validationStatus")
    if isinstance(validation, Mapping):
        return validation.get("verified") is True
    return False


def normalize_clinic_record(record: Mapping[str, Any]) -> dict:
    """Flatten one stored clinic document into a row of the search frame."""
    traffic = record.get("trafficMeta") if isinstance(record.get("trafficMeta"), Mapping) else {}

    name = str(record.get("name") or "").strip()
    city = str(record.get("city") or "").strip()
    state = normalize_state(record.get("state"))

    lat, lng = record.get("lat"), record.get("lng")
    if has_valid_coordinates(lat, lng):
        lat, lng = float(lat), float(lng)
    else:
        lat, lng = float("nan"), float("nan")

    index_source = dict(record)
    index_source.update({"name": name, "city": city, "state": state})
    terms = [str(t).lower() for t in _string_list(record.get("searchableTerms"))]
    for term in create_searchable_terms(index_source):
        if term not in terms:
            terms.append(term)

    clicks = safe_numeric_conversion(traffic.get("totalClicks"), 0.0)

    return {
        "id": record.get("id"),
        "name": name,
        "slug": record.get("slug") or create_clinic_slug(name, city, state),
        "address": str(record.get("address") or "").strip(),
        "city": city,
        "state": state,
        "zip": str(record.get("zip") or "").strip(),
        "phone": str(record.get("phone") or "").strip(),
        "website": str(record.get("website") or "").strip(),
        "lat": lat,
        "lng": lng,
        "tier": resolve_tier(record),
        "status": str(record.get("status") or ""),
        "verified": resolve_verified(record),
        "services": _string_list(record.get("services")),
        "tags": _string_list(record.get("tags")),
        "searchableTerms": terms,
        "totalClicks": int(clicks),
        "topSearchTerms": _string_list(traffic.get("topSearchTerms")),
    }


def clinics_to_frame(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Normalize clinic documents into the DataFrame the search pipeline works on."""
    rows = [normalize_clinic_record(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=CLINIC_COLUMNS)

    df = pd.DataFrame(rows, columns=CLINIC_COLUMNS)
    missing = int(df["lat"].isna().sum())
    if missing:
        logger.debug(f"{missing} of {len(df)} clinics have no usable coordinates")
    return df


def validate_clinic_data(df: pd.DataFrame) -> tuple[bool, str]:
    if df.empty:
        return False, "❌ **Error**: No clinic data available. Please check the clinic snapshot."

    issues = []
    info = []

    missing_cols = [col for col in ("id", "name", "city", "state") if col not in df.columns]
    if missing_cols:
        issues.append(f"Missing required columns: {', '.join(missing_cols)}")

    if "id" in df.columns:
        duplicated = int(df["id"].duplicated().sum())
        if duplicated:
            issues.append(f"{duplicated} clinics share an id with another clinic")

    if "lat" in df.columns and "lng" in df.columns:
        missing_coords = int((df["lat"].isna() | df["lng"].isna()).sum())
        if missing_coords:
            info.append(f"{missing_coords} clinics have no coordinates and will not appear in radius searches")

    if "tier" in df.columns:
        counts = df["tier"].value_counts()
        info.append(
            "Tiers: "
            + ", ".join(f"{tier} {int(counts.get(tier, 0))}" for tier in ("advanced", "standard", "free"))
        )

    info.append(f"Total clinics in directory: {len(df)}")

    message_parts = []
    if issues:
        message_parts.append("⚠️ **Data Quality Issues**: " + "; ".join(issues))
    if info:
        message_parts.append("ℹ️ **Data Summary**: " + "; ".join(info))

    return len(issues) == 0, "\n\n".join(message_parts)
