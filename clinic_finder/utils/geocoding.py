"""Geocoding helpers: forward/reverse lookups with caching, rate limiting and fallbacks.

Every forward lookup resolves to a usable point. When Nominatim cannot
answer, the continental-US centre is returned (flagged ``is_fallback``) so
distance and ranking code always has numbers to work with.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import streamlit as st
from geopy.exc import GeocoderRateLimited, GeocoderTimedOut, GeocoderUnavailable, GeopyError
from geopy.extra.rate_limiter import RateLimiter
from geopy.geocoders import Nominatim

from .cleaning import normalize_state
from .config import DEFAULT_CENTER, get_api_config

logger = logging.getLogger(__name__)

# Map zoom by Nominatim result type
_ZOOM_BY_TYPE = {
    "state": 7,
    "administrative": 7,
    "county": 9,
    "neighbourhood": 14,
    "suburb": 14,
}
DEFAULT_ZOOM = 12
FALLBACK_ZOOM = 4

# Browser geolocation error codes (W3C GeolocationPositionError)
PERMISSION_DENIED = 1
POSITION_UNAVAILABLE = 2
TIMEOUT = 3


class GeocodingError(Exception):
    """Raised internally when a lookup produced no usable coordinates."""


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lng: float
    zoom: int = DEFAULT_ZOOM
    display_name: str = ""
    is_fallback: bool = False
    # User-facing reason when is_fallback is set
    message: str = ""


class ClinicGeocoder:
    """Nominatim client used for map centring and "near me" searches.

    Built once per process through :func:`get_geocoder`; callers receive a
    ready instance instead of polling for one.
    """

    def __init__(
        self,
        user_agent: str = "MensHealthFinder/1.0",
        domain: str = "nominatim.openstreetmap.org",
        timeout: float = 10,
        min_delay_seconds: float = 1.0,
        max_retries: int = 2,
        country_codes: Optional[str] = "us",
        default_point: tuple = DEFAULT_CENTER,
    ):
        self.country_codes = country_codes
        self.default_point = (float(default_point[0]), float(default_point[1]))
        self._nominatim = Nominatim(user_agent=user_agent, domain=domain, timeout=timeout)
        # swallow_exceptions=False so failures reach our own logging and fallback
        self._geocode = RateLimiter(
            self._nominatim.geocode,
            min_delay_seconds=min_delay_seconds,
            max_retries=max_retries,
            swallow_exceptions=False,
        )
        self._reverse = RateLimiter(
            self._nominatim.reverse,
            min_delay_seconds=min_delay_seconds,
            max_retries=max_retries,
            swallow_exceptions=False,
        )

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]] = None) -> "ClinicGeocoder":
        config = config if config is not None else get_api_config("geocoding")
        return cls(
            user_agent=config.get("user_agent", "MensHealthFinder/1.0"),
            domain=config.get("domain", "nominatim.openstreetmap.org"),
            timeout=float(config.get("request_timeout", 10)),
            min_delay_seconds=float(config.get("rate_limit_delay", 1.0)),
            max_retries=int(config.get("max_retries", 2)),
            country_codes=config.get("country_codes", "us"),
            default_point=(
                config.get("default_lat", DEFAULT_CENTER[0]),
                config.get("default_lng", DEFAULT_CENTER[1]),
            ),
        )

    def fallback_point(self, message: str = "") -> GeoPoint:
        lat, lng = self.default_point
        return GeoPoint(
            lat=lat, lng=lng, zoom=FALLBACK_ZOOM, display_name="United States", is_fallback=True, message=message
        )

    @staticmethod
    def build_query(location: str) -> Union[str, Dict[str, str]]:
        """Structured city/state query for "City, ST" input, free text otherwise."""
        parts = [p.strip() for p in location.split(",")]
        if len(parts) == 2 and all(parts):
            return {"city": parts[0], "state": parts[1]}
        return location.strip()

    def lookup(self, location: str) -> GeoPoint:
        """Forward-geocode ``location``.

        Raises:
            GeocodingError: empty query, no result or a malformed result
            GeopyError: the service failed after retries
        """
        if not location or not location.strip():
            raise GeocodingError("Empty location query")

        result = self._geocode(self.build_query(location), country_codes=self.country_codes, exactly_one=True)
        if result is None:
            raise GeocodingError(f"No match for '{location}'")

        try:
            lat, lng = float(result.latitude), float(result.longitude)
        except (TypeError, ValueError, AttributeError) as e:
            raise GeocodingError(f"Malformed geocoding result for '{location}'") from e

        raw = getattr(result, "raw", None)
        raw = raw if isinstance(raw, dict) else {}
        zoom = _ZOOM_BY_TYPE.get(raw.get("type"), DEFAULT_ZOOM)
        return GeoPoint(lat=lat, lng=lng, zoom=zoom, display_name=getattr(result, "address", "") or "")

    def reverse(self, lat: float, lng: float) -> Optional[Dict[str, str]]:
        """Return ``{"city", "state", "country"}`` for a coordinate, or None."""
        try:
            result = self._reverse((lat, lng), exactly_one=True, addressdetails=True)
        except (GeopyError, ValueError) as e:
            logger.warning(f"Reverse geocoding failed for ({lat}, {lng}): {type(e).__name__}: {e}")
            return None

        raw = getattr(result, "raw", None)
        raw = raw if isinstance(raw, dict) else {}
        address = raw.get("address") or {}
        city = next(
            (address[k] for k in ("city", "town", "village", "hamlet", "suburb") if address.get(k)),
            None,
        )
        state = normalize_state(address.get("state") or "")
        country = (address.get("country_code") or "").upper() or address.get("country", "")
        if not city or not state:
            return None
        return {"city": city, "state": state, "country": country}


@st.cache_resource
def get_geocoder() -> ClinicGeocoder:
    return ClinicGeocoder.from_config(get_api_config("geocoding"))


@st.cache_data(ttl=3600, show_spinner=False)
def _cached_lookup(location: str) -> GeoPoint:
    # Failures raise, and raised calls are not cached
    return get_geocoder().lookup(location)


def geocode_location(location: str) -> GeoPoint:
    """Cached forward geocoding that always returns a point."""
    try:
        return _cached_lookup(location)
    except GeocodingError as e:
        logger.info(f"Geocoding fell back to default centre: {e}")
        error = e
    except GeopyError as e:
        logger.warning(f"Geocoding service error for '{location}': {type(e).__name__}: {e}")
        error = e
    return get_geocoder().fallback_point(handle_geocoding_error(location, error))


@st.cache_data(ttl=60 * 60 * 24, show_spinner=False)
def reverse_geocode(lat: float, lng: float) -> Optional[Dict[str, str]]:
    """City and state for a "near me" position, cached for a day."""
    return get_geocoder().reverse(lat, lng)


def handle_geocoding_error(location: str, error: Exception) -> str:
    """Explain why ``location`` fell back to the default centre."""
    if isinstance(error, GeocodingError):
        return f"📍 **Location Not Found**: We couldn't find '{location}', so results are ordered from the center of the US."
    et = str(error).lower()
    if isinstance(error, GeocoderTimedOut) or "timed out" in et or "timeout" in et:
        return "⏱️ **Location Lookup Timeout**: Finding that location took too long. Results are ordered from the center of the US."
    if isinstance(error, GeocoderUnavailable) or "unavailable" in et:
        return "🔌 **Location Service Unavailable**: Results are ordered from the center of the US. Please try again later."
    if isinstance(error, GeocoderRateLimited) or "429" in et or "rate" in et:
        return "🚦 **Too Many Lookups**: Please wait a moment before searching another location."
    if "network" in et or "connection" in et:
        return "🌐 **Network Error**: Cannot reach the location service. Please check your internet connection."
    return f"❌ **Location Error**: Unable to look up '{location}' ({type(error).__name__}). Results are ordered from the center of the US."


def geolocation_error_message(code: Optional[int]) -> str:
    """User-facing message for a failed browser geolocation request.

    Each failure mode gets its own wording; all of them point the user at
    manual location entry.
    """
    if code == PERMISSION_DENIED:
        return "📍 Location access was denied. Enter a city and state to search near you."
    if code == POSITION_UNAVAILABLE:
        return "📡 Your location could not be determined. Enter a city and state instead."
    if code == TIMEOUT:
        return "⏱️ Finding your location took too long. Enter a city and state instead."
    return "🧭 Location detection is not available in this browser. Enter a city and state to search."
