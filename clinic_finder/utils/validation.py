"""Validation utilities for search input: locations, coordinates and radius.

Small, self-contained helpers used by the search page and tests.
"""

import re
from typing import Any, Tuple

from .cleaning import STATE_CODES, STATE_MAPPING

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


def validate_location_query(location: str) -> Tuple[bool, str]:
    """
    Validate a manually entered search location.

    Accepts "City, ST", "City, State Name" or a ZIP code.

    Args:
        location: Raw text from the location box

    Returns:
        Tuple of (is_valid, message)
    """
    if not location or not location.strip():
        return False, "Enter a city and state or a ZIP code"

    text = location.strip()
    if _ZIP_RE.match(text):
        return True, "Valid ZIP code"

    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 2 or not all(parts):
        return False, "Use the format 'City, ST' (e.g., 'Austin, TX')"

    state = parts[1].upper()
    if state not in STATE_CODES and state not in STATE_MAPPING:
        return False, f"'{parts[1]}' is not a recognised US state"

    return True, "Valid location"


def validate_coordinates(lat: Any, lon: Any) -> Tuple[bool, str]:
    """
    Validate latitude and longitude coordinates.

    Args:
        lat: Latitude value
        lon: Longitude value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False, "Coordinates must be numeric"
    if not isinstance(lat, (int, float)) or not isinstance(lon, (int, float)):
        return False, "Coordinates must be numeric"

    if not (-90 <= lat <= 90):
        return False, "Latitude must be between -90 and 90"

    if not (-180 <= lon <= 180):
        return False, "Longitude must be between -180 and 180"

    return True, "Valid coordinates"


def validate_radius(radius: Any, max_radius: float = 500) -> Tuple[bool, str]:
    """
    Validate a search radius in miles.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(radius, bool) or not isinstance(radius, (int, float)):
        return False, "Radius must be a number of miles"
    if radius <= 0:
        return False, "Radius must be greater than zero"
    if radius > max_radius:
        return False, f"Radius cannot exceed {max_radius} miles"
    return True, "Valid radius"
