"""Utilities package for Men's Health Finder.

Re-export stable helper functions from the utility modules.
"""
# flake8: noqa: F401

from .cleaning import (
    clinics_to_frame,
    create_clinic_slug,
    has_valid_coordinates,
    normalize_clinic_record,
    normalize_state,
    safe_numeric_conversion,
    slugify,
    validate_clinic_data,
)
from .filters import ClinicFilter, UnknownFilterError
from .geocoding import GeoPoint, geocode_location, handle_geocoding_error, reverse_geocode
from .matching import create_searchable_terms, matches_search_term, normalize_search_term
from .scoring import SENTINEL_DISTANCE, calculate_distances, haversine_distance, rank_clinics
from .suggestions import get_search_suggestions, get_treatment_suggestions
from .tiers import normalize_tier, resolve_tier
from .validation import validate_coordinates, validate_location_query, validate_radius

__all__ = [
    "ClinicFilter",
    "GeoPoint",
    "SENTINEL_DISTANCE",
    "UnknownFilterError",
    "calculate_distances",
    "clinics_to_frame",
    "create_clinic_slug",
    "create_searchable_terms",
    "geocode_location",
    "get_search_suggestions",
    "get_treatment_suggestions",
    "handle_geocoding_error",
    "has_valid_coordinates",
    "haversine_distance",
    "matches_search_term",
    "normalize_clinic_record",
    "normalize_search_term",
    "normalize_state",
    "normalize_tier",
    "rank_clinics",
    "resolve_tier",
    "reverse_geocode",
    "safe_numeric_conversion",
    "slugify",
    "validate_clinic_data",
    "validate_coordinates",
    "validate_location_query",
    "validate_radius",
]
