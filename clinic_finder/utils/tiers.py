"""Listing tier normalization.

Clinic documents carry their service level under several historical field
names (``tier``, ``packageTier``, ``package``) and with several historical
values (``high``, ``premium``, ``basic`` ...). Everything that reads a tier
goes through :func:`resolve_tier` so legacy knowledge lives in one place.
"""
from typing import Any, Mapping

CANONICAL_TIERS = ("advanced", "standard", "free")

# Lower value ranks first
TIER_PRIORITY = {"advanced": 0, "standard": 1, "free": 2}

_ADVANCED_ALIASES = frozenset({"high", "premium", "featured", "advanced"})
_STANDARD_ALIASES = frozenset({"low", "basic", "standard"})

# Record fields that may hold a tier, most authoritative first
TIER_FIELDS = ("tier", "packageTier", "package")


def normalize_tier(raw: Any) -> str:
    """Map any tier value onto ``advanced``, ``standard`` or ``free``.

    Non-string input (None, NaN, numbers) is treated as empty and therefore
    resolves to ``free``.
    """
    if not isinstance(raw, str):
        return "free"
    value = raw.strip().lower()
    if value in _ADVANCED_ALIASES:
        return "advanced"
    if value in _STANDARD_ALIASES:
        return "standard"
    return "free"


def is_known_tier(raw: Any) -> bool:
    """Return True when ``raw`` is a canonical tier or a recognised legacy synonym."""
    if not isinstance(raw, str):
        return False
    value = raw.strip().lower()
    return value == "free" or value in _ADVANCED_ALIASES or value in _STANDARD_ALIASES


def resolve_tier(record: Mapping[str, Any]) -> str:
    """Derive the canonical tier of a clinic document.

    The first non-empty value among :data:`TIER_FIELDS` wins; the stored value
    is never trusted verbatim.
    """
    for field in TIER_FIELDS:
        value = record.get(field)
        if isinstance(value, str) and value.strip():
            return normalize_tier(value)
    return "free"


def tier_priority(tier: Any) -> int:
    return TIER_PRIORITY[normalize_tier(tier)]
