"""Keyword and treatment-term matching for clinic records."""
import re
from typing import Any, Iterable, List, Mapping

_LETTERS_DIGITS = re.compile(r"([a-z]+)(\d+)")


def normalize_search_term(term: str) -> List[str]:
    """Return the lookup variants of a search term.

    The lowercased, trimmed term always comes first. Hyphenated treatment
    names also match without the hyphen ("bpc-157" -> "bpc157") and compact
    names match the hyphenated spelling ("bpc157" -> "bpc-157").
    """
    normalized = (term or "").strip().lower()
    variants = [normalized]

    if "-" in normalized:
        variants.append(normalized.replace("-", ""))
    elif _LETTERS_DIGITS.search(normalized):
        with_hyphen = _LETTERS_DIGITS.sub(r"\1-\2", normalized, count=1)
        if with_hyphen != normalized:
            variants.append(with_hyphen)

    return variants


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    try:
        return list(value)
    except TypeError:
        return []


def _text(value: Any) -> str:
    return value.lower() if isinstance(value, str) else ""


def matches_search_term(record: Mapping[str, Any], term: str) -> bool:
    """Check a clinic record against a free-text search term.

    Substring matching on purpose: "test" also matches "testosterone". Fields
    searched are searchableTerms, name, services, city and state.
    """
    variants = [v for v in normalize_search_term(term) if v]
    if not variants:
        return True

    haystack = [_text(t) for t in _as_list(record.get("searchableTerms"))]
    haystack.append(_text(record.get("name")))
    haystack.extend(_text(s) for s in _as_list(record.get("services")))
    haystack.append(_text(record.get("city")))
    haystack.append(_text(record.get("state")))
    haystack = [h for h in haystack if h]

    return any(variant in field for variant in variants for field in haystack)


def _treatment_names(treatments: Iterable[Any]) -> List[str]:
    names = []
    for treatment in treatments:
        if isinstance(treatment, Mapping):
            treatment = treatment.get("term")
        if isinstance(treatment, str) and treatment.strip():
            names.append(treatment.strip())
    return names


def create_searchable_terms(record: Mapping[str, Any]) -> List[str]:
    """Build the keyword index of a clinic record.

    Includes name words longer than two characters, each service and its
    words, each treatment with its no-hyphen variant, city, state and the
    enabled ``specializedServices`` keys. Order of first appearance is kept.
    """
    terms: dict = {}

    def add(value: str) -> None:
        if value:
            terms.setdefault(value, None)

    name = record.get("name")
    if isinstance(name, str):
        for part in name.lower().split():
            if len(part) > 2:
                add(part)

    for service in _as_list(record.get("services")):
        if not isinstance(service, str):
            continue
        lowered = service.lower().strip()
        add(lowered)
        for word in lowered.split():
            if len(word) > 2:
                add(word)

    for treatment in _treatment_names(_as_list(record.get("treatments"))):
        lowered = treatment.lower()
        add(lowered)
        if "-" in lowered:
            add(lowered.replace("-", ""))

    for field in ("city", "state"):
        value = record.get(field)
        if isinstance(value, str):
            add(value.lower().strip())

    specialized = record.get("specializedServices")
    if isinstance(specialized, Mapping):
        for key, enabled in specialized.items():
            if enabled:
                add(str(key).lower())

    return list(terms)
