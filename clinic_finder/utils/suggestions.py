"""Type-ahead suggestions for the search bar."""
from typing import Dict, List

import pandas as pd

MIN_QUERY_LENGTH = 2

COMMON_SERVICES = [
    "TRT",
    "ED Treatment",
    "Hair Loss",
    "Weight Loss",
    "Peptide Therapy",
    "Hormone Therapy",
    "IV Therapy",
    "Testosterone Replacement",
    "Men's Health",
]

COMMON_TREATMENTS = [
    "bpc-157",
    "tb-500",
    "cjc-1295",
    "ipamorelin",
    "sermorelin",
    "mk-677",
    "ghrp-2",
    "ghrp-6",
    "semaglutide",
    "ozempic",
    "wegovy",
    "tirzepatide",
    "mounjaro",
    "testosterone",
    "hcg",
    "cialis",
    "viagra",
    "sildenafil",
    "tadalafil",
    "finasteride",
    "nad+",
    "glutathione",
    "b12",
    "vitamin d",
    "prp",
    "stem cell",
    "exosome",
    "shockwave",
    "gainswave",
    "p-shot",
]


def _empty_suggestions() -> Dict[str, list]:
    return {"clinics": [], "services": [], "locations": []}


def rank_vocabulary(query: str, vocabulary: List[str], max_results: int) -> List[str]:
    """Vocabulary entries containing ``query``: prefix matches first, then shortest."""
    needle = query.strip().lower()
    matches = [(i, term) for i, term in enumerate(vocabulary) if needle in term.lower()]
    matches.sort(key=lambda item: (not item[1].lower().startswith(needle), len(item[1]), item[0]))
    return [term for _, term in matches[:max_results]]


def get_search_suggestions(query: str, clinic_df: pd.DataFrame, max_results: int = 5) -> Dict[str, list]:
    """Build the three suggestion lists shown under the search bar.

    Args:
        query: Partial text typed by the user
        clinic_df: Normalized clinic frame to draw clinic names and locations from
        max_results: Cap applied to each list independently

    Returns:
        ``{"clinics": [...], "services": [...], "locations": [...]}``; all
        empty for queries shorter than two characters.
    """
    if not query or len(query.strip()) < MIN_QUERY_LENGTH:
        return _empty_suggestions()

    needle = query.strip().lower()
    suggestions = _empty_suggestions()
    suggestions["services"] = rank_vocabulary(needle, COMMON_SERVICES, max_results)

    if clinic_df is None or clinic_df.empty:
        return suggestions

    names = clinic_df["name"].fillna("").astype(str)
    by_name = clinic_df[names.str.lower().str.contains(needle, regex=False)]
    suggestions["clinics"] = [
        {"id": row["id"], "name": row["name"], "city": row["city"], "state": row["state"]}
        for _, row in by_name.head(max_results).iterrows()
    ]

    seen = set()
    for city, state in zip(clinic_df["city"].fillna(""), clinic_df["state"].fillna("")):
        if needle not in str(city).lower() and needle not in str(state).lower():
            continue
        key = f"{city}, {state}"
        if key in seen:
            continue
        seen.add(key)
        suggestions["locations"].append({"city": city, "state": state})
        if len(suggestions["locations"]) >= max_results:
            break

    return suggestions


def get_treatment_suggestions(partial: str, max_results: int = 10) -> List[str]:
    if not partial or len(partial.strip()) < MIN_QUERY_LENGTH:
        return []
    return rank_vocabulary(partial, COMMON_TREATMENTS, max_results)
