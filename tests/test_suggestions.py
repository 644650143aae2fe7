"""Test suite for search-bar and treatment suggestions."""
import pandas as pd

from clinic_finder.app_logic import get_suggestions
from clinic_finder.utils.cleaning import clinics_to_frame
from clinic_finder.utils.suggestions import get_search_suggestions, get_treatment_suggestions, rank_vocabulary


def test_short_query_returns_empty_lists(clinic_frame):
    for query in ["", "t", " t "]:
        assert get_search_suggestions(query, clinic_frame) == {"clinics": [], "services": [], "locations": []}


def test_services_prefix_matches_first():
    vocabulary = ["Testosterone Replacement", "TRT", "Hormone Therapy", "Peptide Therapy"]

    assert rank_vocabulary("t", vocabulary, 5)[:2] == ["TRT", "Testosterone Replacement"]
    assert rank_vocabulary("therapy", vocabulary, 1) == ["Hormone Therapy"]


def test_equal_length_keeps_vocabulary_order():
    vocabulary = ["IV Therapy", "Hormone Therapy", "Peptide Therapy"]
    assert rank_vocabulary("therapy", vocabulary, 5) == ["IV Therapy", "Hormone Therapy", "Peptide Therapy"]


def test_clinic_name_matches(clinic_frame):
    suggestions = get_search_suggestions("vital", clinic_frame)

    assert suggestions["clinics"] == [
        {"id": "round-rock-vitality", "name": "Round Rock Vitality", "city": "Round Rock", "state": "TX"}
    ]


def test_services_from_vocabulary(clinic_frame):
    suggestions = get_search_suggestions("tr", clinic_frame)

    assert suggestions["services"][0] == "TRT"
    assert "ED Treatment" in suggestions["services"]


def test_locations_are_deduplicated(clinic_factory):
    df = clinics_to_frame(
        [
            clinic_factory("a", city="Austin", state="TX"),
            clinic_factory("b", city="Austin", state="TX"),
            clinic_factory("c", city="Austintown", state="OH"),
        ]
    )

    suggestions = get_search_suggestions("austin", df)

    assert suggestions["locations"] == [{"city": "Austin", "state": "TX"}, {"city": "Austintown", "state": "OH"}]


def test_max_results_caps_each_list(clinic_factory):
    df = clinics_to_frame([clinic_factory(f"c{i}", name=f"Men's Clinic {i}", city=f"Town {i}") for i in range(10)])

    suggestions = get_search_suggestions("men", df, max_results=3)

    assert len(suggestions["clinics"]) == 3
    assert len(suggestions["services"]) <= 3


def test_no_clinic_data():
    suggestions = get_search_suggestions("trt", pd.DataFrame())
    assert suggestions["clinics"] == [] and suggestions["locations"] == []
    assert suggestions["services"] == ["TRT"]


def test_treatment_suggestions():
    assert get_treatment_suggestions("bpc") == ["bpc-157"]
    assert get_treatment_suggestions("b") == []
    assert get_treatment_suggestions("ide", max_results=2) == ["semaglutide", "tirzepatide"]


def test_app_wrapper_uses_configured_limit(clinic_frame, monkeypatch):
    monkeypatch.setattr(
        "clinic_finder.app_logic.get_search_config",
        lambda: {"suggestion_limit": 1},
    )

    suggestions = get_suggestions("th", clinic_frame)

    assert len(suggestions["services"]) == 1


def test_app_wrapper_skips_inactive_clinics(clinic_frame):
    assert get_search_suggestions("closed", clinic_frame)["clinics"]

    suggestions = get_suggestions("closed", clinic_frame, max_results=5)

    assert suggestions["clinics"] == []


def test_app_wrapper_adds_treatments(clinic_frame):
    suggestions = get_suggestions("bpc", clinic_frame, max_results=5)

    assert suggestions["treatments"] == ["bpc-157"]
