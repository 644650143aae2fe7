"""Pytest configuration helpers.

Ensure the project root is on sys.path so tests can import the
`clinic_finder` package when pytest is invoked from the repository root or an
isolated test runner. Also provides sample clinic records and stores.
"""

import sys
from pathlib import Path

import pytest


def pytest_configure():
    # Insert the repository root (parent of the tests directory) at the front
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))


def _make_clinic(clinic_id, **fields):
    record = {
        "id": clinic_id,
        "name": f"Clinic {clinic_id}",
        "city": "Austin",
        "state": "TX",
        "status": "Active",
        "lat": 30.2672,
        "lng": -97.7431,
        "tier": "free",
        "services": [],
        "tags": [],
        "trafficMeta": {"totalClicks": 0, "topSearchTerms": []},
    }
    record.update(fields)
    return record


@pytest.fixture
def clinic_factory():
    """Return a builder for clinic documents with sensible defaults."""
    return _make_clinic


@pytest.fixture
def sample_clinics():
    """A small mixed directory: tiers, legacy tier fields, states and coordinates."""
    return [
        _make_clinic(
            "austin-trt",
            name="Austin TRT Center",
            tier="advanced",
            verified=True,
            services=["TRT", "ED Treatment"],
            treatments=[{"term": "bpc-157"}],
            tags=["telehealth"],
            trafficMeta={"totalClicks": 40, "topSearchTerms": []},
        ),
        _make_clinic(
            "round-rock-vitality",
            name="Round Rock Vitality",
            city="Round Rock",
            lat=30.5083,
            lng=-97.6789,
            tier=None,
            packageTier="basic",
            services=["Weight Loss"],
            treatments=["semaglutide"],
            trafficMeta={"totalClicks": 15},
        ),
        _make_clinic(
            "dallas-mens",
            name="Dallas Men's Health",
            city="Dallas",
            state="Texas",
            lat=32.7767,
            lng=-96.7970,
            tier=None,
            package="premium",
            validationStatus={"verified": True},
            services=["Hair Loss"],
            trafficMeta={"totalClicks": 80},
        ),
        _make_clinic(
            "no-coords",
            name="Hill Country Hormones",
            city="San Marcos",
            lat=0,
            lng=0,
            tier="advanced",
            services=["Hormone Therapy"],
        ),
        _make_clinic(
            "denver-peak",
            name="Peak Performance Denver",
            city="Denver",
            state="CO",
            lat=39.7392,
            lng=-104.9903,
            tier="standard",
            services=["TRT", "IV Therapy"],
            trafficMeta={"totalClicks": 5},
        ),
        _make_clinic("closed-clinic", name="Closed Clinic", status="Inactive", tier="advanced"),
    ]


@pytest.fixture
def clinic_store(sample_clinics):
    from clinic_finder.data.store import InMemoryClinicStore

    return InMemoryClinicStore(sample_clinics)


@pytest.fixture
def clinic_frame(sample_clinics):
    from clinic_finder.utils.cleaning import clinics_to_frame

    return clinics_to_frame(sample_clinics)


@pytest.fixture
def no_s3(monkeypatch):
    """Pretend S3 is not configured so loaders use local snapshots."""

    def mock_is_api_enabled(api_name):
        return False

    monkeypatch.setattr("clinic_finder.utils.config.is_api_enabled", mock_is_api_enabled)
