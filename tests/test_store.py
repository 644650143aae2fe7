"""Test suite for the in-memory clinic store: queries and view tracking."""
import threading

import pytest

from clinic_finder.data.store import MAX_TOP_SEARCH_TERMS, InMemoryClinicStore
from clinic_finder.utils.filters import ClinicFilter


def _ids(docs):
    return [doc.id for doc in docs]


class TestQuery:
    def test_default_order_is_tier_then_clicks(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(), limit=10)

        # advanced: dallas (80 clicks), austin (40), no-coords (0); standard: round-rock (15), denver (5)
        assert _ids(docs) == ["dallas-mens", "austin-trt", "no-coords", "round-rock-vitality", "denver-peak"]

    def test_status_membership(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(status=("Inactive",)), limit=10)
        assert _ids(docs) == ["closed-clinic"]

    def test_empty_status_returns_everything(self, clinic_store):
        assert len(clinic_store.query(ClinicFilter(status=()), limit=10)) == 6

    def test_state_equality_normalizes_full_names(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(state="Texas"), limit=10)
        assert "dallas-mens" in _ids(docs)
        assert "denver-peak" not in _ids(docs)

    def test_tier_and_verified(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(tier="premium", verified=True), limit=10)
        assert _ids(docs) == ["dallas-mens", "austin-trt"]

    def test_services_contains_any(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(services=("Weight Loss", "Hair Loss")), limit=10)
        assert sorted(_ids(docs)) == ["dallas-mens", "round-rock-vitality"]

    def test_only_first_ten_array_values_reach_store(self, clinic_factory):
        store = InMemoryClinicStore([clinic_factory("x", services=["s10"])])
        filters = ClinicFilter(services=tuple(f"s{i}" for i in range(11)))

        assert store.query(filters, limit=5) == []

    def test_search_term_is_matched_in_the_store(self, clinic_store):
        docs = clinic_store.query(ClinicFilter(search_term="bpc157"), limit=10)
        assert _ids(docs) == ["austin-trt"]

    def test_search_term_reads_legacy_documents(self, clinic_factory):
        # No searchableTerms stored; treatments still match
        store = InMemoryClinicStore([clinic_factory("legacy", treatments=["tb-500"]), clinic_factory("other")])

        assert _ids(store.query(ClinicFilter(search_term="TB500"), limit=5)) == ["legacy"]

    def test_start_after(self, clinic_store):
        first = clinic_store.query(ClinicFilter(), limit=2)
        rest = clinic_store.query(ClinicFilter(), limit=10, start_after=first[-1])

        assert _ids(rest) == ["no-coords", "round-rock-vitality", "denver-peak"]

    def test_results_are_copies(self, clinic_store):
        doc = clinic_store.query(ClinicFilter(), limit=1)[0]
        doc.data["name"] = "changed"

        assert clinic_store.get(doc.id)["name"] != "changed"

    @pytest.mark.parametrize("limit", [0, -1, 2.5, True])
    def test_invalid_limit(self, clinic_store, limit):
        with pytest.raises(ValueError):
            clinic_store.query(ClinicFilter(), limit=limit)


class TestConstruction:
    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            InMemoryClinicStore([{"name": "No Id"}])

    def test_duplicate_ids_keep_first(self, clinic_factory, caplog):
        store = InMemoryClinicStore([clinic_factory("a", name="First"), clinic_factory("a", name="Second")])

        assert len(store) == 1
        assert store.get("a")["name"] == "First"
        assert "Duplicate clinic id" in caplog.text

    def test_lookup_by_slug(self, clinic_factory):
        store = InMemoryClinicStore([clinic_factory("a", slug="clinic-a-austin-tx")])

        assert store.get_by_slug("clinic-a-austin-tx")["id"] == "a"
        assert store.get_by_slug("missing") is None


class TestRecordView:
    def test_increments_clicks_and_stamps_time(self, clinic_store):
        traffic = clinic_store.record_view("austin-trt", "trt austin")

        assert traffic["totalClicks"] == 41
        assert traffic["topSearchTerms"] == ["trt austin"]
        assert traffic["lastViewed"]

    def test_creates_traffic_meta_when_missing(self, clinic_factory):
        record = clinic_factory("bare")
        del record["trafficMeta"]
        store = InMemoryClinicStore([record])

        traffic = store.record_view("bare")

        assert traffic["totalClicks"] == 1
        assert traffic["topSearchTerms"] == []

    def test_duplicate_and_blank_terms_ignored(self, clinic_store):
        clinic_store.record_view("denver-peak", "peptides")
        clinic_store.record_view("denver-peak", "peptides")
        traffic = clinic_store.record_view("denver-peak", "   ")

        assert traffic["topSearchTerms"] == ["peptides"]
        assert traffic["totalClicks"] == 8

    def test_ring_buffer_evicts_oldest(self, clinic_store):
        for i in range(MAX_TOP_SEARCH_TERMS + 3):
            traffic = clinic_store.record_view("denver-peak", f"term {i}")

        assert len(traffic["topSearchTerms"]) == MAX_TOP_SEARCH_TERMS
        assert traffic["topSearchTerms"][0] == "term 3"
        assert traffic["topSearchTerms"][-1] == f"term {MAX_TOP_SEARCH_TERMS + 2}"

    def test_unknown_clinic(self, clinic_store):
        with pytest.raises(KeyError):
            clinic_store.record_view("missing")

    def test_concurrent_views_are_not_lost(self, clinic_store):
        def view_many():
            for _ in range(200):
                clinic_store.record_view("round-rock-vitality")

        threads = [threading.Thread(target=view_many) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert clinic_store.get("round-rock-vitality")["trafficMeta"]["totalClicks"] == 15 + 1000
