"""Test suite for clinic snapshot parsing and source selection."""
import json
import logging
from datetime import datetime
from io import BytesIO
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from clinic_finder.data import ingestion
from clinic_finder.data.ingestion import PROJECT_ROOT, fetch_snapshot, load_local_snapshot, parse_snapshot
from clinic_finder.data.store import InMemoryClinicStore


class TestParseSnapshot:
    def test_json_list(self):
        data = json.dumps([{"id": "a"}, {"id": "b"}, "junk"]).encode()
        assert parse_snapshot(data, "clinics.json") == [{"id": "a"}, {"id": "b"}]

    def test_json_wrapped(self):
        data = json.dumps({"clinics": [{"id": "a"}]}).encode()
        assert parse_snapshot(data, "export.JSON") == [{"id": "a"}]

    def test_json_lines(self):
        data = b'{"id": "a"}\n\n{"id": "b"}\n'
        assert parse_snapshot(data, "clinics.jsonl") == [{"id": "a"}, {"id": "b"}]

    def test_json_lines_bad_line(self):
        with pytest.raises(ValueError, match="line 2"):
            parse_snapshot(b'{"id": "a"}\n{broken\n', "clinics.jsonl")

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_snapshot(b"{not json", "clinics.json")

    def test_json_scalar_payload(self):
        with pytest.raises(ValueError):
            parse_snapshot(b"42", "clinics.json")

    def test_parquet(self):
        df = pd.DataFrame(
            {
                "id": ["a", "b"],
                "services": [["TRT", "ED Treatment"], []],
                "lat": [30.1, None],
            }
        )
        buffer = BytesIO()
        df.to_parquet(buffer, index=False)

        records = parse_snapshot(buffer.getvalue(), "clinics.parquet")

        assert records[0]["id"] == "a"
        assert records[0]["services"] == ["TRT", "ED Treatment"]
        assert isinstance(records[0]["services"], list)
        assert records[1]["services"] == []

    def test_unsupported_format(self):
        with pytest.raises(ValueError, match="Unsupported"):
            parse_snapshot(b"a,b", "clinics.csv")


class TestLocalSnapshot:
    def test_missing_file(self, tmp_path):
        assert load_local_snapshot(str(tmp_path / "missing.json")) == []

    def test_reads_file(self, tmp_path):
        path = tmp_path / "clinics.json"
        path.write_text(json.dumps([{"id": "a", "name": "A"}]), encoding="utf-8")

        assert load_local_snapshot(str(path)) == [{"id": "a", "name": "A"}]

    def test_bundled_snapshot_builds_a_store(self):
        records = load_local_snapshot(str(PROJECT_ROOT / "data" / "clinics.json"))

        store = InMemoryClinicStore(records)

        assert len(store) == len(records) > 0


class TestFetchSnapshot:
    def test_uses_s3_when_configured(self):
        client = MagicMock()
        client.is_configured.return_value = True
        client.download_latest_file.return_value = (b'[{"id": "s3"}]', "latest.json", datetime(2024, 5, 1))

        with patch.object(ingestion, "S3DataClient", return_value=client):
            records, source = fetch_snapshot()

        assert records == [{"id": "s3"}]
        assert "latest.json" in source

    def test_falls_back_to_local_on_bad_s3_file(self):
        client = MagicMock()
        client.is_configured.return_value = True
        client.download_latest_file.return_value = (b"garbage", "latest.json", datetime(2024, 5, 1))

        with patch.object(ingestion, "S3DataClient", return_value=client), patch.object(
            ingestion, "load_local_snapshot", return_value=[{"id": "local"}]
        ):
            records, source = fetch_snapshot()

        assert records == [{"id": "local"}]
        assert source == "local snapshot"

    def test_local_when_s3_not_configured(self, no_s3):
        with patch.object(ingestion, "load_local_snapshot", return_value=[{"id": "local"}]) as local:
            records, source = fetch_snapshot()

        local.assert_called_once_with()
        assert records == [{"id": "local"}]


class TestCachedLoaders:
    def test_frame_load_logs_data_summary(self, sample_clinics, caplog):
        ingestion.load_clinic_frame.clear()
        with patch.object(ingestion, "load_clinic_records", return_value=sample_clinics):
            with caplog.at_level(logging.INFO, logger="clinic_finder.data.ingestion"):
                clinic_df = ingestion.load_clinic_frame()
        ingestion.load_clinic_frame.clear()

        assert len(clinic_df) == len(sample_clinics)
        assert "Total clinics in directory: 6" in caplog.text

    def test_empty_snapshot_logs_warning(self, caplog):
        ingestion.load_clinic_frame.clear()
        with patch.object(ingestion, "load_clinic_records", return_value=[]):
            with caplog.at_level(logging.WARNING, logger="clinic_finder.data.ingestion"):
                ingestion.load_clinic_frame()
        ingestion.load_clinic_frame.clear()

        assert "No clinic data available" in caplog.text

    def test_refresh_clears_every_cache(self):
        with patch.object(ingestion, "load_clinic_records") as records, patch.object(
            ingestion, "load_clinic_frame"
        ) as frame, patch.object(ingestion, "get_clinic_store") as store:
            ingestion.refresh_clinic_data()

        records.clear.assert_called_once_with()
        frame.clear.assert_called_once_with()
        store.clear.assert_called_once_with()
