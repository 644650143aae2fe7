"""
Clinic snapshot ingestion.

The clinic directory is exported as a JSON, JSON-lines or Parquet snapshot.
The newest snapshot in the configured S3 folder is used; without S3
credentials (local development, tests) the file at
``search.local_snapshot_path`` is read instead.

Loaded records are cached with ``st.cache_data`` and wrapped in one
:class:`~clinic_finder.data.store.InMemoryClinicStore` per process through
``st.cache_resource``.
"""

import json
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import streamlit as st

from clinic_finder.data.store import InMemoryClinicStore
from clinic_finder.utils.cleaning import clinics_to_frame, validate_clinic_data
from clinic_finder.utils.config import get_search_config
from clinic_finder.utils.s3_client import S3DataClient

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _to_python(value: Any) -> Any:
    """Convert numpy containers and scalars coming out of Parquet into plain Python."""
    if isinstance(value, np.ndarray):
        return [_to_python(v) for v in value.tolist()]
    if isinstance(value, dict):
        return {k: _to_python(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_python(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def parse_snapshot(data: bytes, filename: str) -> List[Dict[str, Any]]:
    """
    Parse a snapshot file into clinic records.

    Args:
        data: Raw file contents
        filename: Name used to pick the format (.json, .jsonl or .parquet)

    Returns:
        List of clinic dicts

    Raises:
        ValueError: for an unsupported extension or malformed content
    """
    suffix = Path(filename).suffix.lower()

    if suffix == ".json":
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Invalid JSON snapshot '{filename}': {e}") from e
        # Exports are either a bare list or {"clinics": [...]}
        if isinstance(payload, dict):
            payload = payload.get("clinics", [])
        if not isinstance(payload, list):
            raise ValueError(f"Snapshot '{filename}' does not contain a list of clinics")
        return [r for r in payload if isinstance(r, dict)]

    if suffix == ".jsonl":
        records = []
        for line_no, line in enumerate(data.decode("utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_no} of '{filename}': {e}") from e
            if isinstance(record, dict):
                records.append(record)
        return records

    if suffix == ".parquet":
        df = pd.read_parquet(BytesIO(data))
        return [_to_python(r) for r in df.to_dict(orient="records")]

    raise ValueError(f"Unsupported snapshot format: '{filename}'")


def load_local_snapshot(path: Optional[str] = None) -> List[Dict[str, Any]]:
    """Read the local snapshot file; a missing file yields no clinics."""
    snapshot_path = Path(path or get_search_config()["local_snapshot_path"])
    if not snapshot_path.is_absolute():
        snapshot_path = PROJECT_ROOT / snapshot_path

    if not snapshot_path.exists():
        logger.warning(f"Local clinic snapshot not found at {snapshot_path}")
        return []

    records = parse_snapshot(snapshot_path.read_bytes(), snapshot_path.name)
    logger.info(f"Loaded {len(records)} clinics from local snapshot {snapshot_path}")
    return records


def fetch_snapshot() -> Tuple[List[Dict[str, Any]], str]:
    """
    Load clinic records from the best available source.

    Returns:
        Tuple of (records, source description)
    """
    client = S3DataClient()
    if client.is_configured():
        latest = client.download_latest_file()
        if latest is not None:
            file_bytes, filename, last_modified = latest
            try:
                records = parse_snapshot(file_bytes, filename)
                logger.info(f"Loaded {len(records)} clinics from S3 snapshot '{filename}'")
                return records, f"S3: {filename} ({last_modified})"
            except ValueError as e:
                logger.error(f"Could not parse S3 snapshot '{filename}': {e}")
        logger.warning("Falling back to local clinic snapshot")
    else:
        logger.info("S3 not configured; using local clinic snapshot")

    return load_local_snapshot(), "local snapshot"


@st.cache_data(ttl=3600, show_spinner=False)
def load_clinic_records() -> List[Dict[str, Any]]:
    """Snapshot records, cached for an hour."""
    records, source = fetch_snapshot()
    logger.debug(f"Clinic records source: {source}")
    return records


@st.cache_data(ttl=3600, show_spinner=False)
def load_clinic_frame() -> pd.DataFrame:
    """Normalized search frame over the whole snapshot (suggestions, nearby listing)."""
    clinic_df = clinics_to_frame(load_clinic_records())
    is_valid, summary = validate_clinic_data(clinic_df)
    if is_valid:
        logger.info(summary)
    else:
        logger.warning(summary)
    return clinic_df


@st.cache_resource
def get_clinic_store() -> InMemoryClinicStore:
    return InMemoryClinicStore(load_clinic_records())


def refresh_clinic_data() -> None:
    """Drop cached snapshot data so the next access reloads it."""
    load_clinic_records.clear()
    load_clinic_frame.clear()
    get_clinic_store.clear()
    logger.info("Clinic data caches cleared")
