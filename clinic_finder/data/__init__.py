"""Clinic data package: snapshot ingestion and the in-memory clinic store."""

from .ingestion import (
    get_clinic_store,
    load_clinic_frame,
    load_clinic_records,
    parse_snapshot,
    refresh_clinic_data,
)
from .store import ClinicQueryError, ClinicSearchError, InMemoryClinicStore, StoredDocument

__all__ = [
    "ClinicQueryError",
    "ClinicSearchError",
    "InMemoryClinicStore",
    "StoredDocument",
    "get_clinic_store",
    "load_clinic_frame",
    "load_clinic_records",
    "parse_snapshot",
    "refresh_clinic_data",
]
