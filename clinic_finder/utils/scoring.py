"""Distance calculation and clinic ranking."""
import math
import sys
from typing import List, Optional

import numpy as np
import pandas as pd

from .tiers import tier_priority

EARTH_RADIUS_MILES = 3958.8

# Distance given to clinics without coordinates so they sort last
SENTINEL_DISTANCE = sys.float_info.max


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles between two points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Out-of-range degrees can push `a` a hair outside [0, 1]
    a = min(max(a, 0.0), 1.0)
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def calculate_distances(user_lat: float, user_lon: float, clinic_df: pd.DataFrame) -> List[float]:
    """Distance in miles from a reference point to every clinic row.

    Rows whose ``lat``/``lng`` are missing, NaN or zero get
    :data:`SENTINEL_DISTANCE` instead of a computed value.
    """
    if clinic_df.empty:
        return []

    lat_deg = pd.to_numeric(clinic_df["lat"], errors="coerce").to_numpy(dtype=float)
    lon_deg = pd.to_numeric(clinic_df["lng"], errors="coerce").to_numpy(dtype=float)
    valid = np.isfinite(lat_deg) & np.isfinite(lon_deg) & (lat_deg != 0) & (lon_deg != 0)

    lat_arr = np.radians(lat_deg[valid])
    lon_arr = np.radians(lon_deg[valid])
    user_lat_rad = np.radians(user_lat)
    user_lon_rad = np.radians(user_lon)

    dlat = lat_arr - user_lat_rad
    dlon = lon_arr - user_lon_rad
    a = np.sin(dlat / 2) ** 2 + np.cos(user_lat_rad) * np.cos(lat_arr) * np.sin(dlon / 2) ** 2
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))

    distances = np.full(len(clinic_df), SENTINEL_DISTANCE)
    distances[valid] = EARTH_RADIUS_MILES * c
    return [float(d) for d in distances]


def rank_clinics(clinic_df: pd.DataFrame, by_distance: Optional[bool] = None) -> pd.DataFrame:
    """Sort clinics into display order.

    Keys, most significant first:

    1. tier priority (advanced, standard, free)
    2. verified before unverified
    3. distance ascending when ranking by distance, otherwise
       ``totalClicks`` descending

    Remaining ties keep their input order. ``by_distance`` defaults to
    whether a ``distance`` column is present.
    """
    if clinic_df is None or clinic_df.empty:
        return clinic_df

    if by_distance is None:
        by_distance = "distance" in clinic_df.columns

    work = clinic_df.copy()
    work["_tier_rank"] = work["tier"].map(tier_priority)
    work["_verified_rank"] = np.where(work["verified"].fillna(False).astype(bool), 0, 1)
    work["_input_order"] = np.arange(len(work))

    if by_distance:
        work["_third_key"] = pd.to_numeric(work["distance"], errors="coerce").fillna(SENTINEL_DISTANCE)
    else:
        # Negated so every key sorts ascending
        work["_third_key"] = -pd.to_numeric(work["totalClicks"], errors="coerce").fillna(0)

    sort_keys = ["_tier_rank", "_verified_rank", "_third_key", "_input_order"]
    ranked = work.sort_values(by=sort_keys, kind="mergesort")
    return ranked.drop(columns=sort_keys).reset_index(drop=True)
