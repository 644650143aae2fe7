"""Test suite for distance calculation using haversine formula.

Tests verify accurate distance calculations between geographic coordinates
and the sentinel distance given to clinics without coordinates.
"""
import math

import pandas as pd
import pytest

from clinic_finder.utils.scoring import SENTINEL_DISTANCE, calculate_distances, haversine_distance


class TestHaversineDistance:
    def test_distance_to_same_location(self):
        assert haversine_distance(30.2672, -97.7431, 30.2672, -97.7431) == 0

    def test_symmetric(self):
        forward = haversine_distance(30.2672, -97.7431, 32.7767, -96.7970)
        backward = haversine_distance(32.7767, -96.7970, 30.2672, -97.7431)
        assert math.isclose(forward, backward, rel_tol=1e-6)

    def test_known_distance_austin_to_dallas(self):
        # Austin to Dallas is roughly 180-190 miles as the crow flies
        distance = haversine_distance(30.2672, -97.7431, 32.7767, -96.7970)
        assert 175 < distance < 195, f"Expected ~182 miles, got {distance:.1f}"

    def test_out_of_range_input_does_not_raise(self):
        distance = haversine_distance(120.0, 400.0, -95.0, -200.0)
        assert math.isfinite(distance)


class TestCalculateDistances:
    def test_known_distance_nyc_to_philadelphia(self):
        df = pd.DataFrame({"lat": [39.9526], "lng": [-75.1652]})

        distances = calculate_distances(40.7128, -74.0060, df)

        assert len(distances) == 1
        assert 75 < distances[0] < 90, f"Expected ~80 miles, got {distances[0]:.1f}"

    def test_matches_scalar_formula(self):
        df = pd.DataFrame({"lat": [32.7767, 39.7392], "lng": [-96.7970, -104.9903]})

        distances = calculate_distances(30.2672, -97.7431, df)

        for (lat, lng), distance in zip(zip(df["lat"], df["lng"]), distances):
            assert distance == pytest.approx(haversine_distance(30.2672, -97.7431, lat, lng), rel=1e-9)

    def test_invalid_coordinates_get_sentinel(self):
        df = pd.DataFrame(
            {
                "lat": [30.5, None, float("nan"), 0.0, "abc"],
                "lng": [-97.5, -97.5, -97.5, 0.0, -97.5],
            }
        )

        distances = calculate_distances(30.2672, -97.7431, df)

        assert distances[0] < 50
        assert distances[1:] == [SENTINEL_DISTANCE] * 4

    def test_empty_dataframe(self):
        df = pd.DataFrame(columns=["lat", "lng"])
        assert calculate_distances(30.0, -97.0, df) == []
