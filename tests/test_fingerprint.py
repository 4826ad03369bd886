"""Tests for query fingerprints."""

from decimal import Decimal

import pytest

from weather_gateway.cache.fingerprint import (
    canonical_query,
    canonicalize,
    fingerprint,
    round_coordinate,
)


class TestRoundCoordinate:
    """Tests for coordinate rounding."""

    def test_rounds_half_up(self):
        """Ties round away from zero."""
        assert round_coordinate(0.00005) == Decimal("0.0001")
        assert round_coordinate(2.5, precision=0) == Decimal("3")

    def test_keeps_fixed_decimals(self):
        assert str(round_coordinate(51.6)) == "51.6000"

    def test_negative_zero_is_zero(self):
        assert round_coordinate(-0.00001) == round_coordinate(0.0)
        assert str(round_coordinate(-0.00001)) == "0.0000"

    def test_accepts_strings(self):
        """Nominatim returns coordinates as strings."""
        assert round_coordinate("51.5073219") == Decimal("51.5073")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "-inf"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            round_coordinate(value)


class TestCanonicalize:
    """Tests for parameter canonicalization."""

    def test_text_is_trimmed_and_lowercased(self):
        assert canonicalize({"city": "  London ", "country": "UK"}) == {
            "city": "london",
            "country": "uk",
        }

    def test_inner_whitespace_is_collapsed(self):
        assert canonicalize({"city": "New   York"}) == {"city": "new york"}

    def test_keys_are_normalized(self):
        assert canonicalize({" City ": "Paris"}) == {"city": "paris"}

    def test_none_values_are_dropped(self):
        assert canonicalize({"city": "Paris", "state": None}) == {"city": "paris"}

    def test_colliding_keys_are_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            canonicalize({"City": "Paris", "city": "Lyon"})

    def test_booleans_are_not_numbers(self):
        assert canonicalize({"current": True}) == {"current": True}

    def test_unsupported_types_are_rejected(self):
        with pytest.raises(TypeError):
            canonicalize({"when": object()})


class TestFingerprint:
    """Tests for fingerprint equivalence."""

    def test_equivalent_place_queries_match(self):
        assert fingerprint({"city": "London", "country": "uk"}) == fingerprint(
            {"city": " london ", "country": "UK"}
        )

    def test_parameter_order_does_not_matter(self):
        assert fingerprint({"city": "London", "country": "gb"}) == fingerprint(
            {"country": "gb", "city": "London"}
        )

    def test_coordinates_within_precision_match(self):
        assert fingerprint({"lat": 51.50740001, "lon": -0.1278}) == fingerprint(
            {"lat": 51.50741, "lon": -0.1278}
        )

    def test_coordinates_beyond_precision_differ(self):
        assert fingerprint({"lat": 51.5074, "lon": -0.1278}) != fingerprint(
            {"lat": 51.6, "lon": -0.1278}
        )

    def test_namespace_separates_categories(self):
        params = {"city": "London", "country": "gb"}
        assert fingerprint(params, namespace="geocoding") != fingerprint(
            params, namespace="weather:current"
        )

    def test_format(self):
        value = fingerprint({"city": "London"}, namespace="geocoding")
        namespace, _, digest = value.partition(":")
        assert namespace == "geocoding"
        assert len(digest) == 64

    def test_canonical_query_is_sorted_json(self):
        assert canonical_query({"lon": -0.1278, "lat": 51.5074}) == (
            '{"lat":"51.5074","lon":"-0.1278"}'
        )

    def test_no_scientific_notation(self):
        assert canonical_query({"lat": 1e-7}) == '{"lat":"0.0000"}'
