"""
Unit tests for geometry utilities.

Tests cover:
- Geodesic area in hectares and its rounding
- Ring to GeoJSON Feature conversion
- Bounding boxes and padding
- Field geometry validation
"""
import json
import pytest

from app.utils.geometry import (
    bounding_box,
    geometry_area_ha,
    normalize_field_geometry,
    pad_bbox,
    parse_geometry_json,
    polygon_area,
    ring_to_feature,
    round_half_up,
)


# ============================================================
# Area Tests
# ============================================================

class TestPolygonArea:
    """Tests for polygon_area."""

    def test_square_of_about_one_hectare(self, sample_ring):
        """A ~100 m x 100 m square should be close to 1 ha."""
        area = polygon_area(sample_ring)

        assert 0.9 < area < 1.1

    def test_area_is_rounded_to_two_decimals(self, sample_ring):
        area = polygon_area(sample_ring)

        assert area == round(area, 2)

    def test_invariant_under_winding_order(self, sample_ring):
        """Reversing the ring must not change the area."""
        assert polygon_area(sample_ring) == polygon_area(list(reversed(sample_ring)))

    def test_closed_and_open_ring_agree(self, sample_ring):
        closed = sample_ring + [sample_ring[0]]

        assert polygon_area(closed) == polygon_area(sample_ring)

    def test_non_negative(self, sample_ring):
        assert polygon_area(list(reversed(sample_ring))) >= 0

    @pytest.mark.parametrize("ring", [
        [],
        [(35.68, 139.70)],
        [(35.68, 139.70), (35.69, 139.71)],
        [(35.68, 139.70), (35.69, 139.71), (35.68, 139.70)],
    ])
    def test_fewer_than_three_distinct_vertices_is_zero(self, ring):
        assert polygon_area(ring) == 0.0

    def test_geometry_area_matches_ring_area(self, sample_ring, sample_geometry):
        assert geometry_area_ha(sample_geometry) == polygon_area(sample_ring)

    def test_point_geometry_has_no_area(self):
        assert geometry_area_ha({"type": "Point", "coordinates": [139.7, 35.68]}) == 0.0


class TestRoundHalfUp:
    """Tests for round_half_up."""

    def test_rounds_half_up_at_the_cent(self):
        """12.345 is stored as 12.3449999... but must still round up."""
        assert round_half_up(12.345) == 12.35

    def test_rounds_down_below_half(self):
        assert round_half_up(12.344) == 12.34

    def test_other_half_values(self):
        assert round_half_up(0.125) == 0.13
        assert round_half_up(2.675) == 2.68


# ============================================================
# Feature Conversion Tests
# ============================================================

class TestRingToFeature:
    """Tests for ring_to_feature."""

    def test_coordinates_are_lng_lat(self, sample_ring):
        feature = ring_to_feature(sample_ring)
        first = feature["geometry"]["coordinates"][0][0]

        assert first == [139.7000, 35.6800]

    def test_open_ring_is_closed(self, sample_ring):
        ring = ring_to_feature(sample_ring)["geometry"]["coordinates"][0]

        assert len(ring) == len(sample_ring) + 1
        assert ring[0] == ring[-1]

    def test_closed_ring_is_not_closed_twice(self, sample_ring):
        closed = sample_ring + [sample_ring[0]]
        ring = ring_to_feature(closed)["geometry"]["coordinates"][0]

        assert len(ring) == len(closed)
        assert ring[0] == ring[-1]

    def test_feature_envelope(self, sample_ring):
        feature = ring_to_feature(sample_ring)

        assert feature["type"] == "Feature"
        assert feature["properties"] == {}
        assert feature["geometry"]["type"] == "Polygon"


# ============================================================
# Bounding Box Tests
# ============================================================

class TestBoundingBox:
    """Tests for bounding_box and pad_bbox."""

    def test_polygon_bbox(self, sample_geometry):
        assert bounding_box(sample_geometry) == (139.7000, 35.6800, 139.7011, 35.6809)

    def test_point_bbox_is_degenerate(self):
        assert bounding_box({"type": "Point", "coordinates": [139.7, 35.68]}) == (139.7, 35.68, 139.7, 35.68)

    @pytest.mark.parametrize("geometry", [
        None,
        {},
        {"type": "Polygon", "coordinates": []},
        {"type": "Polygon", "coordinates": [[]]},
        {"type": "Polygon", "coordinates": [["bad"]]},
    ])
    def test_malformed_geometry_has_no_bbox(self, geometry):
        assert bounding_box(geometry) is None

    def test_pad_bbox(self):
        assert pad_bbox((1.0, 2.0, 3.0, 4.0), 0.5) == (0.5, 1.5, 3.5, 4.5)


# ============================================================
# Validation Tests
# ============================================================

class TestFieldGeometry:
    """Tests for parsing and normalizing stored geometries."""

    def test_open_polygon_is_closed(self):
        geometry = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 1]]]}

        ring = normalize_field_geometry(geometry)["coordinates"][0]

        assert ring[0] == ring[-1]
        assert len(ring) == 5

    def test_point_is_accepted(self):
        result = normalize_field_geometry({"type": "Point", "coordinates": [139.7, 35.68]})

        assert result == {"type": "Point", "coordinates": [139.7, 35.68]}

    def test_unsupported_type_is_rejected(self):
        with pytest.raises(ValueError, match="Unsupported"):
            normalize_field_geometry({"type": "LineString", "coordinates": [[0, 0], [1, 1]]})

    def test_too_few_vertices_is_rejected(self):
        with pytest.raises(ValueError):
            normalize_field_geometry({"type": "Polygon", "coordinates": [[[0, 0], [1, 1]]]})

    def test_missing_coordinates_is_rejected(self):
        with pytest.raises(ValueError):
            normalize_field_geometry({"type": "Polygon"})

    def test_parse_feature_json(self, sample_geometry):
        text = json.dumps({"type": "Feature", "properties": {}, "geometry": sample_geometry})

        assert parse_geometry_json(text) == sample_geometry

    def test_parse_bare_geometry_json(self, sample_geometry):
        assert parse_geometry_json(json.dumps(sample_geometry)) == sample_geometry

    def test_parse_invalid_json(self):
        with pytest.raises(ValueError, match="not valid JSON"):
            parse_geometry_json("{not json")

    def test_parse_feature_without_geometry(self):
        with pytest.raises(ValueError):
            parse_geometry_json('{"type": "Feature", "properties": {}}')


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
