"""
Geometry utilities for field polygons.

Rings handed in by the map client are sequences of (lat, lng) pairs; GeoJSON
stores [lng, lat]. Areas are geodesic (WGS84 ellipsoid) and reported in
hectares rounded half-up to 2 decimals.
"""
import json
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Sequence, Tuple

from pyproj import Geod
from shapely.errors import GEOSException
from shapely.geometry import shape

BBox = Tuple[float, float, float, float]

_GEOD = Geod(ellps="WGS84")

SUPPORTED_GEOMETRY_TYPES = ("Polygon", "Point")


def round_half_up(value: float, digits: int = 2) -> float:
    """
    Round to a fixed number of decimals, halves away from zero.

    Goes through the shortest decimal representation so that 12.345
    rounds to 12.35 despite its binary value being slightly below.
    """
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def polygon_area(ring: Sequence[Sequence[float]]) -> float:
    """
    Compute the geodesic area of a single ring in hectares.

    Args:
        ring: Ordered (lat, lng) vertices, closed or open

    Returns:
        Non-negative area in hectares, rounded to 2 decimals. Rings with
        fewer than 3 distinct vertices have area 0.
    """
    points = [(float(lat), float(lng)) for lat, lng in ring]
    if len(set(points)) < 3:
        return 0.0

    lats = [lat for lat, _ in points]
    lons = [lng for _, lng in points]
    area_m2, _ = _GEOD.polygon_area_perimeter(lons, lats)
    return round_half_up(abs(area_m2) / 10000.0, 2)


def ring_to_feature(ring: Sequence[Sequence[float]]) -> dict[str, Any]:
    """
    Wrap a (lat, lng) ring as a GeoJSON Polygon Feature.

    Coordinates are emitted in [lng, lat] order and the ring is closed by
    repeating the first vertex when needed.
    """
    coords = [[float(lng), float(lat)] for lat, lng in ring]
    if coords and coords[0] != coords[-1]:
        coords.append(list(coords[0]))
    return {
        "type": "Feature",
        "properties": {},
        "geometry": {"type": "Polygon", "coordinates": [coords]},
    }


def geometry_to_feature(geometry: dict[str, Any]) -> dict[str, Any]:
    return {"type": "Feature", "properties": {}, "geometry": geometry}


def outer_ring(geometry: Optional[dict[str, Any]]) -> list[list[float]]:
    """
    Return the [lng, lat] vertices used for bounds: the outer ring of a
    Polygon, or the single position of a Point. Empty when unavailable.
    """
    if not isinstance(geometry, dict):
        return []
    coordinates = geometry.get("coordinates")
    try:
        if geometry.get("type") == "Point":
            return [[float(coordinates[0]), float(coordinates[1])]]
        ring = coordinates[0] if coordinates else []
        return [[float(pos[0]), float(pos[1])] for pos in ring]
    except (TypeError, ValueError, IndexError, KeyError):
        return []


def bounding_box(geometry: Optional[dict[str, Any]]) -> Optional[BBox]:
    """
    Compute (min_lng, min_lat, max_lng, max_lat) of a geometry's outer ring.

    Returns None for an empty or malformed geometry, which callers treat as
    "no bbox available".
    """
    ring = outer_ring(geometry)
    if not ring:
        return None

    min_lng, min_lat = 180.0, 90.0
    max_lng, max_lat = -180.0, -90.0
    for lng, lat in ring:
        min_lng = min(min_lng, lng)
        max_lng = max(max_lng, lng)
        min_lat = min(min_lat, lat)
        max_lat = max(max_lat, lat)
    return (min_lng, min_lat, max_lng, max_lat)


def pad_bbox(bbox: BBox, padding: float) -> BBox:
    min_lng, min_lat, max_lng, max_lat = bbox
    return (min_lng - padding, min_lat - padding, max_lng + padding, max_lat + padding)


def geometry_area_ha(geometry: Optional[dict[str, Any]]) -> float:
    """Area of a stored GeoJSON geometry in hectares (Points have none)."""
    if not geometry or geometry.get("type") != "Polygon":
        return 0.0
    ring = outer_ring(geometry)
    return polygon_area([(lat, lng) for lng, lat in ring])


def is_geojson_geometry(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and isinstance(value.get("type"), str)
        and isinstance(value.get("coordinates"), list)
    )


def parse_geometry_json(text: str) -> dict[str, Any]:
    """
    Extract the geometry from a serialized GeoJSON Feature (or bare geometry).

    Raises:
        ValueError: If the text is not JSON or holds no geometry
    """
    try:
        payload = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"geometry_json is not valid JSON: {e}")

    if isinstance(payload, dict) and payload.get("type") == "Feature":
        payload = payload.get("geometry")
    if not is_geojson_geometry(payload):
        raise ValueError("geometry_json does not contain a GeoJSON geometry")
    return payload


def normalize_field_geometry(geometry: Any) -> dict[str, Any]:
    """
    Validate a field geometry and return it with a closed outer ring.

    Only Polygon (outer ring kept) and Point are accepted.

    Raises:
        ValueError: If the geometry is unsupported or cannot be built
    """
    if not is_geojson_geometry(geometry):
        raise ValueError("geometry must be a GeoJSON object with type and coordinates")

    geom_type = geometry["type"]
    if geom_type not in SUPPORTED_GEOMETRY_TYPES:
        raise ValueError(f"Unsupported geometry type: {geom_type}")

    try:
        parsed = shape(geometry)
    except (ValueError, TypeError, IndexError, KeyError, AttributeError, GEOSException) as e:
        raise ValueError(f"Invalid {geom_type} geometry: {e}")
    if parsed.is_empty:
        raise ValueError(f"Empty {geom_type} geometry")

    if geom_type == "Point":
        lng, lat = geometry["coordinates"][:2]
        return {"type": "Point", "coordinates": [float(lng), float(lat)]}

    ring = [[float(pos[0]), float(pos[1])] for pos in geometry["coordinates"][0]]
    if ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    return {"type": "Polygon", "coordinates": [ring]}
