"""
Domain service: normalize zonal statistics payloads into one record.

TiTiler deployments and versions answer the statistics route in different
shapes. Each known shape is a tag; ``locate_statistics`` classifies a payload
and extracts the per-band statistics object, ``normalize_statistics`` maps the
object's field aliases onto ``NdviStatistics``. Anything unrecognized
normalizes to None rather than a partially guessed record.
"""
import logging
from enum import Enum
from typing import Any, Optional, Tuple

from pydantic import ValidationError

from app.domain.models import NdviInterpretation, NdviStatistics
from app.infrastructure.api_constants import NdviBands

logger = logging.getLogger(__name__)

# Keys tried, in order, before falling back to the first key
KNOWN_STATISTICS_KEYS = (NdviBands.EXPRESSION, "expression", "ndvi", "b1")

# Canonical field -> accepted upstream names, in priority order
FIELD_ALIASES: dict[str, Tuple[str, ...]] = {
    "mean": ("mean", "avg"),
    "median": ("median", "p50"),
    "min": ("min", "p0"),
    "max": ("max", "p100"),
    "std": ("std", "stdev", "stddev"),
    "count": ("count", "n", "valid_percent"),
    "histogram": ("histogram", "histogram_bins"),
}

HEALTH_THRESHOLDS = (
    (0.6, "excellent"),
    (0.4, "good"),
    (0.2, "poor"),
)


class StatisticsShape(str, Enum):
    """Known response layouts of the statistics route."""
    FEATURE = "feature"          # {"properties": {"statistics": {<key>: {...}}}}
    STATISTICS = "statistics"    # {"statistics": {<key>: {...}}}
    FLAT = "flat"                # {"mean": ..., ...}
    UNKNOWN = "unknown"


def _pick_band(statistics: Any) -> Optional[dict[str, Any]]:
    """Choose the NDVI entry of a ``{band_key: stats}`` mapping."""
    if not isinstance(statistics, dict) or not statistics:
        return None
    for key in KNOWN_STATISTICS_KEYS:
        candidate = statistics.get(key)
        if isinstance(candidate, dict):
            return candidate
    first = next(iter(statistics.values()))
    return first if isinstance(first, dict) else None


def locate_statistics(payload: Any) -> Tuple[StatisticsShape, Optional[dict[str, Any]]]:
    """
    Classify a payload and return its statistics object.

    Checked in order: ``properties.statistics``, top-level ``statistics``,
    then a flat object carrying ``mean`` itself.
    """
    if not isinstance(payload, dict):
        return StatisticsShape.UNKNOWN, None

    properties = payload.get("properties")
    if isinstance(properties, dict):
        found = _pick_band(properties.get("statistics"))
        if found is not None:
            return StatisticsShape.FEATURE, found

    found = _pick_band(payload.get("statistics"))
    if found is not None:
        return StatisticsShape.STATISTICS, found

    if "mean" in payload:
        return StatisticsShape.FLAT, payload

    return StatisticsShape.UNKNOWN, None


def _first_present(source: dict[str, Any], names: Tuple[str, ...]) -> Any:
    for name in names:
        value = source.get(name)
        if value is not None:
            return value
    return None


def normalize_statistics(payload: Any) -> Optional[NdviStatistics]:
    """
    Map any known statistics payload onto ``NdviStatistics``.

    Returns:
        The normalized record, or None when no statistics object is found
        or one of its values is not numeric
    """
    shape, located = locate_statistics(payload)
    if located is None:
        return None
    values = {field: _first_present(located, names) for field, names in FIELD_ALIASES.items()}
    try:
        return NdviStatistics(**values)
    except ValidationError as e:
        logger.warning(f"Discarding {shape.value} statistics with unusable values: {e.error_count()} error(s)")
        return None


def vegetation_health(mean: Optional[float]) -> Optional[str]:
    """Four-level label from fixed NDVI cut-offs (heuristic)."""
    if mean is None:
        return None
    for threshold, label in HEALTH_THRESHOLDS:
        if mean >= threshold:
            return label
    return "very_poor"


def coverage_percentage(mean: Optional[float]) -> Optional[int]:
    """Linear stretch of NDVI [-1, 1] onto [0, 100] (heuristic)."""
    if mean is None:
        return None
    return int((mean + 1) * 50 + 0.5)


def interpret(statistics: Optional[NdviStatistics]) -> NdviInterpretation:
    mean = statistics.mean if statistics else None
    return NdviInterpretation(
        vegetation_health=vegetation_health(mean),
        coverage_percentage=coverage_percentage(mean),
    )
