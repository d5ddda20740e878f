"""
Unit tests for the NDVI search parameter bounds.
"""
import pytest

from app.config import settings
from app.services.application.ndvi_service import clamp_search


class TestClampSearch:
    """Tests for clamp_search."""

    def test_defaults(self):
        assert clamp_search(None, None) == (settings.ndvi_default_days, settings.ndvi_default_cloud)

    @pytest.mark.parametrize("days", [0, -3])
    def test_non_positive_days_use_default(self, days):
        assert clamp_search(days, 50) == (settings.ndvi_default_days, 50)

    def test_zero_cloud_is_kept(self):
        assert clamp_search(5, 0) == (5, 0)

    def test_upper_bounds(self):
        assert clamp_search(500, 120) == (settings.ndvi_max_days, 100)

    def test_negative_cloud_is_clamped(self):
        assert clamp_search(10, -5) == (10, 0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
