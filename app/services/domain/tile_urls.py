"""
Domain service: deterministic TiTiler URLs for NDVI overlays and previews.

No network I/O happens here. Identical inputs always produce identical URLs;
cache-busting parameters are the caller's business.
"""
from typing import Any, Optional
from urllib.parse import quote

from app.config import settings
from app.infrastructure.api_constants import NdviBands, TitilerEndpoints
from app.utils.geometry import BBox, bounding_box, pad_bbox


def _format_bbox(bbox: BBox) -> str:
    return ",".join(f"{value:.6f}" for value in bbox)


def clamp(value: Optional[int], default: int, lower: int, upper: int) -> int:
    """Replace a missing value by ``default`` and clamp into [lower, upper]."""
    if value is None:
        value = default
    return max(lower, min(int(value), upper))


class TileUrlBuilder:
    """Builds z/x/y tile templates and bbox preview URLs for a scene."""

    def __init__(
        self,
        titiler_url: str = settings.titiler_url,
        colormap: str = settings.ndvi_colormap,
        resampling: str = settings.ndvi_resampling,
        padding: float = settings.preview_bbox_padding,
        default_size: int = settings.preview_default_size,
        min_size: int = settings.preview_min_size,
        max_size: int = settings.preview_max_size,
    ):
        self.titiler_url = titiler_url.rstrip("/")
        self.colormap = colormap
        self.resampling = resampling
        self.padding = padding
        self.default_size = default_size
        self.min_size = min_size
        self.max_size = max_size

    def query_string(self, scene_url: str) -> str:
        """Band math and styling parameters shared by tiles and previews."""
        return "&".join([
            f"url={quote(scene_url, safe='')}",
            f"assets={NdviBands.ASSETS}",
            "asset_as_band=true",
            f"expression={quote(NdviBands.EXPRESSION, safe='')}",
            f"rescale={NdviBands.RESCALE}",
            f"colormap_name={self.colormap}",
            f"resampling={self.resampling}",
        ])

    def clamp_size(self, size: Optional[int]) -> int:
        return clamp(size, self.default_size, self.min_size, self.max_size)

    def tile_template(self, scene_url: str) -> str:
        """XYZ tile template with literal ``{z}/{x}/{y}`` placeholders."""
        return f"{self.titiler_url}{TitilerEndpoints.TILE_TEMPLATE}?{self.query_string(scene_url)}"

    def preview_bbox(self, geometry: dict[str, Any]) -> Optional[BBox]:
        bbox = bounding_box(geometry)
        if bbox is None:
            return None
        return pad_bbox(bbox, self.padding)

    def preview_url(
        self,
        scene_url: str,
        geometry: dict[str, Any],
        size: Optional[int] = None,
    ) -> Optional[str]:
        """
        Square PNG preview of the padded field bounds.

        Returns:
            The URL, or None when the geometry has no usable bounds
        """
        bbox = self.preview_bbox(geometry)
        if bbox is None:
            return None
        path = TitilerEndpoints.get_bbox_preview(_format_bbox(bbox), self.clamp_size(size))
        return f"{self.titiler_url}{path}?{self.query_string(scene_url)}"
