"""
Application service: NDVI overlays, previews and statistics.

Orchestration only: field lookup, scene location, URL construction and the
statistics call are delegated to the repositories and domain services.
"""
import logging
from typing import Any, Optional, Tuple

from app.config import settings
from app.domain.errors import InvalidRequestError, NotFoundError
from app.domain.models import (
    NdviOverlay,
    NdviStatistics,
    NdviStatsResult,
    SceneSearchResult,
)
from app.infrastructure.repositories import FieldRepository
from app.infrastructure.titiler_client import TitilerClient
from app.services.domain.scene_locator import FINAL_STAGE, SceneLocator
from app.services.domain.stats_normalizer import interpret, normalize_statistics
from app.services.domain.tile_urls import TileUrlBuilder, clamp
from app.utils.geometry import is_geojson_geometry
from app.utils.validation import parse_object_id

logger = logging.getLogger(__name__)


def clamp_search(days: Optional[int], cloud: Optional[int]) -> Tuple[int, int]:
    """
    Apply defaults and bounds to requested recency/cloud parameters.

    A non-positive ``days`` counts as missing; ``cloud=0`` is a valid bound.
    """
    if days is not None and days <= 0:
        days = None
    return (
        clamp(days, settings.ndvi_default_days, 1, settings.ndvi_max_days),
        clamp(cloud, settings.ndvi_default_cloud, 0, 100),
    )


class NdviService:
    """Resolves scenes for fields or ad-hoc geometries and derives NDVI products."""

    def __init__(
        self,
        fields: Optional[FieldRepository],
        locator: SceneLocator,
        titiler: TitilerClient,
        urls: TileUrlBuilder,
    ):
        self.fields = fields
        self.locator = locator
        self.titiler = titiler
        self.urls = urls

    async def load_field_geometry(self, field_id: str) -> dict[str, Any]:
        """
        Raises:
            InvalidRequestError: ``invalid_field_id``
            NotFoundError: ``field_not_found`` when missing or without geometry
        """
        oid = parse_object_id(field_id, code="invalid_field_id")
        doc = await self.fields.get(oid)
        if doc is None or not doc.get("geometry"):
            raise NotFoundError(f"Field {field_id} not found", code="field_not_found")
        return doc["geometry"]

    async def locate(
        self,
        geometry: dict[str, Any],
        days: Optional[int] = None,
        cloud: Optional[int] = None,
    ) -> SceneSearchResult:
        """
        Raises:
            NotFoundError: ``no_scene_found`` once every stage is exhausted
        """
        days, cloud = clamp_search(days, cloud)
        result = await self.locator.find_latest_scene(geometry, days, cloud)
        if result is None:
            raise NotFoundError(
                f"No scene found within {FINAL_STAGE.days} days "
                f"at cloud cover <= {FINAL_STAGE.cloud}%",
                code="no_scene_found",
            )
        return result

    async def compute_stats(self, scene_url: str, geometry: dict[str, Any]) -> Optional[NdviStatistics]:
        """
        Zonal NDVI statistics of ``geometry`` in one scene.

        Returns:
            Normalized statistics, or None when upstream answered without a
            recognizable statistics object

        Raises:
            UpstreamError: If both the POST and GET statistics calls fail
        """
        payload = await self.titiler.fetch_statistics(scene_url, geometry)
        statistics = normalize_statistics(payload)
        if statistics is None:
            logger.warning(f"No usable statistics in response for {scene_url}")
        return statistics

    async def field_overlay(
        self,
        field_id: str,
        days: Optional[int] = None,
        cloud: Optional[int] = None,
    ) -> NdviOverlay:
        geometry = await self.load_field_geometry(field_id)
        search = await self.locate(geometry, days, cloud)
        scene_url = search.scene.item_url
        return NdviOverlay(
            search=search,
            tile_template=self.urls.tile_template(scene_url),
            preview_url=self.urls.preview_url(scene_url, geometry),
        )

    async def stats_for_geometry(
        self,
        geometry: dict[str, Any],
        days: Optional[int] = None,
        cloud: Optional[int] = None,
        item_url: Optional[str] = None,
    ) -> NdviStatsResult:
        search: Optional[SceneSearchResult] = None
        if item_url:
            scene_url = item_url
        else:
            search = await self.locate(geometry, days, cloud)
            scene_url = search.scene.item_url

        statistics = await self.compute_stats(scene_url, geometry)
        return NdviStatsResult(
            scene_url=scene_url,
            search=search,
            statistics=statistics,
            interpretation=interpret(statistics),
        )

    async def field_stats(
        self,
        field_id: str,
        days: Optional[int] = None,
        cloud: Optional[int] = None,
    ) -> NdviStatsResult:
        geometry = await self.load_field_geometry(field_id)
        return await self.stats_for_geometry(geometry, days, cloud)

    async def preview_for_geometry(
        self,
        geometry: dict[str, Any],
        days: Optional[int] = None,
        cloud: Optional[int] = None,
        size: Optional[int] = None,
        item_url: Optional[str] = None,
    ) -> bytes:
        """
        Render the NDVI preview PNG of a geometry.

        Raises:
            InvalidRequestError: If the geometry has no bounds
            NotFoundError: If no scene is found
            UpstreamError: If rendering fails
        """
        if not is_geojson_geometry(geometry):
            raise InvalidRequestError("A GeoJSON geometry is required", code="invalid_geometry")

        scene_url = item_url or (await self.locate(geometry, days, cloud)).scene.item_url
        preview_url = self.urls.preview_url(scene_url, geometry, size)
        if preview_url is None:
            raise InvalidRequestError("Geometry has no coordinates", code="invalid_geometry")
        return await self.titiler.render_preview(preview_url)

    async def field_preview(
        self,
        field_id: str,
        days: Optional[int] = None,
        cloud: Optional[int] = None,
        size: Optional[int] = None,
        item_url: Optional[str] = None,
    ) -> bytes:
        geometry = await self.load_field_geometry(field_id)
        return await self.preview_for_geometry(geometry, days, cloud, size, item_url)
