"""
Infrastructure layer: TiTiler client for zonal statistics and preview images.
"""
import json
import logging
from typing import Any

from app.config import settings
from app.domain.errors import UpstreamError
from app.infrastructure.api_constants import APIConstants, NdviBands, TitilerEndpoints
from app.infrastructure.upstream_client import UpstreamClient
from app.utils.geometry import geometry_to_feature

logger = logging.getLogger(__name__)


class TitilerClient(UpstreamClient):
    """Client for a TiTiler deployment serving STAC items."""

    service_name = "TiTiler"
    error_code = "titiler_failed"

    def __init__(
        self,
        base_url: str = settings.titiler_url,
        timeout: float = settings.http_timeout,
    ):
        super().__init__(base_url, timeout=timeout)

    @staticmethod
    def statistics_params(scene_url: str) -> dict[str, str]:
        return {
            "url": scene_url,
            "assets": NdviBands.ASSETS,
            "asset_as_band": "true",
            "expression": NdviBands.EXPRESSION,
            "categorical": "false",
            "histogram": "true",
        }

    async def fetch_statistics(self, scene_url: str, geometry: dict[str, Any]) -> Any:
        """
        Request NDVI zonal statistics for a scene clipped to ``geometry``.

        The geometry goes in a POST body first; services that reject the body
        are asked again with a GET carrying the Feature in ``geojson=``.

        Returns:
            The decoded JSON payload, shape not yet normalized

        Raises:
            UpstreamError: If both calling conventions fail
        """
        params = self.statistics_params(scene_url)
        feature = geometry_to_feature(geometry)
        try:
            return await self._request_json(
                "POST",
                TitilerEndpoints.STATISTICS,
                params=params,
                json=feature,
                headers={"Content-Type": APIConstants.CONTENT_TYPE_JSON},
            )
        except UpstreamError as e:
            logger.info(f"Statistics POST rejected ({e.upstream_status}), retrying as GET")

        try:
            return await self._request_json(
                "GET",
                TitilerEndpoints.STATISTICS,
                params={**params, "geojson": json.dumps(feature)},
            )
        except UpstreamError as e:
            raise UpstreamError(
                "NDVI statistics request failed",
                code="stats_failed",
                detail=e.detail or e.message,
                upstream_status=e.upstream_status,
            )

    async def render_preview(self, preview_url: str) -> bytes:
        """
        Fetch a rendered PNG.

        Raises:
            UpstreamError: With the preview URL attached for diagnostics
        """
        try:
            response = await self._request("GET", preview_url)
        except UpstreamError as e:
            raise UpstreamError(
                "Preview rendering failed",
                code="titiler_failed",
                detail=e.detail or e.message,
                upstream_status=e.upstream_status,
                previewUrl=preview_url,
            )
        return response.content
