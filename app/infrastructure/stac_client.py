"""
Infrastructure layer: STAC catalog search client.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from urllib.parse import quote

from app.config import settings
from app.domain.models import SceneReference
from app.infrastructure.api_constants import APIConstants, StacEndpoints
from app.infrastructure.upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


def _isoformat_utc(moment: datetime) -> str:
    """ISO-8601 with millisecond precision and a trailing Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class StacClient(UpstreamClient):
    """Searches a STAC API for the newest low-cloud scene over a geometry."""

    service_name = "STAC search"
    error_code = "stac_search_failed"

    def __init__(
        self,
        base_url: str = settings.stac_api_url,
        collection: str = settings.stac_collection,
        timeout: float = settings.http_timeout,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            headers={
                "Content-Type": APIConstants.CONTENT_TYPE_JSON,
                "Accept": APIConstants.ACCEPT_GEOJSON,
            },
        )
        self.collection = collection

    def build_search_body(
        self,
        geometry: dict[str, Any],
        days: int,
        cloud: int,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Build a search for the single newest scene in ``[now - days, now]``
        intersecting ``geometry`` with cloud cover at most ``cloud`` percent.
        """
        end = now or datetime.now(timezone.utc)
        start = end - timedelta(days=days)
        return {
            "collections": [self.collection],
            "datetime": f"{_isoformat_utc(start)}/{_isoformat_utc(end)}",
            "intersects": geometry,
            "query": {"eo:cloud_cover": {"lte": cloud}},
            "limit": 1,
            "sortby": [{"field": "properties.datetime", "direction": "desc"}],
        }

    def item_url(self, item: dict[str, Any]) -> str:
        """Self link of an item, or the collection item URL built from its id."""
        for link in item.get("links") or []:
            if link.get("rel") == "self" and link.get("href"):
                return link["href"]
        path = StacEndpoints.get_item(self.collection, quote(str(item.get("id", "")), safe=""))
        return f"{self.base_url}{path}"

    def to_scene(self, item: dict[str, Any]) -> SceneReference:
        properties = item.get("properties") or {}
        cloud_cover = properties.get("eo:cloud_cover")
        return SceneReference(
            item_id=str(item.get("id", "")),
            item_url=self.item_url(item),
            datetime=properties.get("datetime"),
            cloud_cover=cloud_cover if isinstance(cloud_cover, (int, float)) else None,
        )

    async def search_latest(
        self,
        geometry: dict[str, Any],
        days: int,
        cloud: int,
        now: Optional[datetime] = None,
    ) -> Optional[SceneReference]:
        """
        Fetch the newest scene matching one set of search constraints.

        Args:
            geometry: GeoJSON geometry the scene must intersect
            days: Recency window in days
            cloud: Maximum cloud cover percentage

        Returns:
            SceneReference, or None when the catalog has no match

        Raises:
            UpstreamError: If the catalog answers with a non-success status
        """
        body = self.build_search_body(geometry, days, cloud, now=now)
        data = await self._request_json("POST", StacEndpoints.SEARCH, json=body)
        features = data.get("features") if isinstance(data, dict) else None
        if not features:
            return None
        return self.to_scene(features[0])
