"""
Upstream endpoint constants and configuration.

This module contains the STAC and TiTiler endpoint paths and the NDVI
band-math constants shared by the tile, preview and statistics requests.
"""


class StacEndpoints:
    """STAC API endpoint paths."""

    SEARCH = "/search"
    ITEM = "/collections/{collection}/items/{item_id}"

    @classmethod
    def get_item(cls, collection: str, item_id: str) -> str:
        """
        Get the item endpoint for a collection/item pair.

        Args:
            collection: STAC collection id
            item_id: URL-encoded item id

        Returns:
            Formatted endpoint path
        """
        return cls.ITEM.format(collection=collection, item_id=item_id)


class TitilerEndpoints:
    """TiTiler STAC endpoint paths."""

    STATISTICS = "/stac/statistics"
    TILE_TEMPLATE = "/stac/tiles/WebMercatorQuad/{z}/{x}/{y}.png"
    BBOX_PREVIEW = "/stac/bbox/{bbox}/{width}x{height}.png"

    @classmethod
    def get_bbox_preview(cls, bbox: str, size: int) -> str:
        return cls.BBOX_PREVIEW.format(bbox=bbox, width=size, height=size)


class NdviBands:
    """Band selection and expression for Sentinel-2 NDVI."""

    ASSETS = "nir,red"
    EXPRESSION = "(nir-red)/(nir+red)"
    RESCALE = "-1,1"


class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"
    ACCEPT_GEOJSON = "application/geo+json, application/json"
    CONTENT_TYPE_PNG = "image/png"
    NO_CACHE_HEADERS = {
        "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
        "Pragma": "no-cache",
    }

    # Pagination
    DEFAULT_PAGE_SIZE = 100
    DEFAULT_CROP_LIMIT = 200
    MAX_PAGE_SIZE = 1000

    # Optimistic concurrency
    CROP_HISTORY_WRITE_ATTEMPTS = 3
