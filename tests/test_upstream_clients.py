"""
Unit tests for the STAC and TiTiler clients.

Uses respx to mock HTTP responses.
"""
import json
import pytest
import respx
import httpx
from datetime import datetime, timezone

from app.domain.errors import UpstreamError
from app.infrastructure.stac_client import StacClient
from app.infrastructure.titiler_client import TitilerClient

STAC_URL = "https://stac.test/v1"
TITILER_URL = "https://titiler.test"
SCENE_URL = f"{STAC_URL}/collections/sentinel-2-l2a/items/S2B_54SUE_20240601_0_L2A"


# ============================================================
# STAC Client Tests
# ============================================================

class TestStacSearchBody:
    """Tests for StacClient.build_search_body."""

    def test_body(self, stac_client, sample_geometry):
        now = datetime(2024, 6, 11, 12, 0, 0, tzinfo=timezone.utc)

        body = stac_client.build_search_body(sample_geometry, 10, 70, now=now)

        assert body == {
            "collections": ["sentinel-2-l2a"],
            "datetime": "2024-06-01T12:00:00.000Z/2024-06-11T12:00:00.000Z",
            "intersects": sample_geometry,
            "query": {"eo:cloud_cover": {"lte": 70}},
            "limit": 1,
            "sortby": [{"field": "properties.datetime", "direction": "desc"}],
        }


class TestStacItemUrl:
    """Tests for StacClient.item_url."""

    def test_self_link(self, stac_client, sample_stac_item):
        assert stac_client.item_url(sample_stac_item) == SCENE_URL

    def test_built_from_id_without_self_link(self, stac_client):
        item = {"id": "S2A/odd id", "links": [{"rel": "parent", "href": "x"}]}

        assert stac_client.item_url(item) == (
            f"{STAC_URL}/collections/sentinel-2-l2a/items/S2A%2Fodd%20id"
        )


class TestStacSearchLatest:
    """Tests for StacClient.search_latest."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_newest_scene(self, stac_client, sample_geometry, sample_stac_item):
        route = respx.post(f"{STAC_URL}/search").mock(
            return_value=httpx.Response(200, json={"type": "FeatureCollection", "features": [sample_stac_item]})
        )

        scene = await stac_client.search_latest(sample_geometry, 10, 70)

        assert scene.item_id == "S2B_54SUE_20240601_0_L2A"
        assert scene.item_url == SCENE_URL
        assert scene.datetime == "2024-06-01T01:32:18.024Z"
        assert scene.cloud_cover == 12.4

        sent = json.loads(route.calls.last.request.content)
        assert sent["limit"] == 1
        assert sent["query"] == {"eo:cloud_cover": {"lte": 70}}
        assert sent["intersects"] == sample_geometry

    @pytest.mark.asyncio
    @respx.mock
    async def test_no_features(self, stac_client, sample_geometry):
        respx.post(f"{STAC_URL}/search").mock(
            return_value=httpx.Response(200, json={"type": "FeatureCollection", "features": []})
        )

        assert await stac_client.search_latest(sample_geometry, 10, 70) is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_success_status(self, stac_client, sample_geometry):
        route = respx.post(f"{STAC_URL}/search").mock(
            return_value=httpx.Response(503, text="catalog down")
        )

        with pytest.raises(UpstreamError) as exc_info:
            await stac_client.search_latest(sample_geometry, 10, 70)

        assert exc_info.value.code == "stac_search_failed"
        assert exc_info.value.upstream_status == 503
        assert exc_info.value.detail == "catalog down"
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_error(self, stac_client, sample_geometry):
        respx.post(f"{STAC_URL}/search").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(UpstreamError) as exc_info:
            await stac_client.search_latest(sample_geometry, 10, 70)

        assert exc_info.value.code == "stac_search_failed"

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_json_body(self, stac_client, sample_geometry):
        respx.post(f"{STAC_URL}/search").mock(return_value=httpx.Response(200, text="<html>"))

        with pytest.raises(UpstreamError):
            await stac_client.search_latest(sample_geometry, 10, 70)


# ============================================================
# TiTiler Client Tests
# ============================================================

class TestTitilerStatistics:
    """Tests for TitilerClient.fetch_statistics."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_post_success(self, titiler_client, sample_geometry, sample_stats_payload):
        post = respx.post(f"{TITILER_URL}/stac/statistics").mock(
            return_value=httpx.Response(200, json=sample_stats_payload)
        )
        get = respx.get(f"{TITILER_URL}/stac/statistics")

        payload = await titiler_client.fetch_statistics(SCENE_URL, sample_geometry)

        assert payload == sample_stats_payload
        request = post.calls.last.request
        assert request.url.params["url"] == SCENE_URL
        assert request.url.params["expression"] == "(nir-red)/(nir+red)"
        assert request.url.params["asset_as_band"] == "true"
        assert json.loads(request.content)["geometry"] == sample_geometry
        assert get.call_count == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_falls_back_to_get(self, titiler_client, sample_geometry, sample_stats_payload):
        respx.post(f"{TITILER_URL}/stac/statistics").mock(return_value=httpx.Response(405))
        get = respx.get(f"{TITILER_URL}/stac/statistics").mock(
            return_value=httpx.Response(200, json=sample_stats_payload)
        )

        payload = await titiler_client.fetch_statistics(SCENE_URL, sample_geometry)

        assert payload == sample_stats_payload
        feature = json.loads(get.calls.last.request.url.params["geojson"])
        assert feature["type"] == "Feature"
        assert feature["geometry"] == sample_geometry

    @pytest.mark.asyncio
    @respx.mock
    async def test_both_conventions_fail(self, titiler_client, sample_geometry):
        respx.post(f"{TITILER_URL}/stac/statistics").mock(return_value=httpx.Response(405))
        respx.get(f"{TITILER_URL}/stac/statistics").mock(
            return_value=httpx.Response(500, text="rasterio error")
        )

        with pytest.raises(UpstreamError) as exc_info:
            await titiler_client.fetch_statistics(SCENE_URL, sample_geometry)

        assert exc_info.value.code == "stats_failed"
        assert exc_info.value.upstream_status == 500
        assert exc_info.value.detail == "rasterio error"


class TestTitilerPreview:
    """Tests for TitilerClient.render_preview."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_returns_png_bytes(self, titiler_client):
        preview_url = f"{TITILER_URL}/stac/bbox/1.000000,2.000000,3.000000,4.000000/768x768.png"
        respx.get(preview_url).mock(
            return_value=httpx.Response(200, content=b"\x89PNG", headers={"Content-Type": "image/png"})
        )

        assert await titiler_client.render_preview(preview_url) == b"\x89PNG"

    @pytest.mark.asyncio
    @respx.mock
    async def test_failure_carries_preview_url(self, titiler_client):
        preview_url = f"{TITILER_URL}/stac/bbox/1.000000,2.000000,3.000000,4.000000/768x768.png"
        respx.get(preview_url).mock(return_value=httpx.Response(404, text="item not found"))

        with pytest.raises(UpstreamError) as exc_info:
            await titiler_client.render_preview(preview_url)

        error = exc_info.value
        assert error.code == "titiler_failed"
        assert error.to_dict()["previewUrl"] == preview_url
        assert error.to_dict()["detail"] == "item not found"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
