"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample field geometries
- Sample STAC items and statistics payloads
- In-memory MongoDB (mongomock-motor)
- Mock upstream clients
- FastAPI test client with dependency overrides
"""
import pytest
from typing import Any
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from app.main import app
from app.api.dependencies import (
    get_database,
    get_stac_client,
    get_tile_url_builder,
    get_titiler_client,
)
from app.infrastructure.database import MongoDatabase
from app.infrastructure.stac_client import StacClient
from app.infrastructure.titiler_client import TitilerClient
from app.services.domain.tile_urls import TileUrlBuilder


STAC_URL = "https://stac.test/v1"
TITILER_URL = "https://titiler.test"


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_ring() -> list[tuple[float, float]]:
    """A ~1 ha square near Tokyo as (lat, lng) vertices, open."""
    return [
        (35.6800, 139.7000),
        (35.6800, 139.7011),
        (35.6809, 139.7011),
        (35.6809, 139.7000),
    ]


@pytest.fixture
def sample_geometry() -> dict[str, Any]:
    """GeoJSON Polygon of the sample ring, closed."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [139.7000, 35.6800],
            [139.7011, 35.6800],
            [139.7011, 35.6809],
            [139.7000, 35.6809],
            [139.7000, 35.6800],
        ]],
    }


@pytest.fixture
def sample_stac_item() -> dict[str, Any]:
    """A STAC search hit with a self link."""
    return {
        "type": "Feature",
        "id": "S2B_54SUE_20240601_0_L2A",
        "properties": {
            "datetime": "2024-06-01T01:32:18.024Z",
            "eo:cloud_cover": 12.4,
        },
        "links": [
            {"rel": "collection", "href": f"{STAC_URL}/collections/sentinel-2-l2a"},
            {
                "rel": "self",
                "href": f"{STAC_URL}/collections/sentinel-2-l2a/items/S2B_54SUE_20240601_0_L2A",
            },
        ],
    }


@pytest.fixture
def sample_stats_payload() -> dict[str, Any]:
    """TiTiler statistics response in its Feature shape."""
    return {
        "type": "Feature",
        "geometry": None,
        "properties": {
            "statistics": {
                "(nir-red)/(nir+red)": {
                    "mean": 0.45,
                    "median": 0.4,
                    "min": -0.1,
                    "max": 0.9,
                    "stdev": 0.12,
                    "count": 500,
                    "histogram": [[10, 40, 200, 250], [-0.1, 0.15, 0.4, 0.65, 0.9]],
                }
            }
        },
    }


# ============================================================
# Infrastructure Fixtures
# ============================================================

@pytest.fixture
def database() -> MongoDatabase:
    """Fresh in-memory database per test."""
    return MongoDatabase(AsyncMongoMockClient(), "test_fields", verify_connection=False)


@pytest.fixture
def stac_client() -> StacClient:
    return StacClient(base_url=STAC_URL, collection="sentinel-2-l2a")


@pytest.fixture
def titiler_client() -> TitilerClient:
    return TitilerClient(base_url=TITILER_URL)


@pytest.fixture
def url_builder() -> TileUrlBuilder:
    return TileUrlBuilder(titiler_url=TITILER_URL, colormap="rdylgn", resampling="nearest", padding=0.001)


@pytest.fixture
def mock_stac_client(sample_stac_item):
    """STAC client whose search always finds the sample item."""
    real = StacClient(base_url=STAC_URL)
    mock_client = AsyncMock(spec=StacClient)
    mock_client.search_latest.return_value = real.to_scene(sample_stac_item)
    return mock_client


@pytest.fixture
def mock_titiler_client(sample_stats_payload):
    mock_client = AsyncMock(spec=TitilerClient)
    mock_client.fetch_statistics.return_value = sample_stats_payload
    mock_client.render_preview.return_value = b"\x89PNG\r\n\x1a\nfake"
    return mock_client


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(database, mock_stac_client, mock_titiler_client, url_builder):
    """Test client wired to the in-memory database and mocked upstreams."""
    app.dependency_overrides[get_database] = lambda: database
    app.dependency_overrides[get_stac_client] = lambda: mock_stac_client
    app.dependency_overrides[get_titiler_client] = lambda: mock_titiler_client
    app.dependency_overrides[get_tile_url_builder] = lambda: url_builder
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
