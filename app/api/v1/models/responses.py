"""
API response models using Pydantic.
"""
import json
from datetime import datetime as DateTime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from app.domain.models import (
    CropRecord,
    FieldRecord,
    NdviInterpretation,
    NdviStatistics,
    NdviStatsResult,
    SceneSearchResult,
)
from app.utils.geometry import geometry_to_feature


class FieldResponse(FieldRecord):
    """Field as returned to the map client."""
    crop: str = Field(default="", description="Alias of current_crop for older clients")

    @classmethod
    def from_record(cls, record: FieldRecord) -> "FieldResponse":
        data = record.model_dump()
        if not data.get("geometry_json") and data.get("geometry"):
            data["geometry_json"] = json.dumps(geometry_to_feature(data["geometry"]))
        return cls(crop=record.current_crop, **data)


class CropResponse(CropRecord):
    """Crop master entry."""


class UsedSearch(BaseModel):
    """Search stage that produced the scene."""
    stage: int
    days: int
    cloud: int

    @classmethod
    def from_result(cls, result: Optional[SceneSearchResult]) -> Optional["UsedSearch"]:
        if result is None:
            return None
        return cls(stage=result.stage, days=result.days, cloud=result.cloud)


class NdviLatestResponse(BaseModel):
    """Response model for the NDVI overlay endpoint."""
    field_id: str
    datetime: Optional[str] = None
    cloud_cover: Optional[float] = None
    tile_template: str
    preview_url: Optional[str] = None
    stac_item_url: str
    used_search: UsedSearch

    class Config:
        json_schema_extra = {
            "example": {
                "field_id": "665f1c2e8b3e4a0012345678",
                "datetime": "2024-06-01T01:32:18.024Z",
                "cloud_cover": 12.4,
                "tile_template": "http://localhost:8000/stac/tiles/WebMercatorQuad/{z}/{x}/{y}.png?url=...",
                "preview_url": "http://localhost:8000/stac/bbox/139.699000,35.679000,139.711000,35.691000/768x768.png?url=...",
                "stac_item_url": "https://earth-search.aws.element84.com/v1/collections/sentinel-2-l2a/items/S2B_54SUE_20240601_0_L2A",
                "used_search": {"stage": 1, "days": 10, "cloud": 70},
            }
        }


class NdviStatsResponse(BaseModel):
    """Response model for the NDVI statistics endpoints."""
    field_id: Optional[str] = None
    datetime: Optional[str] = None
    cloud_cover: Optional[float] = None
    stac_item_url: str
    used_search: Optional[UsedSearch] = None
    ndvi_statistics: NdviStatistics
    interpretation: NdviInterpretation

    @classmethod
    def from_result(cls, result: NdviStatsResult, field_id: Optional[str] = None) -> "NdviStatsResponse":
        scene = result.search.scene if result.search else None
        return cls(
            field_id=field_id,
            datetime=scene.datetime if scene else None,
            cloud_cover=scene.cloud_cover if scene else None,
            stac_item_url=result.scene_url,
            used_search=UsedSearch.from_result(result.search),
            ndvi_statistics=result.statistics or NdviStatistics(),
            interpretation=result.interpretation,
        )


class TimeseriesRecordResponse(BaseModel):
    """One ingested NDVI record."""
    id: str
    field_id: str
    stac_item_id: str
    stac_item_url: Optional[str] = None
    datetime: Optional[DateTime] = None
    cloud_cover: Optional[float] = None
    search_stage: Optional[int] = None
    ndvi: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[DateTime] = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "TimeseriesRecordResponse":
        data = {k: v for k, v in doc.items() if k not in ("_id", "field_id")}
        return cls(id=str(doc["_id"]), field_id=str(doc["field_id"]), **data)


class IngestSummaryResponse(BaseModel):
    ok: bool = True
    ingested: int
    skipped: int
    failed: int
    total: int


class ConfigResponse(BaseModel):
    """Bootstrap document for the browser client."""
    googleMapsApiKey: str
    apiMode: str
    externalApiBase: str


class HealthResponse(BaseModel):
    ok: bool
    message: str
    timestamp: str


class DebugDbResponse(BaseModel):
    mongodb_database: str
    collections: List[str]


class DropCollectionResponse(BaseModel):
    ok: bool
    dropped: str
