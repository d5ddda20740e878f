"""
Domain models for fields, crops, satellite scenes and NDVI statistics.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
"""
from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class CropHistoryEntry(BaseModel):
    """One season of a field's crop history (at most one per year)."""
    year: int
    crop: str
    variety: str = ""
    planting_date: Optional[str] = None
    harvest_date: Optional[str] = None


class FieldRecord(BaseModel):
    """A stored field as read from the document store."""
    id: str
    name: str = ""
    memo: str = ""
    area_ha: float = 0.0
    geometry: Optional[dict[str, Any]] = None
    geometry_json: Optional[str] = None
    crop_history: List[CropHistoryEntry] = Field(default_factory=list)
    current_crop: str = ""
    current_year: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "FieldRecord":
        data = {k: v for k, v in doc.items() if k != "_id"}
        return cls(id=str(doc["_id"]), **data)


class CropRecord(BaseModel):
    """Crop master entry."""
    id: str
    name: str
    varieties: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted: bool = False
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "CropRecord":
        data = {k: v for k, v in doc.items() if k != "_id"}
        return cls(id=str(doc["_id"]), **data)


class SceneReference(BaseModel):
    """A catalog item resolved for a request. Never persisted on its own."""
    item_id: str
    item_url: str = Field(description="Canonical self URL of the STAC item")
    datetime: Optional[str] = None
    cloud_cover: Optional[float] = None


class SearchStage(BaseModel):
    """One (recency, cloud ceiling) pair of the scene search policy."""
    days: int
    cloud: int


class SceneSearchResult(BaseModel):
    """A located scene plus the policy stage that produced it."""
    scene: SceneReference
    stage: int = Field(description="1-based index of the stage that matched")
    days: int
    cloud: int


class NdviStatistics(BaseModel):
    """Zonal NDVI statistics. A missing value means upstream did not report it."""
    mean: Optional[float] = None
    median: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    std: Optional[float] = None
    count: Optional[float] = None
    histogram: Optional[Any] = None


class NdviInterpretation(BaseModel):
    """
    Presentation heuristics derived from the NDVI mean.

    Not a scientific derivation: the health label uses fixed cut-offs and the
    coverage percentage is a linear stretch of [-1, 1] onto [0, 100].
    """
    vegetation_health: Optional[str] = None
    coverage_percentage: Optional[int] = None


class FieldInput(BaseModel):
    """
    Field create/update payload.

    The geometry may come as ``geometry_json`` (a serialized GeoJSON Feature,
    as sent by the map client) or as a ``geometry`` object. On update, only
    supplied keys change.
    """
    name: Optional[str] = None
    memo: Optional[str] = None
    crop: Optional[str] = None
    variety: Optional[str] = None
    year: Optional[int] = None
    area_ha: Optional[float] = Field(default=None, ge=0)
    geometry_json: Optional[str] = None
    geometry: Optional[dict[str, Any]] = None


class NdviOverlay(BaseModel):
    """Tile and preview URLs for the newest scene over a field."""
    search: SceneSearchResult
    tile_template: str
    preview_url: Optional[str] = None


class NdviStatsResult(BaseModel):
    """Statistics for one scene; ``search`` is None when the scene was given."""
    scene_url: str
    search: Optional[SceneSearchResult] = None
    statistics: Optional[NdviStatistics] = None
    interpretation: NdviInterpretation


class IngestOutcome(BaseModel):
    status: str = Field(description="ingested, skipped or failed")
    reason: Optional[str] = None
    stac_item_id: Optional[str] = None


class IngestSummary(BaseModel):
    ingested: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
