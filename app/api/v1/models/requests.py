"""
API request models using Pydantic.
"""
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from app.domain.models import FieldInput


class FieldWriteRequest(FieldInput):
    """Body of POST/PUT /fields."""

    class Config:
        json_schema_extra = {
            "example": {
                "name": "North block",
                "crop": "wheat",
                "variety": "Norin 61",
                "year": 2024,
                "memo": "",
                "geometry_json": (
                    '{"type":"Feature","properties":{},"geometry":{"type":"Polygon",'
                    '"coordinates":[[[139.70,35.68],[139.71,35.68],[139.71,35.69],'
                    '[139.70,35.69],[139.70,35.68]]]}}'
                ),
            }
        }


class CropWriteRequest(BaseModel):
    """Body of POST/PUT /crops."""
    name: Optional[str] = None
    varieties: Optional[List[Any]] = None


class SimpleNdviRequest(BaseModel):
    """
    Body of the geometry-only NDVI routes.

    Accepts a bare GeoJSON Feature, ``{"feature": Feature}`` or
    ``{"geometry": Geometry}``, plus optional search and size parameters.
    """
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    geometry: Optional[Any] = None
    feature: Optional[dict[str, Any]] = None
    days: Optional[int] = Field(default=None, description="Recency window in days")
    cloud: Optional[int] = Field(default=None, description="Maximum cloud cover %")
    size: Optional[int] = Field(default=None, description="Preview edge in pixels")
    item_url: Optional[str] = Field(default=None, description="Skip the search and use this STAC item")

    def resolve_geometry(self) -> Any:
        if self.type == "Feature":
            return self.geometry
        if self.feature is not None and self.feature.get("geometry") is not None:
            return self.feature["geometry"]
        return self.geometry
