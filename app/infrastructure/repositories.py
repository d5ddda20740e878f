"""
Document-store repositories for fields, the crop master and NDVI records.

Repositories speak in raw documents; validation and shaping happen in the
application services.
"""
import re
from datetime import datetime, timezone
from typing import Any, Optional

from bson import ObjectId

from app.infrastructure.database import CROPS, FIELDS, NDVI_TIMESERIES, MongoDatabase

NOT_DELETED = {"deleted": {"$ne": True}}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FieldRepository:
    """Persistence of field records."""

    def __init__(self, database: MongoDatabase):
        self.collection = database.collection(FIELDS)

    async def list_active(self, skip: int = 0, limit: int = 0) -> list[dict[str, Any]]:
        cursor = self.collection.find(dict(NOT_DELETED)).sort("created_at", -1)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def get(self, field_id: ObjectId, include_deleted: bool = False) -> Optional[dict[str, Any]]:
        query: dict[str, Any] = {"_id": field_id}
        if not include_deleted:
            query.update(NOT_DELETED)
        return await self.collection.find_one(query)

    async def insert(self, document: dict[str, Any]) -> ObjectId:
        result = await self.collection.insert_one(document)
        return result.inserted_id

    async def update(
        self,
        field_id: ObjectId,
        changes: dict[str, Any],
        match: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Apply ``changes``; with ``match``, only if the document still has those values."""
        result = await self.collection.update_one({"_id": field_id, **(match or {})}, {"$set": changes})
        return result.matched_count > 0

    async def soft_delete(self, field_id: ObjectId) -> bool:
        return await self.update(field_id, {"deleted": True, "deleted_at": utcnow()})

    async def hard_delete(self, field_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": field_id})
        return result.deleted_count > 0


class CropRepository:
    """Persistence of the crop master list."""

    def __init__(self, database: MongoDatabase):
        self.collection = database.collection(CROPS)

    async def search(self, q: str = "", limit: int = 200) -> list[dict[str, Any]]:
        """Non-deleted crops whose name contains ``q`` (case-insensitive)."""
        query: dict[str, Any] = dict(NOT_DELETED)
        if q:
            query["name"] = {"$regex": re.escape(q), "$options": "i"}
        cursor = self.collection.find(query).sort("name", 1).limit(limit)
        return await cursor.to_list(length=None)

    async def find_active_by_name(self, name: str) -> Optional[dict[str, Any]]:
        return await self.collection.find_one({"name": name, **NOT_DELETED})

    async def get(self, crop_id: ObjectId) -> Optional[dict[str, Any]]:
        return await self.collection.find_one({"_id": crop_id})

    async def insert(self, document: dict[str, Any]) -> ObjectId:
        result = await self.collection.insert_one(document)
        return result.inserted_id

    async def update(self, crop_id: ObjectId, changes: dict[str, Any]) -> bool:
        result = await self.collection.update_one({"_id": crop_id}, {"$set": changes})
        return result.matched_count > 0

    async def soft_delete(self, crop_id: ObjectId) -> bool:
        return await self.update(crop_id, {"deleted": True, "deleted_at": utcnow()})

    async def hard_delete(self, crop_id: ObjectId) -> bool:
        result = await self.collection.delete_one({"_id": crop_id})
        return result.deleted_count > 0

    async def upsert_master(self, name: str, variety: str = "") -> None:
        """
        Make sure ``name`` exists among non-deleted crops and knows ``variety``.

        Name matching is exact and case-sensitive. Repeating the call is a
        no-op apart from ``updated_at``.
        """
        now = utcnow()
        update: dict[str, Any] = {
            "$setOnInsert": {"name": name, "created_at": now, "deleted": False},
            "$set": {"updated_at": now},
        }
        # varieties may only appear under one operator
        if variety:
            update["$addToSet"] = {"varieties": variety}
        else:
            update["$setOnInsert"]["varieties"] = []
        await self.collection.update_one({"name": name, **NOT_DELETED}, update, upsert=True)


class NdviTimeseriesRepository:
    """Ingested NDVI statistics, at most one record per (field, STAC item)."""

    def __init__(self, database: MongoDatabase):
        self.collection = database.collection(NDVI_TIMESERIES)

    async def exists(self, field_id: ObjectId, stac_item_id: str) -> bool:
        found = await self.collection.find_one(
            {"field_id": field_id, "stac_item_id": stac_item_id}
        )
        return found is not None

    async def insert(self, document: dict[str, Any]) -> ObjectId:
        result = await self.collection.insert_one(document)
        return result.inserted_id

    async def list_for_field(self, field_id: ObjectId, limit: int = 0) -> list[dict[str, Any]]:
        cursor = self.collection.find({"field_id": field_id}).sort("datetime", -1)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def latest_per_field(self) -> list[dict[str, Any]]:
        """Newest record of every field, newest first."""
        cursor = self.collection.find({}).sort("datetime", -1)
        latest: dict[Any, dict[str, Any]] = {}
        for doc in await cursor.to_list(length=None):
            latest.setdefault(doc["field_id"], doc)
        return list(latest.values())
