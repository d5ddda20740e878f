"""
MongoDB connection handle.

One instance is created at startup and shared by every request; it is never a
module-level global.
"""
import asyncio
import logging
from typing import Any, Optional

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import Settings

logger = logging.getLogger(__name__)

FIELDS = "fields"
CROPS = "crops"
NDVI_TIMESERIES = "s2_ndvi_timeseries"


class MongoDatabase:
    """
    Lazily verified connection to one MongoDB database.

    ``ensure_connected`` may be awaited from any number of concurrent
    requests; the server is pinged once and later calls return immediately.
    """

    def __init__(self, client: Any, name: str, verify_connection: bool = True):
        self.client = client
        self.name = name
        self.db = client[name]
        self._verify = verify_connection
        self._connected = not verify_connection
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_settings(cls, config: Settings) -> "MongoDatabase":
        client = AsyncIOMotorClient(
            config.mongodb_uri,
            serverSelectionTimeoutMS=config.mongodb_server_selection_timeout_ms,
        )
        return cls(client, config.mongodb_database)

    @property
    def connected(self) -> bool:
        return self._connected

    async def ensure_connected(self) -> None:
        if self._connected:
            return
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            if self._connected:
                return
            await self.client.admin.command("ping")
            self._connected = True
            logger.info(f"Connected to MongoDB database '{self.name}'")

    def collection(self, name: str):
        return self.db[name]

    async def ensure_indexes(self) -> None:
        await self.collection(NDVI_TIMESERIES).create_index(
            [("field_id", 1), ("stac_item_id", 1)],
            unique=True,
        )

    async def collection_names(self) -> list[str]:
        return await self.db.list_collection_names()

    async def drop_collection(self, name: str) -> None:
        await self.db.drop_collection(name)

    def close(self) -> None:
        self.client.close()
