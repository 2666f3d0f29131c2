"""MongoDB connection handling for the content catalog."""

import logging

from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from app.core.config import Settings

logger = logging.getLogger(__name__)


class CatalogStore:
    """Owns the pooled MongoDB client shared by every request.

    The client is opened once at startup with :meth:`connect` and closed at
    shutdown with :meth:`close`. The driver pools connections internally, so
    a single instance is safe to use from concurrent requests.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: AsyncMongoClient | None = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Open the client and verify the server is reachable.

        Raises the driver error when the server cannot be reached so that
        application startup fails.
        """
        client = AsyncMongoClient(self._settings.mongo_uri)
        try:
            await client.admin.command("ping")
        except PyMongoError:
            await client.close()
            raise
        self._client = client
        logger.info(f"Connected to MongoDB database '{self._settings.mongo_db}'")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")

    async def ping(self) -> bool:
        """Return True if the server answers a ping."""
        if not self.is_open:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            logger.warning(f"MongoDB ping failed: {exc}")
            return False
        return True

    def _collection(self, name: str) -> AsyncCollection:
        if not self.is_open:
            raise RuntimeError("CatalogStore is not connected")
        return self._client[self._settings.mongo_db][name]

    @property
    def catalog(self) -> AsyncCollection:
        """The merged movie and show catalog."""
        return self._collection(self._settings.catalog_collection)

    @property
    def recent(self) -> AsyncCollection:
        """The recently ingested items feed."""
        return self._collection(self._settings.recent_collection)
