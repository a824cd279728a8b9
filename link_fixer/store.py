"""
MongoDB instance store

This module wraps the pymongo client used by the fixer: one connection for
the whole run, a bounded find over a single field, and a conditional
single-document update.
"""

from typing import Any, Dict, Iterator, Mapping, Optional

import structlog
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .config_manager import MongoConfig
from .exceptions import DocumentStoreConnectionError, wrap_pymongo_exception

logger = structlog.get_logger(__name__)


class InstanceStore:
    """
    Access to the dataset ``instances`` collection.

    A store can be built from a ``MongoConfig`` and connected, or handed an
    existing collection (used by tests and by callers that already own a
    client).
    """

    def __init__(
        self,
        config: Optional[MongoConfig] = None,
        collection: Optional[Collection] = None,
    ) -> None:
        if config is None and collection is None:
            raise ValueError("Either a MongoDB config or a collection is required")
        self.config = config
        self._client: Optional[MongoClient] = None
        self._collection: Optional[Collection] = collection

    @property
    def is_connected(self) -> bool:
        return self._collection is not None

    @property
    def collection(self) -> Collection:
        if self._collection is None:
            raise DocumentStoreConnectionError(
                "Not connected to MongoDB",
                context={"is_connected": False},
            )
        return self._collection

    def connect(self) -> None:
        """
        Establish the MongoDB connection and check the server responds.

        Raises:
            DocumentStoreConnectionError: If connection fails
        """
        if self._collection is not None:
            return
        if self.config is None:
            raise DocumentStoreConnectionError(
                "No MongoDB configuration to connect with",
                context={"is_connected": False},
            )

        logger.debug("Connecting to MongoDB", uri=self.config.get_connection_string())
        client_kwargs: Dict[str, Any] = {
            "connectTimeoutMS": self.config.connect_timeout * 1000,
            "serverSelectionTimeoutMS": self.config.connect_timeout * 1000,
            "socketTimeoutMS": self.config.query_timeout * 1000,
            "tls": self.config.is_ssl,
        }
        if self.config.username:
            client_kwargs["username"] = self.config.username
            client_kwargs["password"] = self.config.password
            client_kwargs["authSource"] = "admin"

        try:
            client: MongoClient = MongoClient(self.config.uri, **client_kwargs)
            client.admin.command("ping")
        except PyMongoError as e:
            raise DocumentStoreConnectionError(
                "Failed to connect to MongoDB",
                uri=self.config.uri,
                context={"database": self.config.database},
                cause=e,
            ) from e

        self._client = client
        self._collection = client[self.config.database][self.config.collection]
        logger.info(
            "Connected to MongoDB",
            database=self.config.database,
            collection=self.config.collection,
        )

    def disconnect(self) -> None:
        """Close the MongoDB client if this store opened it."""
        if self._client is not None:
            self._client.close()
            logger.debug("MongoDB connection closed")
            self._client = None
            self._collection = None

    def __enter__(self) -> "InstanceStore":
        self.connect()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()

    def find(
        self,
        query: Mapping[str, Any],
        projection: Optional[Mapping[str, Any]] = None,
        limit: int = 0,
    ) -> Iterator[Dict[str, Any]]:
        """Run a find capped at ``limit`` documents (0 means no cap)."""
        try:
            cursor = self.collection.find(query, projection)
            if limit:
                cursor = cursor.limit(limit)
            for document in cursor:
                yield document
        except PyMongoError as e:
            raise wrap_pymongo_exception(
                e, context={"operation": "find", "query": dict(query)}
            ) from e

    def update_field(
        self, document_id: Any, field_path: str, old_value: str, new_value: str
    ) -> bool:
        """
        Set one field on one document, provided it still holds ``old_value``.

        Returns:
            True if the document was found with the expected value
        """
        try:
            result = self.collection.update_one(
                {"_id": document_id, field_path: old_value},
                {"$set": {field_path: new_value}},
            )
        except PyMongoError as e:
            raise wrap_pymongo_exception(
                e,
                context={
                    "operation": "update_one",
                    "document_id": str(document_id),
                    "field_path": field_path,
                },
            ) from e
        return result.matched_count == 1
