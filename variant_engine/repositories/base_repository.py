"""
Base repository pattern for MongoDB data access.

Provides the shared lookups and PyMongo error translation for the domain
repositories. All repositories take an injected collection so they can be
exercised against a mock in unit tests.
"""

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCollection
from pymongo.errors import BulkWriteError, ConnectionFailure, DuplicateKeyError, PyMongoError

from variant_engine.core.errors import PersistenceFailure
from variant_engine.core.logger import logger

DUPLICATE_KEY_CODE = 11000


def is_duplicate_key(error: PyMongoError) -> bool:
    """Unique index violation, including one reported inside a bulk write."""
    if isinstance(error, DuplicateKeyError) or getattr(error, "code", None) == DUPLICATE_KEY_CODE:
        return True
    if isinstance(error, BulkWriteError):
        write_errors = error.details.get("writeErrors", [])
        return bool(write_errors) and all(e.get("code") == DUPLICATE_KEY_CODE for e in write_errors)
    return False


class BaseRepository:
    """
    Base repository providing generic read operations for MongoDB collections.

    Usage:
        class VariantRepository(BaseRepository):
            def __init__(self, collection: AsyncIOMotorCollection):
                super().__init__(collection)
    """

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection
        self.collection_name = collection.name

    def _failure(self, operation: str, error: PyMongoError,
                 correlation_id: Optional[str] = None) -> PersistenceFailure:
        """Log a driver error and wrap it in PersistenceFailure."""
        logger.error(
            f"MongoDB error during {operation} on {self.collection_name}",
            correlation_id=correlation_id,
            error=error,
            metadata={"collection": self.collection_name, "operation": operation}
        )
        if is_duplicate_key(error):
            status_code = 409
        elif isinstance(error, ConnectionFailure):
            status_code = 503
        else:
            status_code = 500
        return PersistenceFailure(
            f"Database error during {operation}",
            status_code=status_code,
            details={"collection": self.collection_name},
        )

    async def find_one(
        self,
        query: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Find a single document matching query."""
        try:
            return await self.collection.find_one(query, projection, session=session)
        except PyMongoError as e:
            raise self._failure("find_one", e, correlation_id)

    async def find_many(
        self,
        query: Dict[str, Any],
        sort: Optional[List] = None,
        limit: Optional[int] = None,
        projection: Optional[Dict[str, Any]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Find all documents matching query."""
        try:
            cursor = self.collection.find(query, projection, session=session)
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise self._failure("find_many", e, correlation_id)
