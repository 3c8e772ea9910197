"""
Variant configuration repository for data access layer following Repository pattern
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from variant_engine.models.variant import VariantConfiguration
from variant_engine.repositories.base_repository import BaseRepository
from variant_engine.utils.identifiers import parse_object_id


class VariantRepository(BaseRepository):
    """Repository for ``variants`` documents"""

    async def find_existing_hashes(
        self,
        product_id: ObjectId,
        config_hashes: Iterable[str],
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Set[str]:
        """Config hashes already stored for the product, soft-deleted variants included."""
        hashes = list(config_hashes)
        if not hashes:
            return set()
        docs = await self.find_many(
            {"product_id": product_id, "config_hash": {"$in": hashes}},
            projection={"config_hash": 1},
            session=session,
            correlation_id=correlation_id,
        )
        return {doc["config_hash"] for doc in docs}

    async def insert_many(
        self,
        documents: List[Dict[str, Any]],
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Insert documents in order; returns them with their ``_id`` set."""
        if not documents:
            return []
        try:
            result = await self.collection.insert_many(documents, ordered=True, session=session)
        except PyMongoError as e:
            raise self._failure("insert_many", e, correlation_id)

        for doc, inserted_id in zip(documents, result.inserted_ids):
            doc["_id"] = inserted_id
        return documents

    async def find_skus_with_prefix(
        self,
        prefix: str,
        correlation_id: Optional[str] = None
    ) -> Set[str]:
        """Persisted SKUs starting with ``prefix`` (anchored, index-friendly regex)."""
        docs = await self.find_many(
            {"sku": {"$regex": f"^{re.escape(prefix)}"}},
            projection={"sku": 1},
            correlation_id=correlation_id,
        )
        return {doc["sku"] for doc in docs}

    async def list_by_product(
        self,
        product_id: str,
        include_deleted: bool = False,
        correlation_id: Optional[str] = None
    ) -> List[VariantConfiguration]:
        query: Dict[str, Any] = {"product_id": parse_object_id(product_id, "product_id")}
        if not include_deleted:
            query["is_deleted"] = False
        docs = await self.find_many(query, sort=[("sku", 1)], correlation_id=correlation_id)
        return [VariantConfiguration.from_document(doc) for doc in docs]

    async def get_by_id(
        self,
        variant_id: str,
        correlation_id: Optional[str] = None
    ) -> Optional[VariantConfiguration]:
        doc = await self.find_one(
            {"_id": parse_object_id(variant_id, "variant_id")},
            correlation_id=correlation_id,
        )
        return VariantConfiguration.from_document(doc) if doc else None

    async def update(
        self,
        variant_id: str,
        fields: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> Optional[VariantConfiguration]:
        """Apply an admin edit to a live (not soft-deleted) variant."""
        fields = dict(fields, updated_at=datetime.now(timezone.utc))
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": parse_object_id(variant_id, "variant_id"), "is_deleted": False},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise self._failure("update", e, correlation_id)
        return VariantConfiguration.from_document(doc) if doc else None

    async def soft_delete(
        self,
        variant_id: str,
        deleted_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> bool:
        """Mark a variant deleted; the document stays for historical orders."""
        try:
            result = await self.collection.update_one(
                {"_id": parse_object_id(variant_id, "variant_id"), "is_deleted": False},
                {"$set": {
                    "is_deleted": True,
                    "updated_by": deleted_by,
                    "updated_at": datetime.now(timezone.utc),
                }},
            )
        except PyMongoError as e:
            raise self._failure("soft_delete", e, correlation_id)
        return result.modified_count > 0
