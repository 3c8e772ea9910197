"""
Generation audit repository
"""

from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo.errors import PyMongoError

from variant_engine.models.variant import GenerationAudit
from variant_engine.repositories.base_repository import BaseRepository
from variant_engine.utils.identifiers import parse_object_id


class GenerationAuditRepository(BaseRepository):
    """Repository for ``generation_audits`` documents"""

    async def insert(
        self,
        document: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> GenerationAudit:
        try:
            result = await self.collection.insert_one(document, session=session)
        except PyMongoError as e:
            raise self._failure("insert audit", e, correlation_id)
        document["_id"] = result.inserted_id
        return GenerationAudit.from_document(document)

    async def list_by_product(
        self,
        product_id: str,
        limit: int = 50,
        correlation_id: Optional[str] = None
    ) -> List[GenerationAudit]:
        """Most recent generation runs of a product first."""
        docs = await self.find_many(
            {"product_id": parse_object_id(product_id, "product_id")},
            sort=[("created_at", -1)],
            limit=limit,
            correlation_id=correlation_id,
        )
        return [GenerationAudit.from_document(doc) for doc in docs]
