"""
Attribute catalog repository (read-only view over types and values)
"""

from typing import Iterable, List, Optional

from variant_engine.models.attribute import AttributeType, AttributeValue, AttributeValueStatus
from variant_engine.repositories.base_repository import BaseRepository
from variant_engine.utils.identifiers import parse_object_ids


class AttributeRepository:
    """Lookups over the ``attribute_types`` and ``attribute_values`` collections"""

    def __init__(self, types_collection, values_collection):
        self.types = BaseRepository(types_collection)
        self.values = BaseRepository(values_collection)

    async def get_types(
        self,
        type_ids: Iterable[str],
        correlation_id: Optional[str] = None
    ) -> List[AttributeType]:
        oids = parse_object_ids(type_ids, "attribute_type_id")
        if not oids:
            return []
        docs = await self.types.find_many({"_id": {"$in": oids}}, correlation_id=correlation_id)
        return [AttributeType.from_document(doc) for doc in docs]

    async def get_active_values(
        self,
        type_ids: Iterable[str],
        correlation_id: Optional[str] = None
    ) -> List[AttributeValue]:
        """Active values of the given types; inactive and deleted values are never returned."""
        oids = parse_object_ids(type_ids, "attribute_type_id")
        if not oids:
            return []
        docs = await self.values.find_many(
            {
                "attribute_type_id": {"$in": oids},
                "status": AttributeValueStatus.ACTIVE.value,
            },
            correlation_id=correlation_id,
        )
        return [AttributeValue.from_document(doc) for doc in docs]
