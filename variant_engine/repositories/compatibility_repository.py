"""
Compatibility rule repository
"""

from typing import Iterable, List, Optional

from variant_engine.models.attribute import CompatibilityRule
from variant_engine.repositories.base_repository import BaseRepository
from variant_engine.utils.identifiers import parse_object_id, parse_object_ids


class CompatibilityRepository(BaseRepository):
    """Lookups over the ``compatibility_rules`` collection"""

    async def rules_for(
        self,
        parent_type_id: str,
        parent_value_id: Optional[str],
        correlation_id: Optional[str] = None
    ) -> List[CompatibilityRule]:
        """Rules triggered by a (type, value) pair, including the type's any-value rules."""
        parent_values = [None]
        if parent_value_id is not None:
            parent_values.append(parse_object_id(parent_value_id, "parent_value_id"))

        docs = await self.find_many(
            {
                "parent_type_id": parse_object_id(parent_type_id, "parent_type_id"),
                "parent_value_id": {"$in": parent_values},
            },
            sort=[("_id", 1)],
            correlation_id=correlation_id,
        )
        return [CompatibilityRule.from_document(doc) for doc in docs]

    async def rules_for_types(
        self,
        type_ids: Iterable[str],
        correlation_id: Optional[str] = None
    ) -> List[CompatibilityRule]:
        """Every rule triggered by a value of one of ``type_ids``."""
        oids = parse_object_ids(type_ids, "attribute_type_id")
        if not oids:
            return []
        docs = await self.find_many(
            {"parent_type_id": {"$in": oids}},
            sort=[("_id", 1)],
            correlation_id=correlation_id,
        )
        return [CompatibilityRule.from_document(doc) for doc in docs]
