"""
Variant identity: the configuration hash that makes regeneration idempotent.

The hash covers the product id and the sorted set of (type, value) pairs, so
it is independent of the order attributes were selected in. Ids are hashed
in their canonical lowercase form.
"""

import hashlib
from typing import Iterable, List, Tuple

from variant_engine.core.errors import InvalidAttributeSelection
from variant_engine.utils.identifiers import normalize_id

Pair = Tuple[str, str]


def canonical_pairs(pairs: Iterable[Pair]) -> List[Pair]:
    """
    Normalize ids and enforce one value per attribute type.

    Raises:
        InvalidAttributeSelection: If a type carries more than one value
    """
    seen = {}
    result = []
    for type_id, value_id in pairs:
        type_id, value_id = normalize_id(type_id), normalize_id(value_id)
        if type_id in seen:
            if seen[type_id] == value_id:
                continue
            raise InvalidAttributeSelection(
                "A variant can hold only one value per attribute type",
                details={"attribute_type_id": type_id},
            )
        seen[type_id] = value_id
        result.append((type_id, value_id))
    return result


def build_config_hash(product_id: str, pairs: Iterable[Pair]) -> str:
    tokens = sorted(f"ATTR:{t}:{v}" for t, v in canonical_pairs(pairs))
    material = f"{normalize_id(product_id)}::" + "|".join(tokens)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
