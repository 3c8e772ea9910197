"""
Identifier parsing at persistence boundaries.

Ids travel as strings through the API and as ObjectIds in MongoDB. Every
repository call goes through these helpers so a serialized object
(``"[object Object]"``), a dict or a padded string never reaches a typed
id field.
"""

from typing import Any, Iterable, List

from bson import ObjectId
from bson.errors import InvalidId

from variant_engine.core.errors import InvalidIdentifier


def normalize_id(raw: Any) -> str:
    """Return the canonical lowercase 24-char hex form of an id."""
    return str(parse_object_id(raw))


def parse_object_id(raw: Any, field: str = "id") -> ObjectId:
    """
    Parse a single identifier into an ObjectId.

    Args:
        raw: ObjectId or 24-char hex string
        field: Field name reported in the error details

    Raises:
        InvalidIdentifier: If the value is not a well-formed ObjectId
    """
    if isinstance(raw, ObjectId):
        return raw

    if not isinstance(raw, str):
        raise InvalidIdentifier(
            f"Invalid {field}: expected an ObjectId string",
            details={"field": field, "type": type(raw).__name__},
        )

    candidate = raw.strip().lower()
    if not ObjectId.is_valid(candidate) or len(candidate) != 24:
        raise InvalidIdentifier(
            f"Invalid {field}: '{raw}' is not a valid ObjectId",
            details={"field": field, "value": raw[:64]},
        )

    try:
        return ObjectId(candidate)
    except InvalidId as e:
        raise InvalidIdentifier(f"Invalid {field}: {e}", details={"field": field})


def parse_object_ids(values: Iterable[Any], field: str = "ids") -> List[ObjectId]:
    """Parse a list of identifiers, preserving order and dropping repeats."""
    seen = set()
    parsed = []
    for raw in values:
        oid = parse_object_id(raw, field)
        if oid not in seen:
            seen.add(oid)
            parsed.append(oid)
    return parsed
