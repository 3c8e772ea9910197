"""Tests for CompatibilityRepository against a mocked Motor collection"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect

from variant_engine.core.errors import InvalidIdentifier, PersistenceFailure
from variant_engine.repositories.compatibility_repository import CompatibilityRepository


def cursor_of(docs):
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.limit.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


@pytest.fixture
def collection():
    collection = MagicMock()
    collection.name = "compatibility_rules"
    return collection


def rule_doc(parent_type, parent_value=None, **overrides):
    doc = {
        "_id": ObjectId(),
        "parent_type_id": parent_type,
        "parent_value_id": parent_value,
        "child_type_id": ObjectId(),
        "allowed_child_value_ids": [ObjectId()],
        "is_forbidden": True,
        "is_required": False,
    }
    doc.update(overrides)
    return doc


@pytest.mark.asyncio
async def test_rules_for_includes_any_value_rules(collection):
    parent_type, parent_value = ObjectId(), ObjectId()
    docs = [rule_doc(parent_type), rule_doc(parent_type, parent_value)]
    cursor = cursor_of(docs)
    collection.find.return_value = cursor

    rules = await CompatibilityRepository(collection).rules_for(str(parent_type), str(parent_value))

    query = collection.find.call_args[0][0]
    assert query == {"parent_type_id": parent_type, "parent_value_id": {"$in": [None, parent_value]}}
    cursor.sort.assert_called_once_with([("_id", 1)])
    assert [r.parent_value_id for r in rules] == [None, str(parent_value)]
    assert rules[1].allowed_child_value_ids == [str(docs[1]["allowed_child_value_ids"][0])]


@pytest.mark.asyncio
async def test_rules_for_any_value_only(collection):
    parent_type = ObjectId()
    collection.find.return_value = cursor_of([])

    await CompatibilityRepository(collection).rules_for(str(parent_type), None)

    query = collection.find.call_args[0][0]
    assert query == {"parent_type_id": parent_type, "parent_value_id": {"$in": [None]}}


@pytest.mark.asyncio
async def test_rules_for_rejects_malformed_ids(collection):
    with pytest.raises(InvalidIdentifier):
        await CompatibilityRepository(collection).rules_for("not-an-id", None)
    collection.find.assert_not_called()


@pytest.mark.asyncio
async def test_rules_for_types(collection):
    types = [ObjectId(), ObjectId()]
    collection.find.return_value = cursor_of([rule_doc(types[0])])

    rules = await CompatibilityRepository(collection).rules_for_types([str(t) for t in types])

    assert collection.find.call_args[0][0] == {"parent_type_id": {"$in": types}}
    assert rules[0].parent_type_id == str(types[0])


@pytest.mark.asyncio
async def test_rules_for_types_skips_query_for_no_types(collection):
    assert await CompatibilityRepository(collection).rules_for_types([]) == []
    collection.find.assert_not_called()


@pytest.mark.asyncio
async def test_driver_error_is_persistence_failure(collection):
    collection.find.side_effect = AutoReconnect("primary stepped down")
    with pytest.raises(PersistenceFailure) as exc_info:
        await CompatibilityRepository(collection).rules_for(str(ObjectId()), None)
    assert exc_info.value.status_code == 503
