"""Tests for attribute catalog models"""
import pytest
from bson import ObjectId
from pydantic import ValidationError

from variant_engine.models.attribute import (
    AttributeType,
    AttributeValue,
    CompatibilityRule,
    FixedModifier,
    PercentageModifier,
)


class TestAttributeValue:

    def test_from_document_stringifies_ids(self):
        oid, type_oid = ObjectId(), ObjectId()
        value = AttributeValue.from_document({
            "_id": oid,
            "attribute_type_id": type_oid,
            "value": "Red",
            "price_modifiers": [{"kind": "fixed", "amount": 10}],
        })

        assert value.id == str(oid)
        assert value.attribute_type_id == str(type_oid)
        assert isinstance(value.price_modifiers[0], FixedModifier)

    def test_single_price_modifier_is_folded(self):
        value = AttributeValue(
            id="v", attribute_type_id="t", value="512GB",
            price_modifier={"kind": "percentage", "amount": 5},
            price_modifiers=[{"kind": "fixed", "amount": 200}],
        )

        assert [type(m) for m in value.price_modifiers] == [PercentageModifier, FixedModifier]

    def test_null_price_modifier_is_ignored(self):
        value = AttributeValue(id="v", attribute_type_id="t", value="S", price_modifier=None)
        assert value.price_modifiers == []

    def test_unknown_modifier_kind_is_rejected(self):
        with pytest.raises(ValidationError):
            AttributeValue(id="v", attribute_type_id="t", value="S",
                           price_modifiers=[{"kind": "bogus", "amount": 1}])

    def test_inactive_value(self):
        value = AttributeValue(id="v", attribute_type_id="t", value="S", status="inactive")
        assert value.is_active is False


def test_type_sort_key_orders_by_priority_then_display_order():
    low = AttributeType(id="b", name="Size", variant_priority=1, display_order=0)
    high = AttributeType(id="c", name="Color", variant_priority=2, display_order=5)
    tied = AttributeType(id="a", name="Fit", variant_priority=1, display_order=0)

    assert [t.name for t in sorted([low, high, tied], key=lambda t: t.sort_key)] == ["Color", "Fit", "Size"]


class TestCompatibilityRule:

    def test_forbidden_list(self):
        rule = CompatibilityRule(parent_type_id="c", child_type_id="s",
                                 allowed_child_value_ids=["x"], is_forbidden=True)
        assert not rule.admits("x")
        assert rule.admits("y")

    def test_forbidden_empty_list_blocks_everything(self):
        rule = CompatibilityRule(parent_type_id="c", child_type_id="s", is_forbidden=True)
        assert not rule.admits("anything")

    def test_allow_list(self):
        rule = CompatibilityRule(parent_type_id="c", child_type_id="s", allowed_child_value_ids=["x"])
        assert rule.forced_values(["x", "y"]) == ["x"]

    def test_wildcard_parent(self):
        rule = CompatibilityRule(parent_type_id="c", child_type_id="s")
        assert rule.triggered_by("c", "any-value")
        assert not rule.triggered_by("other", "any-value")

    def test_self_referencing_rule_is_rejected(self):
        with pytest.raises(ValidationError):
            CompatibilityRule(parent_type_id="c", child_type_id="c")

    def test_required_and_forbid_all_is_rejected(self):
        with pytest.raises(ValidationError):
            CompatibilityRule(parent_type_id="c", child_type_id="s", is_required=True, is_forbidden=True)

    def test_from_document(self):
        parent, child, allowed = ObjectId(), ObjectId(), ObjectId()
        rule = CompatibilityRule.from_document({
            "_id": ObjectId(),
            "parent_type_id": parent,
            "parent_value_id": None,
            "child_type_id": child,
            "allowed_child_value_ids": [allowed],
        })
        assert rule.key == (str(parent), None, str(child))
        assert rule.allowed_child_value_ids == [str(allowed)]
