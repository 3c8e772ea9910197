"""
Attribute Catalog Models

Attribute types are variant dimensions (Color, Storage); attribute values are
the concrete options within a type (Red, 512GB). Compatibility rules constrain
which values may be combined.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class AttributeValueStatus(str, Enum):
    """Lifecycle of an attribute value"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class ModifierKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class FixedModifier(BaseModel):
    """Absolute price delta in the product currency (e.g. +200.00)"""
    kind: Literal["fixed"] = "fixed"
    amount: float = Field(..., description="Signed amount added to the base price")


class PercentageModifier(BaseModel):
    """Relative price delta in percent (e.g. +5 means +5%)"""
    kind: Literal["percentage"] = "percentage"
    amount: float = Field(..., description="Signed percentage applied after fixed deltas")


PriceModifier = Annotated[
    Union[FixedModifier, PercentageModifier],
    Field(discriminator="kind"),
]


def _stringify_ids(doc: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    data = dict(doc)
    if "_id" in data:
        data["id"] = str(data.pop("_id"))
    for field in fields:
        value = data.get(field)
        if isinstance(value, list):
            data[field] = [str(v) for v in value]
        elif value is not None:
            data[field] = str(value)
    return data


class AttributeType(BaseModel):
    """
    A variant dimension.

    ``variant_priority`` orders dimensions during generation (higher first);
    ``display_order`` breaks ties in declaration order.
    """
    id: str
    name: str
    display_name: Optional[str] = None
    input_type: str = Field(default="select", description="Rendering hint, unused by the engine")
    participates_in_variants: bool = False
    variant_priority: int = 0
    display_order: int = 0

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AttributeType":
        return cls(**_stringify_ids(doc))

    @property
    def sort_key(self):
        return (-self.variant_priority, self.display_order, self.id)


class AttributeValue(BaseModel):
    """One concrete option of an attribute type"""
    id: str
    attribute_type_id: str
    value: str
    display_name: Optional[str] = None
    display_order: int = 0
    price_modifiers: List[PriceModifier] = Field(
        default_factory=list,
        description="Stacked modifiers; a single stored price_modifier is folded in",
    )
    sku_fragment: Optional[str] = None
    status: AttributeValueStatus = AttributeValueStatus.ACTIVE

    @model_validator(mode="before")
    @classmethod
    def _fold_single_modifier(cls, data: Any) -> Any:
        if isinstance(data, dict) and "price_modifier" in data:
            data = dict(data)
            single = data.pop("price_modifier")
            if single is not None:
                data["price_modifiers"] = [single, *data.get("price_modifiers", [])]
        return data

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "AttributeValue":
        return cls(**_stringify_ids(doc, "attribute_type_id"))

    @property
    def is_active(self) -> bool:
        return self.status == AttributeValueStatus.ACTIVE

    @property
    def sort_key(self):
        return (self.display_order, self.id)


class CompatibilityRule(BaseModel):
    """
    IF ``parent_type_id`` is set to ``parent_value_id`` (None = any value)
    THEN the child type is constrained.

    - ``is_forbidden``: the listed child values are disallowed; an empty list
      disallows every value of the child type.
    - otherwise a non-empty ``allowed_child_value_ids`` restricts the child
      type to those values.
    - ``is_required``: the child type must be part of the combination.

    Example:
    {
        "parent_type_id": "<color>",
        "parent_value_id": "<red>",
        "child_type_id": "<storage>",
        "allowed_child_value_ids": ["<512gb>"],
        "is_forbidden": true
    }
    """
    id: Optional[str] = None
    parent_type_id: str
    parent_value_id: Optional[str] = None
    child_type_id: str
    allowed_child_value_ids: List[str] = Field(default_factory=list)
    is_required: bool = False
    is_forbidden: bool = False
    description: Optional[str] = None

    @model_validator(mode="after")
    def _check_flags(self):
        if self.is_required and self.is_forbidden and not self.allowed_child_value_ids:
            raise ValueError("A rule cannot both require and forbid every child value")
        if self.parent_type_id == self.child_type_id:
            raise ValueError("A rule cannot constrain its own attribute type")
        return self

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "CompatibilityRule":
        return cls(**_stringify_ids(
            doc,
            "parent_type_id",
            "parent_value_id",
            "child_type_id",
            "allowed_child_value_ids",
        ))

    @property
    def key(self):
        """Authority key: one rule per (parent type, parent value, child type)"""
        return (self.parent_type_id, self.parent_value_id, self.child_type_id)

    def triggered_by(self, type_id: str, value_id: str) -> bool:
        return self.parent_type_id == type_id and (
            self.parent_value_id is None or self.parent_value_id == value_id
        )

    def admits(self, child_value_id: str) -> bool:
        """Whether a value of the child type passes this rule."""
        allowed = self.allowed_child_value_ids
        if self.is_forbidden:
            return bool(allowed) and child_value_id not in allowed
        if allowed:
            return child_value_id in allowed
        return True

    def forced_values(self, selected_child_values: List[str]) -> List[str]:
        """Child values, among those selected, this rule leaves available."""
        return [v for v in selected_child_values if self.admits(v)]
