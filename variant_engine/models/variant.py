"""
Variant Generation Models

Request/response models for generating variant configurations and the
persisted VariantConfiguration entity.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from variant_engine.models.attribute import AttributeValue


class VariantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    OUT_OF_STOCK = "OUT_OF_STOCK"


class AttributeSelection(BaseModel):
    """Values chosen for one attribute type in a generation request"""
    attribute_type_id: str = Field(..., description="Attribute type to vary on")
    attribute_value_ids: List[str] = Field(
        default_factory=list,
        description="Values of that type to combine"
    )


class BaseProductData(BaseModel):
    """Product-level inputs shared by every generated variant"""
    price: float = Field(..., ge=0, description="Base price before modifiers")
    sku_base: str = Field(..., min_length=1, max_length=40, description="SKU prefix")
    stock: int = Field(default=0, ge=0, description="Seed stock per new variant")
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)
    created_by: Optional[str] = Field(default=None)

    @field_validator("sku_base")
    @classmethod
    def _has_alphanumeric(cls, value: str) -> str:
        if not any(ch.isalnum() for ch in value):
            raise ValueError("sku_base must contain at least one alphanumeric character")
        return value


class GenerateVariantsRequest(BaseModel):
    selections: List[AttributeSelection] = Field(..., min_length=1)
    base_product_data: BaseProductData


class VariantAttributePair(BaseModel):
    attribute_type_id: str
    attribute_value_id: str


class CandidateCombination(BaseModel):
    """One assignment of exactly one value per participating type, in canonical order"""
    values: List[AttributeValue]

    @property
    def pairs(self) -> List[Tuple[str, str]]:
        return [(v.attribute_type_id, v.id) for v in self.values]


class PlannedVariant(BaseModel):
    """A priced, SKU'd combination awaiting persistence"""
    pairs: List[Tuple[str, str]]
    price: float
    sku: str


class VariantConfiguration(BaseModel):
    """Persisted variant"""
    id: str
    product_id: str
    attributes: List[VariantAttributePair]
    config_hash: str
    sku: str
    price: float
    status: VariantStatus = VariantStatus.ACTIVE
    is_deleted: bool = False
    created_by: Optional[str] = None
    generation_batch_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "VariantConfiguration":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["product_id"] = str(data["product_id"])
        data["attributes"] = [
            {
                "attribute_type_id": str(a["attribute_type_id"]),
                "attribute_value_id": str(a["attribute_value_id"]),
            }
            for a in data.get("attributes", [])
        ]
        return cls(**data)


class VariantUpdate(BaseModel):
    """Explicit admin edit of a generated variant"""
    price: Optional[float] = Field(default=None, ge=0)
    status: Optional[VariantStatus] = None
    updated_by: Optional[str] = None


class GenerateVariantsResponse(BaseModel):
    batch_id: Optional[str] = Field(default=None, description="Generation batch, see the audit trail")
    total_generated: int = Field(..., description="Variants actually created")
    total_candidates: int = Field(..., description="Combinations surviving compatibility rules")
    skipped_duplicates: int = Field(default=0, description="Existing configurations left untouched")
    variants: List[VariantConfiguration] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PersistResult(BaseModel):
    created: List[VariantConfiguration] = Field(default_factory=list)
    skipped: int = 0
    retries: int = 0


class PreviewVariant(BaseModel):
    """One candidate as generation would write it; ``sku`` is None for existing ones"""
    attributes: List[VariantAttributePair]
    config_hash: str
    price: float
    sku: Optional[str] = None
    exists: bool = False


class GenerateVariantsPreview(BaseModel):
    total_candidates: int
    new_count: int
    existing_count: int
    variants: List[PreviewVariant] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class GenerationAction(str, Enum):
    GENERATE = "GENERATE"


class GenerationAudit(BaseModel):
    """Audit row written in the same transaction as a generated batch"""
    id: str
    batch_id: str
    product_id: str
    action: GenerationAction = GenerationAction.GENERATE
    generated_by: Optional[str] = None
    selections: List[AttributeSelection] = Field(default_factory=list)
    total_candidates: int = 0
    total_generated: int = 0
    total_skipped: int = 0
    race_retries: int = 0
    duration_ms: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "GenerationAudit":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["product_id"] = str(data["product_id"])
        return cls(**data)
