"""
Models module initialization
"""

from .attribute import (
    AttributeType,
    AttributeValue,
    AttributeValueStatus,
    CompatibilityRule,
    FixedModifier,
    ModifierKind,
    PercentageModifier,
    PriceModifier,
)
from .variant import (
    AttributeSelection,
    BaseProductData,
    CandidateCombination,
    GenerateVariantsPreview,
    GenerateVariantsRequest,
    GenerateVariantsResponse,
    GenerationAudit,
    PersistResult,
    PlannedVariant,
    PreviewVariant,
    VariantAttributePair,
    VariantConfiguration,
    VariantStatus,
    VariantUpdate,
)
from .inventory import (
    AdjustStockRequest,
    InventoryRecord,
    InventoryReservation,
    InventoryStatus,
    InventoryTransaction,
    LedgerVerification,
    ReferenceType,
    ReservationStatus,
    ReservationSweepResult,
    ReserveStockRequest,
    RestockRequest,
    StockMutation,
    StockQuantityRequest,
    TransactionType,
    TransferRequest,
)

__all__ = [
    "AttributeType",
    "AttributeValue",
    "AttributeValueStatus",
    "CompatibilityRule",
    "FixedModifier",
    "ModifierKind",
    "PercentageModifier",
    "PriceModifier",
    "AttributeSelection",
    "BaseProductData",
    "CandidateCombination",
    "GenerateVariantsPreview",
    "GenerateVariantsRequest",
    "GenerateVariantsResponse",
    "GenerationAudit",
    "PersistResult",
    "PlannedVariant",
    "PreviewVariant",
    "VariantAttributePair",
    "VariantConfiguration",
    "VariantStatus",
    "VariantUpdate",
    "AdjustStockRequest",
    "InventoryRecord",
    "InventoryReservation",
    "InventoryStatus",
    "InventoryTransaction",
    "LedgerVerification",
    "ReferenceType",
    "ReservationStatus",
    "ReservationSweepResult",
    "ReserveStockRequest",
    "RestockRequest",
    "StockMutation",
    "StockQuantityRequest",
    "TransactionType",
    "TransferRequest",
]
