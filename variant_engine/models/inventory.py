"""
Inventory Ledger Models

An InventoryRecord holds the live counters of one variant; its ledger is the
append-only list of InventoryTransaction rows, one per stock mutation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


class InventoryStatus(str, Enum):
    """Derived from counters and the discontinued flag, never stored"""
    IN_STOCK = "IN_STOCK"
    LOW_STOCK = "LOW_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    DISCONTINUED = "DISCONTINUED"


class TransactionType(str, Enum):
    IN = "IN"
    OUT = "OUT"
    RESERVED = "RESERVED"
    RELEASED = "RELEASED"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"


class ReferenceType(str, Enum):
    ORDER = "order"
    RETURN = "return"
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    MANUAL = "manual"
    INITIAL = "initial"


class InventoryTransaction(BaseModel):
    """
    One ledger row.

    ``quantity`` is signed in the dimension the row is about: total stock for
    IN/OUT/ADJUSTMENT, reserved stock for RESERVED/RELEASED, moved units for
    TRANSFER. Snapshots always describe total stock, so
    ``stock_after - stock_before`` is the row's contribution to total stock.
    """
    id: str
    inventory_id: Optional[str] = None
    variant_id: str
    type: TransactionType
    quantity: int
    stock_before: int
    stock_after: int
    reserved_before: int = 0
    reserved_after: int = 0
    available_before: int = 0
    available_after: int = 0
    reference_type: ReferenceType = ReferenceType.MANUAL
    reference_id: Optional[str] = None
    reason: Optional[str] = None
    warehouse_from: Optional[str] = None
    warehouse_to: Optional[str] = None
    performed_by: Optional[str] = None
    timestamp: datetime

    @property
    def stock_delta(self) -> int:
        return self.stock_after - self.stock_before

    @property
    def reserved_delta(self) -> int:
        return self.reserved_after - self.reserved_before

    @classmethod
    def from_document(cls, doc: Dict[str, Any], inventory_id: Optional[str] = None,
                      variant_id: Optional[str] = None) -> "InventoryTransaction":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["inventory_id"] = inventory_id or (str(data["inventory_id"]) if data.get("inventory_id") else None)
        data["variant_id"] = variant_id or str(data["variant_id"])
        return cls(**data)


class InventoryRecord(BaseModel):
    id: str
    variant_id: str
    product_id: Optional[str] = None
    sku: Optional[str] = None
    total_stock: int = 0
    reserved_stock: int = 0
    available_stock: int = 0
    low_stock_threshold: int = 0
    discontinued: bool = False
    warehouses: Dict[str, int] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def status(self) -> InventoryStatus:
        if self.discontinued:
            return InventoryStatus.DISCONTINUED
        if self.available_stock <= 0:
            return InventoryStatus.OUT_OF_STOCK
        if self.available_stock < self.low_stock_threshold:
            return InventoryStatus.LOW_STOCK
        return InventoryStatus.IN_STOCK

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "InventoryRecord":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["variant_id"] = str(data["variant_id"])
        if data.get("product_id") is not None:
            data["product_id"] = str(data["product_id"])
        return cls(**data)


class StockMutation(BaseModel):
    """
    A guarded change to one inventory record.

    The guard is derived from the deltas: the mutation applies only if neither
    available nor reserved stock would go negative (and, for transfers, the
    source warehouse holds enough units).
    """
    type: TransactionType
    quantity: int
    total_delta: int = 0
    reserved_delta: int = 0
    allow_discontinued: bool = True
    reference_type: ReferenceType = ReferenceType.MANUAL
    reference_id: Optional[str] = None
    reason: Optional[str] = None
    warehouse_from: Optional[str] = None
    warehouse_to: Optional[str] = None
    performed_by: Optional[str] = None

    @property
    def available_delta(self) -> int:
        return self.total_delta - self.reserved_delta

    @property
    def required_available(self) -> int:
        return max(0, -self.available_delta)

    @property
    def required_reserved(self) -> int:
        return max(0, -self.reserved_delta)

    @property
    def warehouse_deltas(self) -> Dict[str, int]:
        if self.type == TransactionType.TRANSFER:
            return {self.warehouse_from: -self.quantity, self.warehouse_to: self.quantity}
        if self.warehouse_to:
            return {self.warehouse_to: self.total_delta}
        return {}


_WAREHOUSE_CODE_HELP = "Warehouse codes are 1-32 letters, digits, '_' or '-'"


def validate_warehouse_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    code = value.strip().upper()
    if not code or len(code) > 32 or not all(ch.isalnum() or ch in "_-" for ch in code):
        raise ValueError(_WAREHOUSE_CODE_HELP)
    return code


class StockQuantityRequest(BaseModel):
    """Body of reserve / commit / release"""
    quantity: int = Field(..., gt=0)
    reference_id: Optional[str] = Field(default=None, max_length=128)
    performed_by: Optional[str] = None


class ReserveStockRequest(StockQuantityRequest):
    expires_at: Optional[datetime] = Field(
        default=None,
        description="When an unconverted hold is released; defaults to the configured TTL",
    )

    @field_validator("expires_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class AdjustStockRequest(BaseModel):
    delta: int = Field(..., description="Signed correction applied to total stock")
    reason: str = Field(..., min_length=1, max_length=500)
    performed_by: Optional[str] = None

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must not be zero")
        return value


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)
    reference_type: ReferenceType = ReferenceType.PURCHASE
    reference_id: Optional[str] = Field(default=None, max_length=128)
    warehouse: Optional[str] = None
    performed_by: Optional[str] = None

    @field_validator("warehouse")
    @classmethod
    def _normalize(cls, value: Optional[str]) -> Optional[str]:
        return validate_warehouse_code(value)


class TransferRequest(BaseModel):
    from_warehouse: str
    to_warehouse: str
    quantity: int = Field(..., gt=0)
    performed_by: Optional[str] = None

    @field_validator("from_warehouse", "to_warehouse")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return validate_warehouse_code(value)

    @model_validator(mode="after")
    def _distinct(self):
        if self.from_warehouse == self.to_warehouse:
            raise ValueError("from_warehouse and to_warehouse must differ")
        return self


class LedgerVerification(BaseModel):
    """Result of reconciling live counters against the ledger"""
    variant_id: str
    consistent: bool
    total_stock: int
    reserved_stock: int
    available_stock: int
    ledger_total: int
    ledger_reserved: int
    row_count: int
    issues: List[str] = Field(default_factory=list)


class ReservationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    RELEASED = "RELEASED"
    EXPIRED = "EXPIRED"


class InventoryReservation(BaseModel):
    """
    A hold created by ``reserve``.

    ``remaining`` drops as commits and releases arrive under the same
    reference; whatever is left when ``expires_at`` passes is given back by
    the expiry sweep. ``expires_at`` of None never expires.
    """
    id: str
    variant_id: str
    reference_id: Optional[str] = None
    quantity: int
    remaining: int
    status: ReservationStatus = ReservationStatus.ACTIVE
    expires_at: Optional[datetime] = None
    performed_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "InventoryReservation":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        data["variant_id"] = str(data["variant_id"])
        return cls(**data)


class ReservationSweepResult(BaseModel):
    """Outcome of one expiry sweep"""
    expired: int = 0
    released_units: int = 0
    unreleased: int = 0
    failed: int = 0
