"""
Repository layer: MongoDB data access for the catalog, variants and inventory
"""

from .attribute_repository import AttributeRepository
from .base_repository import BaseRepository
from .compatibility_repository import CompatibilityRepository
from .generation_audit_repository import GenerationAuditRepository
from .inventory_repository import InventoryRepository
from .reservation_repository import ReservationRepository
from .variant_repository import VariantRepository

__all__ = [
    "AttributeRepository",
    "BaseRepository",
    "CompatibilityRepository",
    "GenerationAuditRepository",
    "InventoryRepository",
    "ReservationRepository",
    "VariantRepository",
]
