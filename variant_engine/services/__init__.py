"""
Services module initialization
"""

from .combination_generator import CombinationGenerator
from .compatibility import CompatibilityRules
from .event_publisher import EventPublisher, get_event_publisher
from .inventory_ledger import InventoryLedger
from .pricing import PriceQuote, PricingEngine
from .sku_allocator import SkuAllocator
from .variant_persistence import VariantPersistence
from .variant_service import VariantService

__all__ = [
    "CombinationGenerator",
    "CompatibilityRules",
    "EventPublisher",
    "get_event_publisher",
    "InventoryLedger",
    "PriceQuote",
    "PricingEngine",
    "SkuAllocator",
    "VariantPersistence",
    "VariantService",
]
