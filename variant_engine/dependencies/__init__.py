"""
Dependencies module initialization
"""

from .services import (
    get_attribute_repository,
    get_compatibility_repository,
    get_inventory_ledger,
    get_inventory_repository,
    get_publisher,
    get_variant_repository,
    get_variant_service,
)

__all__ = [
    "get_attribute_repository",
    "get_compatibility_repository",
    "get_inventory_ledger",
    "get_inventory_repository",
    "get_publisher",
    "get_variant_repository",
    "get_variant_service",
]
