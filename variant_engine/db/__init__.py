"""
Database module initialization
"""

from .mongodb import (
    Database,
    db,
    connect_to_mongo,
    close_mongo_connection,
    get_database,
    ATTRIBUTE_TYPES,
    ATTRIBUTE_VALUES,
    COMPATIBILITY_RULES,
    VARIANTS,
    INVENTORY,
    INVENTORY_TRANSACTIONS,
    RESERVATIONS,
    GENERATION_AUDITS,
)

__all__ = [
    "Database",
    "db",
    "connect_to_mongo",
    "close_mongo_connection",
    "get_database",
    "ATTRIBUTE_TYPES",
    "ATTRIBUTE_VALUES",
    "COMPATIBILITY_RULES",
    "VARIANTS",
    "INVENTORY",
    "INVENTORY_TRANSACTIONS",
    "RESERVATIONS",
    "GENERATION_AUDITS",
]
