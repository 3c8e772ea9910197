"""
Database index management for MongoDB.

Creates the indexes the engine relies on for correctness (uniqueness of
variant configurations, SKUs and inventory records) and for its lookups.
Indexes are created at application startup.
"""

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from variant_engine.core.logger import logger
from variant_engine.db.mongodb import (
    ATTRIBUTE_VALUES,
    COMPATIBILITY_RULES,
    GENERATION_AUDITS,
    INVENTORY,
    INVENTORY_TRANSACTIONS,
    RESERVATIONS,
    VARIANTS,
)


async def create_indexes(database: AsyncIOMotorDatabase) -> None:
    """
    Create all required MongoDB indexes.

    Args:
        database: MongoDB database instance
    """
    try:
        variants = database[VARIANTS]

        # 1. One configuration per product (idempotent generation)
        await variants.create_index(
            [("product_id", ASCENDING), ("config_hash", ASCENDING)],
            unique=True,
            name="idx_product_config_hash_unique"
        )

        # 2. SKU uniqueness across all variants
        await variants.create_index(
            [("sku", ASCENDING)],
            unique=True,
            name="idx_sku_unique"
        )

        # 3. Listing variants of a product
        await variants.create_index(
            [("product_id", ASCENDING), ("is_deleted", ASCENDING)],
            name="idx_product_deleted"
        )

        inventory = database[INVENTORY]

        # 4. Exactly one inventory record per variant
        await inventory.create_index(
            [("variant_id", ASCENDING)],
            unique=True,
            name="idx_variant_unique"
        )

        # 5. Low stock dashboards
        await inventory.create_index(
            [("available_stock", ASCENDING), ("low_stock_threshold", ASCENDING)],
            name="idx_available_threshold"
        )

        # 6. Ledger history, newest first
        await database[INVENTORY_TRANSACTIONS].create_index(
            [("variant_id", ASCENDING), ("timestamp", DESCENDING), ("_id", DESCENDING)],
            name="idx_variant_timestamp"
        )

        reservations = database[RESERVATIONS]

        # 7. Expiry sweep candidates
        await reservations.create_index(
            [("status", ASCENDING), ("expires_at", ASCENDING)],
            name="idx_status_expires"
        )

        # 8. Settling holds by order reference
        await reservations.create_index(
            [("variant_id", ASCENDING), ("reference_id", ASCENDING), ("status", ASCENDING)],
            name="idx_variant_reference_status"
        )

        audits = database[GENERATION_AUDITS]
        await audits.create_index([("batch_id", ASCENDING)], unique=True, name="idx_batch_unique")
        await audits.create_index(
            [("product_id", ASCENDING), ("created_at", DESCENDING)],
            name="idx_product_created"
        )

        await database[ATTRIBUTE_VALUES].create_index(
            [("attribute_type_id", ASCENDING), ("status", ASCENDING)],
            name="idx_type_status"
        )

        await database[COMPATIBILITY_RULES].create_index(
            [("parent_type_id", ASCENDING), ("parent_value_id", ASCENDING)],
            name="idx_parent_lookup"
        )

        logger.info("All database indexes created successfully")

    except Exception as e:
        logger.error("Failed to create database indexes", error=e)
        raise
