"""
MongoDB database connection and configuration following FastAPI best practices
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)

from variant_engine.core.config import config
from variant_engine.core.errors import ErrorResponse
from variant_engine.core.logger import logger

T = TypeVar("T")

ATTRIBUTE_TYPES = "attribute_types"
ATTRIBUTE_VALUES = "attribute_values"
COMPATIBILITY_RULES = "compatibility_rules"
VARIANTS = "variants"
INVENTORY = "inventory"
INVENTORY_TRANSACTIONS = "inventory_transactions"
RESERVATIONS = "inventory_reservations"
GENERATION_AUDITS = "generation_audits"


class Database:
    """Database connection manager"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    def __getitem__(self, name: str):
        if self.database is None:
            raise ErrorResponse("Database is not connected", status_code=503)
        return self.database[name]

    async def with_transaction(
        self,
        fn: Callable[[AsyncIOMotorClientSession], Awaitable[T]],
    ) -> T:
        """
        Run ``fn(session)`` inside a multi-document transaction.

        The transaction commits only if ``fn`` returns; any exception aborts
        it. Transient transaction errors are retried by the driver.
        """
        if self.client is None:
            raise ErrorResponse("Database is not connected", status_code=503)

        async with await self.client.start_session() as session:
            return await session.with_transaction(fn)


db = Database()


async def connect_to_mongo():
    """Create database connection"""
    logger.info("Connecting to MongoDB...")

    try:
        db.client = AsyncIOMotorClient(config.mongodb_url)
        db.database = db.client[config.mongodb_database]

        # Test connection
        await db.client.admin.command('ping')

        logger.info(
            f"Successfully connected to MongoDB database '{config.mongodb_database}'",
            metadata={
                "event": "mongodb_connected",
                "database": config.mongodb_database,
                "host": config.mongodb_host,
                "port": config.mongodb_port
            }
        )
    except Exception as e:
        logger.error(
            f"Could not connect to MongoDB: {e}",
            metadata={"event": "mongodb_connection_error", "error": str(e)}
        )
        raise ErrorResponse(
            f"Could not connect to MongoDB: {e}",
            status_code=503
        )


async def close_mongo_connection():
    """Close database connection"""
    logger.info("Closing connection to MongoDB...")
    if db.client is not None:
        db.client.close()
        db.client = None
        db.database = None


async def get_database() -> Database:
    """Get database instance"""
    if db.database is None:
        await connect_to_mongo()
    return db


async def ping() -> Any:
    """Round-trip to the server, used by readiness checks"""
    if db.client is None:
        raise ErrorResponse("Database is not connected", status_code=503)
    return await db.client.admin.command("ping")
