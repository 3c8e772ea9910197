"""
Service layer dependency injection for FastAPI.

Provides repositories and services with their collections injected, so no
service reaches for a module-global collection.
"""

from fastapi import Depends

from variant_engine.db.mongodb import (
    ATTRIBUTE_TYPES,
    ATTRIBUTE_VALUES,
    COMPATIBILITY_RULES,
    GENERATION_AUDITS,
    INVENTORY,
    INVENTORY_TRANSACTIONS,
    RESERVATIONS,
    VARIANTS,
    Database,
    get_database,
)
from variant_engine.repositories import (
    AttributeRepository,
    CompatibilityRepository,
    GenerationAuditRepository,
    InventoryRepository,
    ReservationRepository,
    VariantRepository,
)
from variant_engine.services.combination_generator import CombinationGenerator
from variant_engine.services.event_publisher import EventPublisher, get_event_publisher
from variant_engine.services.inventory_ledger import InventoryLedger
from variant_engine.services.variant_persistence import VariantPersistence
from variant_engine.services.variant_service import VariantService


async def get_attribute_repository(
    database: Database = Depends(get_database)
) -> AttributeRepository:
    return AttributeRepository(database[ATTRIBUTE_TYPES], database[ATTRIBUTE_VALUES])


async def get_compatibility_repository(
    database: Database = Depends(get_database)
) -> CompatibilityRepository:
    return CompatibilityRepository(database[COMPATIBILITY_RULES])


async def get_variant_repository(
    database: Database = Depends(get_database)
) -> VariantRepository:
    return VariantRepository(database[VARIANTS])


async def get_inventory_repository(
    database: Database = Depends(get_database)
) -> InventoryRepository:
    return InventoryRepository(database[INVENTORY], database[INVENTORY_TRANSACTIONS])


async def get_reservation_repository(
    database: Database = Depends(get_database)
) -> ReservationRepository:
    return ReservationRepository(database[RESERVATIONS])


async def get_generation_audit_repository(
    database: Database = Depends(get_database)
) -> GenerationAuditRepository:
    return GenerationAuditRepository(database[GENERATION_AUDITS])


def get_publisher() -> EventPublisher:
    """Shared Dapr publisher"""
    return get_event_publisher()


def build_inventory_ledger(database: Database) -> InventoryLedger:
    """Ledger wired outside a request, for background workers"""
    return InventoryLedger(
        InventoryRepository(database[INVENTORY], database[INVENTORY_TRANSACTIONS]),
        database,
        get_publisher(),
        ReservationRepository(database[RESERVATIONS]),
    )


async def get_inventory_ledger(
    database: Database = Depends(get_database),
    repository: InventoryRepository = Depends(get_inventory_repository),
    reservations: ReservationRepository = Depends(get_reservation_repository),
    publisher: EventPublisher = Depends(get_publisher)
) -> InventoryLedger:
    """
    FastAPI dependency to get InventoryLedger instance.

    Usage:
        @router.post("/inventory/{variant_id}/reserve")
        async def reserve(
            variant_id: str,
            ledger: InventoryLedger = Depends(get_inventory_ledger)
        ):
            return await ledger.reserve(variant_id, 1)
    """
    return InventoryLedger(repository, database, publisher, reservations)


async def get_variant_service(
    database: Database = Depends(get_database),
    attributes: AttributeRepository = Depends(get_attribute_repository),
    compatibility: CompatibilityRepository = Depends(get_compatibility_repository),
    variants: VariantRepository = Depends(get_variant_repository),
    ledger: InventoryLedger = Depends(get_inventory_ledger),
    audits: GenerationAuditRepository = Depends(get_generation_audit_repository),
    publisher: EventPublisher = Depends(get_publisher)
) -> VariantService:
    """Get variant service instance wired to the request's repositories"""
    return VariantService(
        generator=CombinationGenerator(attributes, compatibility),
        persistence=VariantPersistence(database, variants),
        variants=variants,
        ledger=ledger,
        publisher=publisher,
        audits=audits,
    )
