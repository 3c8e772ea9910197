"""
Variant Persistence

Writes a planned batch of variants, and the inventory record of each newly
created variant, in one MongoDB transaction. Configurations already stored
for the product are skipped, so regenerating is a no-op.
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from motor.motor_asyncio import AsyncIOMotorClientSession

from variant_engine.core.errors import ErrorResponse, PersistenceFailure
from variant_engine.core.logger import logger
from variant_engine.db.mongodb import Database
from variant_engine.models.variant import PersistResult, PlannedVariant, VariantConfiguration, VariantStatus
from variant_engine.repositories.variant_repository import VariantRepository
from variant_engine.services.variant_identity import build_config_hash, canonical_pairs
from variant_engine.utils.identifiers import parse_object_id

# Called once per inserted variant document, inside the transaction
OnCreated = Callable[[Dict[str, Any], AsyncIOMotorClientSession], Awaitable[Any]]
# Called once with the batch outcome, inside the transaction
OnBatch = Callable[[PersistResult, AsyncIOMotorClientSession], Awaitable[Any]]

# A concurrent identical batch loses on the unique index; one rerun sees its rows
MAX_ATTEMPTS = 2


class VariantPersistence:
    """Transactional, idempotent batch insert of variant configurations"""

    def __init__(self, database: Database, variants: VariantRepository):
        self.database = database
        self.variants = variants

    def _build_document(
        self,
        product_oid,
        planned: PlannedVariant,
        config_hash: str,
        created_by: Optional[str],
        batch_id: Optional[str],
        now: datetime
    ) -> Dict[str, Any]:
        return {
            "product_id": product_oid,
            "attributes": [
                {
                    "attribute_type_id": parse_object_id(type_id, "attribute_type_id"),
                    "attribute_value_id": parse_object_id(value_id, "attribute_value_id"),
                }
                for type_id, value_id in canonical_pairs(planned.pairs)
            ],
            "config_hash": config_hash,
            "sku": planned.sku,
            "price": planned.price,
            "status": VariantStatus.ACTIVE.value,
            "is_deleted": False,
            "created_by": created_by,
            "generation_batch_id": batch_id,
            "created_at": now,
            "updated_at": now,
        }

    async def persist(
        self,
        product_id: str,
        planned: Sequence[PlannedVariant],
        created_by: Optional[str] = None,
        on_created: Optional[OnCreated] = None,
        on_batch: Optional[OnBatch] = None,
        batch_id: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> PersistResult:
        """
        Insert every planned variant whose configuration is new.

        Args:
            product_id: Owning product
            planned: Priced and SKU'd combinations
            created_by: Acting user recorded on each variant
            on_created: Hook run for each inserted document with the session,
                used to initialize inventory in the same transaction
            on_batch: Hook run once with the result and the session, used to
                record the generation audit in the same transaction
            batch_id: Generation batch stamped on each inserted variant
            correlation_id: Correlation ID for logging

        Raises:
            PersistenceFailure: The transaction was aborted; nothing was written
        """
        product_oid = parse_object_id(product_id, "product_id")
        hashed = [(build_config_hash(product_id, p.pairs), p) for p in planned]

        async def write(session: AsyncIOMotorClientSession) -> PersistResult:
            existing = await self.variants.find_existing_hashes(
                product_oid, [h for h, _ in hashed], session=session, correlation_id=correlation_id
            )
            now = datetime.now(timezone.utc)
            documents: List[Dict[str, Any]] = []
            seen = set(existing)
            for config_hash, item in hashed:
                if config_hash in seen:
                    continue
                seen.add(config_hash)
                documents.append(self._build_document(product_oid, item, config_hash, created_by, batch_id, now))

            inserted = await self.variants.insert_many(documents, session=session, correlation_id=correlation_id)
            if on_created is not None:
                for doc in inserted:
                    await on_created(doc, session)

            result = PersistResult(
                created=[VariantConfiguration.from_document(doc) for doc in inserted],
                skipped=len(hashed) - len(inserted),
                retries=attempt - 1,
            )
            if on_batch is not None:
                await on_batch(result, session)
            return result

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                result = await self.database.with_transaction(write)
                break
            except PersistenceFailure as e:
                if e.status_code != 409 or attempt == MAX_ATTEMPTS:
                    raise
                logger.warning(
                    "Variant batch lost a duplicate key race, retrying",
                    correlation_id=correlation_id,
                    metadata={"product_id": product_id, "attempt": attempt},
                )
            except ErrorResponse:
                raise
            except Exception as e:
                logger.error(
                    "Variant batch transaction aborted",
                    correlation_id=correlation_id,
                    error=e,
                    metadata={"product_id": product_id, "batch_size": len(hashed)},
                )
                raise PersistenceFailure(
                    "Failed to persist variants",
                    details={"product_id": product_id},
                )

        logger.info(
            f"Persisted {len(result.created)} variants, skipped {result.skipped} existing",
            correlation_id=correlation_id,
            metadata={
                "product_id": product_id,
                "batch_id": batch_id,
                "created": len(result.created),
                "skipped": result.skipped,
                "retries": result.retries,
            },
        )
        return result
