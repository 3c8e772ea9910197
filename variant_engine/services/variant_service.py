"""
Variant Service

Orchestrates variant generation (enumerate, price, allocate SKUs, persist with
inventory and an audit record), its dry-run preview, and the admin read/edit
operations on generated variants.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorClientSession

from variant_engine.core.config import config
from variant_engine.core.errors import ErrorResponse, VariantNotFound
from variant_engine.core.logger import logger
from variant_engine.models.variant import (
    CandidateCombination,
    GenerateVariantsPreview,
    GenerateVariantsRequest,
    GenerateVariantsResponse,
    GenerationAction,
    GenerationAudit,
    PersistResult,
    PlannedVariant,
    PreviewVariant,
    VariantAttributePair,
    VariantConfiguration,
    VariantUpdate,
)
from variant_engine.repositories.generation_audit_repository import GenerationAuditRepository
from variant_engine.repositories.variant_repository import VariantRepository
from variant_engine.services.combination_generator import CombinationGenerator
from variant_engine.services.event_publisher import VARIANTS_GENERATED, EventPublisher
from variant_engine.services.inventory_ledger import InventoryLedger
from variant_engine.services.pricing import PricingEngine
from variant_engine.services.sku_allocator import SkuAllocator, clean_segment
from variant_engine.services.variant_identity import build_config_hash, canonical_pairs
from variant_engine.services.variant_persistence import VariantPersistence
from variant_engine.utils.identifiers import parse_object_id


class _Plan:
    """Enumerated combinations split into new (priced and SKU'd) and existing"""

    def __init__(self):
        self.combinations: List[CandidateCombination] = []
        self.new: List[Tuple[str, CandidateCombination, PlannedVariant]] = []
        self.existing: List[Tuple[str, CandidateCombination, float]] = []
        self.warnings: List[str] = []


class VariantService:
    """Service for generating and managing product variants."""

    def __init__(
        self,
        generator: CombinationGenerator,
        persistence: VariantPersistence,
        variants: VariantRepository,
        ledger: InventoryLedger,
        pricing: Optional[PricingEngine] = None,
        sku_allocator: Optional[SkuAllocator] = None,
        publisher: Optional[EventPublisher] = None,
        audits: Optional[GenerationAuditRepository] = None
    ):
        self.generator = generator
        self.persistence = persistence
        self.variants = variants
        self.ledger = ledger
        self.pricing = pricing or PricingEngine()
        self.sku_allocator = sku_allocator or SkuAllocator()
        self.publisher = publisher
        self.audits = audits

    async def _plan(
        self,
        product_id: str,
        request: GenerateVariantsRequest,
        correlation_id: Optional[str]
    ) -> _Plan:
        """
        Enumerate, price and allocate SKUs.

        Configurations already stored for the product are set aside before SKU
        allocation so they do not consume SKUs.
        """
        base = request.base_product_data
        plan = _Plan()
        plan.combinations = await self.generator.generate(product_id, request.selections, correlation_id)

        hashes = [build_config_hash(product_id, c.pairs) for c in plan.combinations]
        existing_hashes = await self.variants.find_existing_hashes(
            parse_object_id(product_id, "product_id"), hashes, correlation_id=correlation_id
        )
        existing_skus = await self.variants.find_skus_with_prefix(
            clean_segment(base.sku_base), correlation_id=correlation_id
        )

        for config_hash, combination in zip(hashes, plan.combinations):
            quote = self.pricing.quote(base.price, combination.values)
            if config_hash in existing_hashes:
                plan.existing.append((config_hash, combination, quote.amount))
                continue
            sku = self.sku_allocator.allocate(
                base.sku_base, combination.values, existing_skus, correlation_id
            )
            if quote.clamped:
                message = f"Price for {sku} was negative and has been clamped to 0.00"
                plan.warnings.append(message)
                logger.warning(message, correlation_id=correlation_id,
                               metadata={"sku": sku, "base_price": base.price})
            plan.new.append((config_hash, combination, PlannedVariant(
                pairs=combination.pairs, price=quote.amount, sku=sku
            )))
        return plan

    async def preview(
        self,
        product_id: str,
        request: GenerateVariantsRequest,
        correlation_id: Optional[str] = None
    ) -> GenerateVariantsPreview:
        """Dry run of ``generate``: nothing is written and no event is published."""
        plan = await self._plan(product_id, request, correlation_id)

        def attributes(combination: CandidateCombination) -> List[VariantAttributePair]:
            return [
                VariantAttributePair(attribute_type_id=type_id, attribute_value_id=value_id)
                for type_id, value_id in canonical_pairs(combination.pairs)
            ]

        rows = [
            PreviewVariant(attributes=attributes(c), config_hash=h, price=p.price, sku=p.sku)
            for h, c, p in plan.new
        ] + [
            PreviewVariant(attributes=attributes(c), config_hash=h, price=price, exists=True)
            for h, c, price in plan.existing
        ]

        logger.info(
            f"Previewed variants for product {product_id}",
            correlation_id=correlation_id,
            metadata={
                "product_id": product_id,
                "total_candidates": len(plan.combinations),
                "new": len(plan.new),
                "existing": len(plan.existing),
            }
        )
        return GenerateVariantsPreview(
            total_candidates=len(plan.combinations),
            new_count=len(plan.new),
            existing_count=len(plan.existing),
            variants=rows,
            warnings=plan.warnings,
        )

    async def generate(
        self,
        product_id: str,
        request: GenerateVariantsRequest,
        correlation_id: Optional[str] = None
    ) -> GenerateVariantsResponse:
        """
        Generate every valid variant of a product.

        Args:
            product_id: Product to generate variants for
            request: Attribute selections and base product data
            correlation_id: Correlation ID for logging

        Returns:
            Created variants plus candidate, skip and warning counts

        Raises:
            ErrorResponse: On invalid selections, unsatisfiable rules, SKU
                exhaustion or persistence failure
        """
        base = request.base_product_data
        start_time = time.time()
        batch_id = uuid.uuid4().hex
        logger.info(
            f"Generating variants for product {product_id}",
            correlation_id=correlation_id,
            metadata={
                "product_id": product_id,
                "batch_id": batch_id,
                "selections": len(request.selections),
                "sku_base": base.sku_base,
            }
        )

        try:
            plan = await self._plan(product_id, request, correlation_id)

            async def init_inventory(doc: Dict[str, Any], session: AsyncIOMotorClientSession):
                await self.ledger.initialize(
                    str(doc["_id"]),
                    product_id=str(doc["product_id"]),
                    sku=doc["sku"],
                    seed=base.stock,
                    threshold=base.low_stock_threshold,
                    performed_by=base.created_by,
                    session=session,
                    correlation_id=correlation_id,
                )

            async def record_audit(result: PersistResult, session: AsyncIOMotorClientSession):
                if self.audits is None:
                    return
                await self.audits.insert({
                    "batch_id": batch_id,
                    "product_id": parse_object_id(product_id, "product_id"),
                    "action": GenerationAction.GENERATE.value,
                    "generated_by": base.created_by,
                    "selections": [s.model_dump() for s in request.selections],
                    "total_candidates": len(plan.combinations),
                    "total_generated": len(result.created),
                    "total_skipped": len(plan.existing) + result.skipped,
                    "race_retries": result.retries,
                    "duration_ms": int((time.time() - start_time) * 1000),
                    "created_at": datetime.now(timezone.utc),
                }, session=session, correlation_id=correlation_id)

            result = await self.persistence.persist(
                product_id,
                [planned for _, _, planned in plan.new],
                created_by=base.created_by,
                on_created=init_inventory,
                on_batch=record_audit,
                batch_id=batch_id,
                correlation_id=correlation_id,
            )

        except ErrorResponse:
            raise
        except Exception as e:
            logger.error(
                f"Failed to generate variants for product {product_id}",
                correlation_id=correlation_id,
                error=e,
                metadata={"product_id": product_id}
            )
            raise

        response = GenerateVariantsResponse(
            batch_id=batch_id,
            total_generated=len(result.created),
            total_candidates=len(plan.combinations),
            skipped_duplicates=len(plan.existing) + result.skipped,
            variants=result.created,
            warnings=plan.warnings,
        )

        if result.created:
            await self._publish_generated(product_id, response, correlation_id)

        logger.info(
            f"Generated {response.total_generated} variants for product {product_id}",
            correlation_id=correlation_id,
            metadata={
                "product_id": product_id,
                "batch_id": batch_id,
                "total_generated": response.total_generated,
                "total_candidates": response.total_candidates,
                "skipped_duplicates": response.skipped_duplicates,
            }
        )
        logger.performance(
            "generate_variants",
            int((time.time() - start_time) * 1000),
            threshold_ms=config.generation_slow_ms,
            metadata={
                "product_id": product_id,
                "batch_id": batch_id,
                "total_candidates": response.total_candidates,
                "total_generated": response.total_generated,
            },
            correlation_id=correlation_id,
        )
        return response

    async def list_audits(
        self,
        product_id: str,
        limit: int = 50,
        correlation_id: Optional[str] = None
    ) -> List[GenerationAudit]:
        if self.audits is None:
            return []
        return await self.audits.list_by_product(product_id, limit, correlation_id)

    async def _publish_generated(
        self,
        product_id: str,
        response: GenerateVariantsResponse,
        correlation_id: Optional[str]
    ):
        if self.publisher is None:
            return
        try:
            await self.publisher.publish(
                VARIANTS_GENERATED,
                {
                    "productId": product_id,
                    "totalGenerated": response.total_generated,
                    "variants": [{"variantId": v.id, "sku": v.sku, "price": v.price} for v in response.variants],
                },
                correlation_id=correlation_id,
            )
        except Exception as e:
            # Variants are committed; the event is best effort
            logger.error(
                "Failed to publish variants.generated event",
                correlation_id=correlation_id,
                error=e,
                metadata={"product_id": product_id}
            )

    async def list_variants(
        self,
        product_id: str,
        include_deleted: bool = False,
        correlation_id: Optional[str] = None
    ) -> List[VariantConfiguration]:
        return await self.variants.list_by_product(product_id, include_deleted, correlation_id)

    async def get_variant(self, variant_id: str, correlation_id: Optional[str] = None) -> VariantConfiguration:
        variant = await self.variants.get_by_id(variant_id, correlation_id)
        if variant is None:
            raise VariantNotFound(f"Variant {variant_id} not found", details={"variant_id": variant_id})
        return variant

    async def update_variant(
        self,
        variant_id: str,
        update: VariantUpdate,
        correlation_id: Optional[str] = None
    ) -> VariantConfiguration:
        """Explicit admin edit. Regeneration never overwrites these fields."""
        fields = update.model_dump(exclude_none=True, mode="json")
        if not {"price", "status"} & fields.keys():
            raise ErrorResponse("No updatable fields supplied", status_code=400)

        variant = await self.variants.update(variant_id, fields, correlation_id)
        if variant is None:
            raise VariantNotFound(f"Variant {variant_id} not found", details={"variant_id": variant_id})

        logger.info(
            f"Variant {variant_id} updated",
            correlation_id=correlation_id,
            metadata={"variant_id": variant_id, "fields": sorted(fields)}
        )
        return variant

    async def delete_variant(
        self,
        variant_id: str,
        deleted_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        deleted = await self.variants.soft_delete(variant_id, deleted_by, correlation_id)
        if not deleted:
            raise VariantNotFound(f"Variant {variant_id} not found", details={"variant_id": variant_id})
        logger.info(
            f"Variant {variant_id} soft deleted",
            correlation_id=correlation_id,
            metadata={"variant_id": variant_id, "deleted_by": deleted_by}
        )
