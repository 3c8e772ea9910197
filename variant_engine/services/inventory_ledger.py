"""
Inventory Ledger Service

Owns the per-variant stock counters and their append-only audit trail.
Each mutation is one guarded counter update plus its ledger row, committed
together in a transaction; this service builds the mutation, explains a
failed guard, tracks reservation holds and reports low stock.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession

from variant_engine.core.config import config
from variant_engine.core.errors import (
    ErrorResponse,
    InsufficientStock,
    InventoryDiscontinued,
    InventoryRecordNotFound,
)
from variant_engine.core.logger import logger
from variant_engine.db.mongodb import Database
from variant_engine.models.inventory import (
    InventoryRecord,
    InventoryReservation,
    InventoryStatus,
    InventoryTransaction,
    LedgerVerification,
    ReferenceType,
    ReservationStatus,
    ReservationSweepResult,
    StockMutation,
    TransactionType,
    validate_warehouse_code,
)
from variant_engine.repositories.inventory_repository import InventoryRepository
from variant_engine.repositories.reservation_repository import ReservationRepository
from variant_engine.services.event_publisher import STOCK_LOW, EventPublisher
from variant_engine.utils.identifiers import parse_object_id

_ALERT_STATUSES = (InventoryStatus.LOW_STOCK, InventoryStatus.OUT_OF_STOCK)

SYSTEM_ACTOR = "system"

# Extra writes committed with a mutation: (variant_oid, record, session)
FollowUp = Callable[[ObjectId, Dict[str, Any], AsyncIOMotorClientSession], Awaitable[Any]]


def derive_status(available: int, threshold: int, discontinued: bool = False) -> InventoryStatus:
    if discontinued:
        return InventoryStatus.DISCONTINUED
    if available <= 0:
        return InventoryStatus.OUT_OF_STOCK
    if available < threshold:
        return InventoryStatus.LOW_STOCK
    return InventoryStatus.IN_STOCK


def _require_positive(quantity: int, field: str = "quantity"):
    if quantity <= 0:
        raise ErrorResponse(
            f"{field} must be a positive integer",
            status_code=400,
            details={field: quantity},
        )


def _warehouse(code: Optional[str], field: str) -> Optional[str]:
    try:
        return validate_warehouse_code(code)
    except ValueError as e:
        raise ErrorResponse(str(e), status_code=400, details={field: code})


def _not_found(variant_id: str) -> InventoryRecordNotFound:
    return InventoryRecordNotFound(
        f"No inventory record for variant {variant_id}",
        details={"variant_id": variant_id},
    )


class InventoryLedger:
    """Stock reservation, fulfilment and audit for variants"""

    def __init__(
        self,
        repository: InventoryRepository,
        database: Database,
        publisher: Optional[EventPublisher] = None,
        reservations: Optional[ReservationRepository] = None,
        default_threshold: Optional[int] = None
    ):
        self.repository = repository
        self.database = database
        self.publisher = publisher
        self.reservations = reservations
        self.default_threshold = (
            config.default_low_stock_threshold if default_threshold is None else default_threshold
        )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def build_initial_document(
        self,
        variant_id: ObjectId,
        product_id: Optional[ObjectId],
        sku: Optional[str],
        seed: int = 0,
        threshold: Optional[int] = None,
        performed_by: Optional[str] = None
    ) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
        """Inventory document for a new variant, and its IN row when seeded."""
        if seed < 0:
            raise ErrorResponse("Seed stock cannot be negative", status_code=400)

        now = datetime.now(timezone.utc)
        inventory_id = ObjectId()
        rows = []
        if seed:
            rows.append({
                "_id": ObjectId(),
                "inventory_id": inventory_id,
                "variant_id": variant_id,
                "type": TransactionType.IN.value,
                "quantity": seed,
                "stock_before": 0,
                "stock_after": seed,
                "reserved_before": 0,
                "reserved_after": 0,
                "available_before": 0,
                "available_after": seed,
                "reference_type": ReferenceType.INITIAL.value,
                "reference_id": str(variant_id),
                "reason": "Initial stock",
                "warehouse_from": None,
                "warehouse_to": None,
                "performed_by": performed_by,
                "timestamp": now,
            })

        document = {
            "_id": inventory_id,
            "variant_id": variant_id,
            "product_id": product_id,
            "sku": sku,
            "total_stock": seed,
            "reserved_stock": 0,
            "available_stock": seed,
            "low_stock_threshold": self.default_threshold if threshold is None else threshold,
            "discontinued": False,
            "warehouses": {},
            "created_at": now,
            "updated_at": now,
        }
        return document, rows

    async def initialize(
        self,
        variant_id: str,
        product_id: Optional[str] = None,
        sku: Optional[str] = None,
        seed: int = 0,
        threshold: Optional[int] = None,
        performed_by: Optional[str] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """
        Create the record for a variant; returns the existing one if already present.

        Joins the caller's transaction when ``session`` is given, otherwise
        runs in a transaction of its own.
        """
        document, rows = self.build_initial_document(
            parse_object_id(variant_id, "variant_id"),
            parse_object_id(product_id, "product_id") if product_id else None,
            sku,
            seed=seed,
            threshold=threshold,
            performed_by=performed_by,
        )

        async def write(tx_session: AsyncIOMotorClientSession) -> Dict[str, Any]:
            return await self.repository.initialize(
                document, rows, session=tx_session, correlation_id=correlation_id
            )

        stored = await write(session) if session is not None else await self.database.with_transaction(write)
        return InventoryRecord.from_document(stored)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _explain_rejection(
        self,
        variant_oid: ObjectId,
        mutation: StockMutation,
        correlation_id: Optional[str]
    ) -> ErrorResponse:
        """Work out which part of the guard failed; nothing has been written."""
        current = await self.repository.get_by_variant(variant_oid, correlation_id=correlation_id)
        variant_id = str(variant_oid)
        if current is None:
            return _not_found(variant_id)
        if current.get("discontinued") and not mutation.allow_discontinued:
            return InventoryDiscontinued(
                f"Variant {variant_id} is discontinued",
                details={"variant_id": variant_id},
            )

        details = {
            "variant_id": variant_id,
            "operation": mutation.type.value,
            "requested": mutation.quantity,
            "available_stock": current.get("available_stock", 0),
            "reserved_stock": current.get("reserved_stock", 0),
        }
        if mutation.warehouse_from:
            details["warehouse"] = mutation.warehouse_from
            details["warehouse_stock"] = current.get("warehouses", {}).get(mutation.warehouse_from, 0)
        return InsufficientStock(
            f"Insufficient stock for {mutation.type.value.lower()} on variant {variant_id}",
            details=details,
        )

    async def _apply(
        self,
        variant_id: str,
        mutation: StockMutation,
        correlation_id: Optional[str] = None,
        follow_up: Optional[FollowUp] = None
    ) -> InventoryRecord:
        variant_oid = parse_object_id(variant_id, "variant_id")

        async def write(session: AsyncIOMotorClientSession):
            applied = await self.repository.apply(
                variant_oid, mutation, session=session, correlation_id=correlation_id
            )
            if applied is not None and follow_up is not None:
                await follow_up(variant_oid, applied[0], session)
            return applied

        applied = await self.database.with_transaction(write)
        if applied is None:
            error = await self._explain_rejection(variant_oid, mutation, correlation_id)
            logger.warning(
                f"Stock {mutation.type.value} rejected: {error.message}",
                correlation_id=correlation_id,
                metadata=error.details,
            )
            raise error
        return await self._report(applied, correlation_id)

    async def _report(
        self,
        applied: Tuple[Dict[str, Any], Dict[str, Any]],
        correlation_id: Optional[str]
    ) -> InventoryRecord:
        """Log a committed mutation and alert when it crossed into low stock."""
        doc, row_doc = applied
        record = InventoryRecord.from_document(doc)
        row = InventoryTransaction.from_document(row_doc)
        logger.info(
            f"Stock {row.type.value} applied to variant {record.variant_id}",
            correlation_id=correlation_id,
            metadata={
                "variant_id": record.variant_id,
                "transaction_id": row.id,
                "quantity": row.quantity,
                "total_stock": record.total_stock,
                "reserved_stock": record.reserved_stock,
                "available_stock": record.available_stock,
                "reference_id": row.reference_id,
            },
        )

        previous_status = derive_status(row.available_before, record.low_stock_threshold, record.discontinued)
        if record.status in _ALERT_STATUSES and record.status != previous_status:
            await self._publish_low_stock(record, correlation_id)
        return record

    async def _publish_low_stock(self, record: InventoryRecord, correlation_id: Optional[str]):
        if self.publisher is None:
            return
        try:
            await self.publisher.publish(
                STOCK_LOW,
                {
                    "variantId": record.variant_id,
                    "productId": record.product_id,
                    "sku": record.sku,
                    "availableStock": record.available_stock,
                    "lowStockThreshold": record.low_stock_threshold,
                    "status": record.status.value,
                },
                correlation_id=correlation_id,
            )
        except Exception as e:
            # The stock change is committed, the alert is best effort
            logger.error(
                "Failed to publish low stock event",
                correlation_id=correlation_id,
                error=e,
                metadata={"variant_id": record.variant_id},
            )

    def _settle_holds(self, reference_id: Optional[str], quantity: int,
                      outcome: ReservationStatus, correlation_id: Optional[str]) -> Optional[FollowUp]:
        if self.reservations is None or not reference_id:
            return None

        async def settle(variant_oid, record, session):
            await self.reservations.settle(
                variant_oid, reference_id, quantity, outcome, session=session, correlation_id=correlation_id
            )

        return settle

    async def reserve(
        self,
        variant_id: str,
        quantity: int,
        reference_id: Optional[str] = None,
        performed_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """
        Hold ``quantity`` units for an order. Rejected once discontinued.

        With a ``reference_id`` the hold is tracked, and released by the
        expiry sweep unless committed or released first. ``expires_at``
        defaults to now plus the configured reservation TTL.
        """
        _require_positive(quantity)
        if expires_at is not None and not reference_id:
            raise ErrorResponse("expires_at requires a reference_id", status_code=400)
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        follow_up = None
        if self.reservations is not None and reference_id:
            now = datetime.now(timezone.utc)
            if expires_at is None and config.reservation_ttl_seconds > 0:
                expires_at = now + timedelta(seconds=config.reservation_ttl_seconds)

            async def create_hold(variant_oid, record, session):
                await self.reservations.create({
                    "variant_id": variant_oid,
                    "reference_id": reference_id,
                    "quantity": quantity,
                    "remaining": quantity,
                    "status": ReservationStatus.ACTIVE.value,
                    "expires_at": expires_at,
                    "performed_by": performed_by,
                    "created_at": now,
                    "updated_at": now,
                }, session=session, correlation_id=correlation_id)

            follow_up = create_hold

        return await self._apply(variant_id, StockMutation(
            type=TransactionType.RESERVED,
            quantity=quantity,
            reserved_delta=quantity,
            allow_discontinued=False,
            reference_type=ReferenceType.ORDER,
            reference_id=reference_id,
            performed_by=performed_by,
        ), correlation_id, follow_up)

    async def commit(
        self,
        variant_id: str,
        quantity: int,
        reference_id: Optional[str] = None,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """Ship reserved units: both total and reserved stock drop by ``quantity``."""
        _require_positive(quantity)
        return await self._apply(variant_id, StockMutation(
            type=TransactionType.OUT,
            quantity=-quantity,
            total_delta=-quantity,
            reserved_delta=-quantity,
            reference_type=ReferenceType.ORDER,
            reference_id=reference_id,
            performed_by=performed_by,
        ), correlation_id, self._settle_holds(reference_id, quantity, ReservationStatus.COMMITTED, correlation_id))

    async def release(
        self,
        variant_id: str,
        quantity: int,
        reference_id: Optional[str] = None,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        _require_positive(quantity)
        return await self._apply(variant_id, StockMutation(
            type=TransactionType.RELEASED,
            quantity=-quantity,
            reserved_delta=-quantity,
            reference_type=ReferenceType.ORDER,
            reference_id=reference_id,
            performed_by=performed_by,
        ), correlation_id, self._settle_holds(reference_id, quantity, ReservationStatus.RELEASED, correlation_id))

    async def adjust(
        self,
        variant_id: str,
        delta: int,
        reason: str,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """Correct total stock by a signed ``delta``; available stock may not go negative."""
        if delta == 0:
            raise ErrorResponse("delta must not be zero", status_code=400, details={"delta": delta})
        if not reason or not reason.strip():
            raise ErrorResponse("An adjustment reason is required", status_code=400)
        return await self._apply(variant_id, StockMutation(
            type=TransactionType.ADJUSTMENT,
            quantity=delta,
            total_delta=delta,
            reference_type=ReferenceType.ADJUSTMENT,
            reason=reason.strip(),
            performed_by=performed_by,
        ), correlation_id)

    async def restock(
        self,
        variant_id: str,
        quantity: int,
        reference_type: ReferenceType = ReferenceType.PURCHASE,
        reference_id: Optional[str] = None,
        warehouse: Optional[str] = None,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """Receive units from a purchase or a customer return."""
        _require_positive(quantity)
        return await self._apply(variant_id, StockMutation(
            type=TransactionType.IN,
            quantity=quantity,
            total_delta=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            warehouse_to=_warehouse(warehouse, "warehouse"),
            performed_by=performed_by,
        ), correlation_id)

    async def transfer(
        self,
        variant_id: str,
        from_warehouse: str,
        to_warehouse: str,
        quantity: int,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        """Move allocated units between warehouses; counters are unchanged."""
        _require_positive(quantity)
        from_code = _warehouse(from_warehouse, "from_warehouse")
        to_code = _warehouse(to_warehouse, "to_warehouse")
        if not from_code or not to_code:
            raise ErrorResponse("Both warehouses are required for a transfer", status_code=400)
        if from_code == to_code:
            raise ErrorResponse("Source and destination warehouse must differ", status_code=400)
        return await self._apply(variant_id, StockMutation(
            type=TransactionType.TRANSFER,
            quantity=quantity,
            reference_type=ReferenceType.TRANSFER,
            warehouse_from=from_code,
            warehouse_to=to_code,
            performed_by=performed_by,
        ), correlation_id)

    async def discontinue(
        self,
        variant_id: str,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> InventoryRecord:
        variant_oid = parse_object_id(variant_id, "variant_id")
        doc = await self.repository.set_discontinued(variant_oid, performed_by, correlation_id)
        if doc is None:
            raise _not_found(str(variant_oid))
        logger.info(
            f"Variant {variant_oid} discontinued",
            correlation_id=correlation_id,
            metadata={"variant_id": str(variant_oid), "performed_by": performed_by},
        )
        return InventoryRecord.from_document(doc)

    # ------------------------------------------------------------------
    # Reservation expiry
    # ------------------------------------------------------------------

    async def expire_reservations(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        correlation_id: Optional[str] = None
    ) -> ReservationSweepResult:
        """
        Release the units of every hold whose ``expires_at`` has passed.

        Each hold is claimed and released in its own transaction, so one bad
        record does not stop the sweep.
        """
        result = ReservationSweepResult()
        if self.reservations is None:
            return result

        now = now or datetime.now(timezone.utc)
        limit = limit or config.reservation_sweep_batch_size
        expired = await self.reservations.find_expired(now, limit, correlation_id=correlation_id)

        for hold in expired:
            try:
                outcome = await self._expire_one(hold, now, correlation_id)
            except Exception as e:
                result.failed += 1
                logger.error(
                    "Failed to expire reservation",
                    correlation_id=correlation_id,
                    error=e,
                    metadata={"reservation_id": str(hold["_id"]), "variant_id": str(hold["variant_id"])},
                )
                continue

            if outcome is None:
                continue
            result.expired += 1
            if outcome[1] is None:
                result.unreleased += 1
            else:
                result.released_units += outcome[0]["remaining"]
                await self._report(outcome[1], correlation_id)

        if expired:
            logger.info(
                f"Reservation sweep expired {result.expired} holds",
                correlation_id=correlation_id,
                metadata=result.model_dump(),
            )
        return result

    async def _expire_one(self, hold: Dict[str, Any], now: datetime, correlation_id: Optional[str]):
        """Returns ``(claimed_hold, applied)``, or None when the hold was already settled."""

        async def write(session: AsyncIOMotorClientSession):
            claimed = await self.reservations.claim_expired(
                hold["_id"], now, session=session, correlation_id=correlation_id
            )
            if claimed is None or claimed["remaining"] <= 0:
                return None if claimed is None else (claimed, None)
            mutation = StockMutation(
                type=TransactionType.RELEASED,
                quantity=-claimed["remaining"],
                reserved_delta=-claimed["remaining"],
                reference_type=ReferenceType.ORDER,
                reference_id=claimed.get("reference_id"),
                reason="Reservation expired",
                performed_by=SYSTEM_ACTOR,
            )
            applied = await self.repository.apply(
                claimed["variant_id"], mutation, session=session, correlation_id=correlation_id
            )
            if applied is None:
                # Counters no longer cover the hold; keep it EXPIRED so it is not retried
                logger.warning(
                    "Expired reservation could not be released",
                    correlation_id=correlation_id,
                    metadata={
                        "reservation_id": str(claimed["_id"]),
                        "variant_id": str(claimed["variant_id"]),
                        "remaining": claimed["remaining"],
                    },
                )
            return claimed, applied

        return await self.database.with_transaction(write)

    async def active_reservations(
        self,
        variant_id: str,
        correlation_id: Optional[str] = None
    ) -> List[InventoryReservation]:
        if self.reservations is None:
            return []
        variant_oid = parse_object_id(variant_id, "variant_id")
        docs = await self.reservations.list_active(variant_oid, correlation_id=correlation_id)
        return [InventoryReservation.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(self, variant_id: str, correlation_id: Optional[str] = None) -> InventoryRecord:
        variant_oid = parse_object_id(variant_id, "variant_id")
        doc = await self.repository.get_by_variant(variant_oid, correlation_id=correlation_id)
        if doc is None:
            raise _not_found(str(variant_oid))
        return InventoryRecord.from_document(doc)

    async def history(
        self,
        variant_id: str,
        limit: Optional[int] = None,
        correlation_id: Optional[str] = None
    ) -> List[InventoryTransaction]:
        """Most recent ledger rows, newest first."""
        limit = limit or config.history_default_limit
        limit = max(1, min(limit, config.history_max_limit))
        variant_oid = parse_object_id(variant_id, "variant_id")
        rows = await self.repository.history(variant_oid, limit, correlation_id=correlation_id)
        if not rows and await self.repository.get_by_variant(variant_oid, correlation_id=correlation_id) is None:
            raise _not_found(str(variant_oid))
        return [InventoryTransaction.from_document(row) for row in rows]

    async def verify(self, variant_id: str, correlation_id: Optional[str] = None) -> LedgerVerification:
        """Recompute counters from the ledger and compare them with the live record."""
        variant_oid = parse_object_id(variant_id, "variant_id")
        doc = await self.repository.get_by_variant(variant_oid, correlation_id=correlation_id)
        if doc is None:
            raise _not_found(str(variant_oid))

        record = InventoryRecord.from_document(doc)
        totals = await self.repository.ledger_totals(variant_oid, correlation_id=correlation_id)
        recent = await self.repository.history(
            variant_oid, config.history_max_limit, correlation_id=correlation_id
        )
        rows = [InventoryTransaction.from_document(row) for row in reversed(recent)]

        issues = []
        if record.available_stock != record.total_stock - record.reserved_stock:
            issues.append("available_stock != total_stock - reserved_stock")
        if record.reserved_stock > record.total_stock:
            issues.append("reserved_stock exceeds total_stock")
        if min(record.total_stock, record.reserved_stock, record.available_stock) < 0:
            issues.append("negative counter")
        if totals["total"] != record.total_stock:
            issues.append(f"ledger total {totals['total']} != total_stock {record.total_stock}")
        if totals["reserved"] != record.reserved_stock:
            issues.append(f"ledger reserved {totals['reserved']} != reserved_stock {record.reserved_stock}")
        for previous, row in zip(rows, rows[1:]):
            if row.stock_before != previous.stock_after or row.reserved_before != previous.reserved_after:
                issues.append(f"ledger row {row.id} does not continue from {previous.id}")
        if rows and (rows[-1].stock_after != record.total_stock
                     or rows[-1].reserved_after != record.reserved_stock):
            issues.append(f"latest ledger row {rows[-1].id} does not match the live counters")

        result = LedgerVerification(
            variant_id=record.variant_id,
            consistent=not issues,
            total_stock=record.total_stock,
            reserved_stock=record.reserved_stock,
            available_stock=record.available_stock,
            ledger_total=totals["total"],
            ledger_reserved=totals["reserved"],
            row_count=totals["rows"],
            issues=issues,
        )
        if issues:
            logger.error(
                f"Inventory ledger drift detected for variant {record.variant_id}",
                correlation_id=correlation_id,
                metadata={"variant_id": record.variant_id, "issues": issues},
            )
        return result
