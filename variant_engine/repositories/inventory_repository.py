"""
Inventory repository: live stock counters and their ledger rows.

Counters live in ``inventory`` (one document per variant); ledger rows live in
``inventory_transactions``, one document per mutation. A stock mutation is

- a single ``find_one_and_update`` whose filter is the guard ("only if enough
  stock"), so concurrent writers are serialized by the server and a losing
  writer matches nothing, followed by
- the insert of its ledger row, with the before/after snapshots taken from
  the post-image of that same update.

Callers run both inside one transaction, so counters and ledger commit
together or not at all.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession, AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from variant_engine.models.inventory import StockMutation
from variant_engine.repositories.base_repository import BaseRepository


def build_guard(variant_id: ObjectId, mutation: StockMutation) -> Dict[str, Any]:
    """Filter that matches only when ``mutation`` can apply without going negative."""
    guard: Dict[str, Any] = {"variant_id": variant_id}
    if mutation.required_available:
        guard["available_stock"] = {"$gte": mutation.required_available}
    if mutation.required_reserved:
        guard["reserved_stock"] = {"$gte": mutation.required_reserved}
    if not mutation.allow_discontinued:
        guard["discontinued"] = {"$ne": True}
    for code, delta in mutation.warehouse_deltas.items():
        if delta < 0:
            guard[f"warehouses.{code}"] = {"$gte": -delta}
    return guard


def build_update(mutation: StockMutation, now: datetime) -> Dict[str, Any]:
    increments = {
        "total_stock": mutation.total_delta,
        "reserved_stock": mutation.reserved_delta,
        "available_stock": mutation.available_delta,
    }
    for code, delta in mutation.warehouse_deltas.items():
        increments[f"warehouses.{code}"] = delta
    return {"$inc": increments, "$set": {"updated_at": now}}


def build_ledger_row(
    record: Dict[str, Any],
    mutation: StockMutation,
    entry_id: ObjectId,
    now: datetime
) -> Dict[str, Any]:
    """Ledger row for ``mutation`` given the record's post-image."""
    return {
        "_id": entry_id,
        "inventory_id": record["_id"],
        "variant_id": record["variant_id"],
        "type": mutation.type.value,
        "quantity": mutation.quantity,
        "stock_before": record["total_stock"] - mutation.total_delta,
        "stock_after": record["total_stock"],
        "reserved_before": record["reserved_stock"] - mutation.reserved_delta,
        "reserved_after": record["reserved_stock"],
        "available_before": record["available_stock"] - mutation.available_delta,
        "available_after": record["available_stock"],
        "reference_type": mutation.reference_type.value,
        "reference_id": mutation.reference_id,
        "reason": mutation.reason,
        "warehouse_from": mutation.warehouse_from,
        "warehouse_to": mutation.warehouse_to,
        "performed_by": mutation.performed_by,
        "timestamp": now,
    }


class InventoryRepository(BaseRepository):
    """Repository for ``inventory`` documents and their ``inventory_transactions`` rows"""

    def __init__(self, collection: AsyncIOMotorCollection, transactions: AsyncIOMotorCollection):
        super().__init__(collection)
        self.transactions = transactions

    async def initialize(
        self,
        document: Dict[str, Any],
        initial_rows: Optional[List[Dict[str, Any]]] = None,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create the record for ``document['variant_id']`` unless one exists.

        ``initial_rows`` are written only when the record is actually created,
        so repeating the call neither resets stock nor duplicates rows.
        """
        variant_id = document["variant_id"]
        body = {k: v for k, v in document.items() if k != "variant_id"}
        try:
            result = await self.collection.update_one(
                {"variant_id": variant_id},
                {"$setOnInsert": body},
                upsert=True,
                session=session,
            )
            if result.upserted_id is not None and initial_rows:
                await self.transactions.insert_many(initial_rows, ordered=True, session=session)
        except PyMongoError as e:
            raise self._failure("initialize", e, correlation_id)

        return await self.find_one({"variant_id": variant_id}, session=session, correlation_id=correlation_id)

    async def apply(
        self,
        variant_id: ObjectId,
        mutation: StockMutation,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
        """
        Apply a guarded mutation and append its ledger row.

        Returns:
            ``(record, row)`` with the record's post-image, or None when the
            guard did not match (nothing was written).
        """
        now = datetime.now(timezone.utc)
        try:
            record = await self.collection.find_one_and_update(
                build_guard(variant_id, mutation),
                build_update(mutation, now),
                return_document=ReturnDocument.AFTER,
                session=session,
            )
            if record is None:
                return None
            row = build_ledger_row(record, mutation, ObjectId(), now)
            await self.transactions.insert_one(row, session=session)
        except PyMongoError as e:
            raise self._failure(f"stock {mutation.type.value.lower()}", e, correlation_id)
        return record, row

    async def get_by_variant(
        self,
        variant_id: ObjectId,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        return await self.find_one({"variant_id": variant_id}, session=session, correlation_id=correlation_id)

    async def history(
        self,
        variant_id: ObjectId,
        limit: int,
        correlation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Last ``limit`` ledger rows, newest first."""
        try:
            cursor = self.transactions.find({"variant_id": variant_id})
            cursor = cursor.sort([("timestamp", -1), ("_id", -1)]).limit(limit)
            return await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise self._failure("history", e, correlation_id)

    async def ledger_totals(
        self,
        variant_id: ObjectId,
        correlation_id: Optional[str] = None
    ) -> Dict[str, int]:
        """Sum of every row's total and reserved contribution, computed server side."""
        pipeline = [
            {"$match": {"variant_id": variant_id}},
            {"$group": {
                "_id": None,
                "total": {"$sum": {"$subtract": ["$stock_after", "$stock_before"]}},
                "reserved": {"$sum": {"$subtract": ["$reserved_after", "$reserved_before"]}},
                "rows": {"$sum": 1},
            }},
        ]
        try:
            results = await self.transactions.aggregate(pipeline).to_list(length=1)
        except PyMongoError as e:
            raise self._failure("ledger totals", e, correlation_id)
        if not results:
            return {"total": 0, "reserved": 0, "rows": 0}
        return {key: results[0][key] for key in ("total", "reserved", "rows")}

    async def set_discontinued(
        self,
        variant_id: ObjectId,
        performed_by: Optional[str] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one_and_update(
                {"variant_id": variant_id},
                {"$set": {
                    "discontinued": True,
                    "discontinued_by": performed_by,
                    "updated_at": datetime.now(timezone.utc),
                }},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise self._failure("discontinue", e, correlation_id)
