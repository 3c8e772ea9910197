"""
Reservation repository: stock holds with an optional expiry
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClientSession
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from variant_engine.models.inventory import ReservationStatus
from variant_engine.repositories.base_repository import BaseRepository


class ReservationRepository(BaseRepository):
    """Repository for ``inventory_reservations`` documents"""

    async def create(
        self,
        document: Dict[str, Any],
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        try:
            result = await self.collection.insert_one(document, session=session)
        except PyMongoError as e:
            raise self._failure("create reservation", e, correlation_id)
        document["_id"] = result.inserted_id
        return document

    async def settle(
        self,
        variant_id: ObjectId,
        reference_id: str,
        quantity: int,
        outcome: ReservationStatus,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> int:
        """
        Draw ``quantity`` units from the active holds of ``reference_id``,
        oldest first. A hold drawn down to zero takes the ``outcome`` status.

        Returns:
            Units actually drawn from holds
        """
        drawn = 0
        while drawn < quantity:
            left = quantity - drawn
            now = datetime.now(timezone.utc)
            remaining_after = {"$subtract": ["$remaining", left]}
            try:
                before = await self.collection.find_one_and_update(
                    {
                        "variant_id": variant_id,
                        "reference_id": reference_id,
                        "status": ReservationStatus.ACTIVE.value,
                    },
                    [{"$set": {
                        "remaining": {"$max": [remaining_after, 0]},
                        "status": {"$cond": [
                            {"$lte": [remaining_after, 0]},
                            {"$literal": outcome.value},
                            "$status",
                        ]},
                        "updated_at": {"$literal": now},
                    }}],
                    sort=[("created_at", 1), ("_id", 1)],
                    return_document=ReturnDocument.BEFORE,
                    session=session,
                )
            except PyMongoError as e:
                raise self._failure("settle reservation", e, correlation_id)
            if before is None:
                break
            drawn += min(before["remaining"], left)
        return drawn

    async def find_expired(
        self,
        now: datetime,
        limit: int,
        correlation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self.find_many(
            {"status": ReservationStatus.ACTIVE.value, "expires_at": {"$lte": now}},
            sort=[("expires_at", 1)],
            limit=limit,
            correlation_id=correlation_id,
        )

    async def claim_expired(
        self,
        reservation_id: ObjectId,
        now: datetime,
        session: Optional[AsyncIOMotorClientSession] = None,
        correlation_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Mark an expired hold EXPIRED; returns its pre-image, or None when
        another sweep or a settlement got there first.
        """
        try:
            return await self.collection.find_one_and_update(
                {
                    "_id": reservation_id,
                    "status": ReservationStatus.ACTIVE.value,
                    "expires_at": {"$lte": now},
                },
                {"$set": {
                    "status": ReservationStatus.EXPIRED.value,
                    "remaining": 0,
                    "updated_at": now,
                }},
                return_document=ReturnDocument.BEFORE,
                session=session,
            )
        except PyMongoError as e:
            raise self._failure("expire reservation", e, correlation_id)

    async def list_active(
        self,
        variant_id: ObjectId,
        correlation_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        return await self.find_many(
            {"variant_id": variant_id, "status": ReservationStatus.ACTIVE.value},
            sort=[("created_at", 1)],
            correlation_id=correlation_id,
        )
