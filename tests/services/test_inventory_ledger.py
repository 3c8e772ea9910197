"""Tests for the inventory ledger service"""
import asyncio
import random
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from variant_engine.core.errors import (
    ErrorResponse,
    InsufficientStock,
    InventoryDiscontinued,
    InventoryRecordNotFound,
)
from variant_engine.models.inventory import InventoryStatus, ReferenceType, ReservationStatus, TransactionType
from variant_engine.services.event_publisher import STOCK_LOW
from variant_engine.services.inventory_ledger import InventoryLedger

from builders import new_id
from fakes import FakeDatabase, FakeInventoryRepository, count_rows, ledger_rows


async def seeded(ledger, stock, threshold=None):
    variant_id = new_id()
    await ledger.initialize(variant_id, new_id(), "SKU-TEST", seed=stock, threshold=threshold)
    return variant_id


class TestInitialize:

    @pytest.mark.asyncio
    async def test_seed_stock_writes_initial_row(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 12)
        record = await ledger.get_record(variant_id)
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (12, 0, 12)
        assert record.low_stock_threshold == 5
        assert record.status == InventoryStatus.IN_STOCK

        rows = ledger_rows(inventory_repo, ObjectId(variant_id))
        assert len(rows) == 1
        assert rows[0]["type"] == TransactionType.IN.value
        assert rows[0]["reference_type"] == ReferenceType.INITIAL.value
        assert (rows[0]["stock_before"], rows[0]["stock_after"]) == (0, 12)

    @pytest.mark.asyncio
    async def test_zero_stock_is_out_of_stock_without_rows(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 0)
        record = await ledger.get_record(variant_id)
        assert record.status == InventoryStatus.OUT_OF_STOCK
        assert ledger_rows(inventory_repo, ObjectId(variant_id)) == []

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, ledger, inventory_repo):
        variant_id = new_id()
        first = await ledger.initialize(variant_id, seed=3)
        second = await ledger.initialize(variant_id, seed=50)
        assert first.id == second.id
        assert second.total_stock == 3
        assert len(inventory_repo.docs) == 1


class TestMutations:

    @pytest.mark.asyncio
    async def test_reserve_commit_release(self, ledger):
        variant_id = await seeded(ledger, 10)

        record = await ledger.reserve(variant_id, 4, reference_id="order-1")
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (10, 4, 6)

        record = await ledger.commit(variant_id, 3, reference_id="order-1")
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (7, 1, 6)

        record = await ledger.release(variant_id, 1, reference_id="order-1")
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (7, 0, 7)

        history = await ledger.history(variant_id)
        assert [row.type for row in history] == [
            TransactionType.RELEASED, TransactionType.OUT, TransactionType.RESERVED, TransactionType.IN,
        ]
        assert [row.quantity for row in history] == [-1, -3, 4, 10]
        assert history[0].reference_id == "order-1"

    @pytest.mark.asyncio
    async def test_insufficient_stock_writes_nothing(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 2)
        with pytest.raises(InsufficientStock) as exc_info:
            await ledger.reserve(variant_id, 3)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["available_stock"] == 2

        record = await ledger.get_record(variant_id)
        assert record.reserved_stock == 0
        assert len(ledger_rows(inventory_repo, ObjectId(variant_id))) == 1

    @pytest.mark.asyncio
    async def test_commit_and_release_need_reserved_stock(self, ledger):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 2)
        with pytest.raises(InsufficientStock):
            await ledger.commit(variant_id, 3)
        with pytest.raises(InsufficientStock):
            await ledger.release(variant_id, 3)

    @pytest.mark.asyncio
    async def test_missing_record(self, ledger):
        with pytest.raises(InventoryRecordNotFound):
            await ledger.reserve(new_id(), 1)
        with pytest.raises(InventoryRecordNotFound):
            await ledger.history(new_id())

    @pytest.mark.asyncio
    async def test_non_positive_quantity(self, ledger):
        variant_id = await seeded(ledger, 10)
        with pytest.raises(ErrorResponse) as exc_info:
            await ledger.reserve(variant_id, 0)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_adjust(self, ledger):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 4)

        record = await ledger.adjust(variant_id, -6, "cycle count")
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (4, 4, 0)

        with pytest.raises(InsufficientStock):
            await ledger.adjust(variant_id, -1, "shrinkage")

        record = await ledger.adjust(variant_id, 3, "found in back room")
        assert record.available_stock == 3

        with pytest.raises(ErrorResponse):
            await ledger.adjust(variant_id, 0, "noop")
        with pytest.raises(ErrorResponse):
            await ledger.adjust(variant_id, 1, "   ")

    @pytest.mark.asyncio
    async def test_discontinued_blocks_reserve_only(self, ledger):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 2)
        record = await ledger.discontinue(variant_id, performed_by="admin")
        assert record.status == InventoryStatus.DISCONTINUED

        with pytest.raises(InventoryDiscontinued):
            await ledger.reserve(variant_id, 1)

        record = await ledger.commit(variant_id, 2)
        assert record.total_stock == 8
        record = await ledger.adjust(variant_id, -8, "write-off")
        assert record.total_stock == 0

    @pytest.mark.asyncio
    async def test_restock_and_transfer(self, ledger):
        variant_id = await seeded(ledger, 0)
        record = await ledger.restock(variant_id, 10, warehouse="WH-A", reference_id="po-9")
        assert record.total_stock == 10
        assert record.warehouses == {"WH-A": 10}

        record = await ledger.transfer(variant_id, "WH-A", "WH-B", 4)
        assert record.warehouses == {"WH-A": 6, "WH-B": 4}
        assert record.total_stock == 10

        with pytest.raises(InsufficientStock) as exc_info:
            await ledger.transfer(variant_id, "WH-B", "WH-A", 5)
        assert exc_info.value.details["warehouse_stock"] == 4

        with pytest.raises(ErrorResponse):
            await ledger.transfer(variant_id, "WH-A", "WH-A", 1)

    @pytest.mark.asyncio
    async def test_return_restock(self, ledger):
        variant_id = await seeded(ledger, 1)
        await ledger.reserve(variant_id, 1)
        await ledger.commit(variant_id, 1)
        record = await ledger.restock(variant_id, 1, reference_type=ReferenceType.RETURN, reference_id="rma-1")
        assert record.available_stock == 1
        history = await ledger.history(variant_id, limit=1)
        assert history[0].reference_type == ReferenceType.RETURN


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_reserves_never_oversell(self, ledger, inventory_repo):
        stock, attempts = 7, 20
        variant_id = await seeded(ledger, stock)

        results = await asyncio.gather(
            *(ledger.reserve(variant_id, 1, reference_id=f"order-{n}") for n in range(attempts)),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(successes) == stock
        assert len(failures) == attempts - stock
        assert all(isinstance(f, InsufficientStock) for f in failures)

        record = await ledger.get_record(variant_id)
        assert record.available_stock == 0
        assert record.reserved_stock == stock
        assert count_rows(inventory_repo, ObjectId(variant_id), TransactionType.RESERVED) == stock


class TestLedgerConsistency:

    @pytest.mark.asyncio
    async def test_invariant_holds_after_random_operations(self, ledger):
        variant_id = await seeded(ledger, 25)
        rng = random.Random(1234)

        for _ in range(200):
            op = rng.choice(["reserve", "commit", "release", "adjust"])
            qty = rng.randint(1, 6)
            try:
                if op == "adjust":
                    await ledger.adjust(variant_id, rng.choice([-qty, qty]), "random walk")
                else:
                    await getattr(ledger, op)(variant_id, qty)
            except InsufficientStock:
                pass

            record = await ledger.get_record(variant_id)
            assert record.total_stock - record.reserved_stock == record.available_stock
            assert 0 <= record.reserved_stock <= record.total_stock

        verification = await ledger.verify(variant_id)
        assert verification.consistent, verification.issues
        assert verification.ledger_total == verification.total_stock
        assert verification.ledger_reserved == verification.reserved_stock

    @pytest.mark.asyncio
    async def test_verify_detects_drift(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 5)
        inventory_repo.docs[ObjectId(variant_id)]["total_stock"] = 9

        verification = await ledger.verify(variant_id)
        assert not verification.consistent
        assert verification.ledger_total == 5
        assert any("ledger total" in issue for issue in verification.issues)

    @pytest.mark.asyncio
    async def test_history_is_newest_first_and_limited(self, ledger):
        variant_id = await seeded(ledger, 10)
        for n in range(5):
            await ledger.reserve(variant_id, 1, reference_id=f"order-{n}")

        history = await ledger.history(variant_id, limit=3)
        assert [row.reference_id for row in history] == ["order-4", "order-3", "order-2"]
        assert all(row.variant_id == variant_id for row in history)


class TestLowStockEvents:

    @pytest.mark.asyncio
    async def test_event_on_entering_low_and_out_of_stock(self, ledger, publisher):
        variant_id = await seeded(ledger, 6)

        await ledger.reserve(variant_id, 1)
        assert publisher.events == []

        await ledger.reserve(variant_id, 2)
        assert publisher.topics() == [STOCK_LOW]
        assert publisher.events[0][1]["status"] == InventoryStatus.LOW_STOCK.value

        await ledger.reserve(variant_id, 1)
        assert len(publisher.events) == 1

        await ledger.reserve(variant_id, 2)
        assert publisher.topics() == [STOCK_LOW, STOCK_LOW]
        assert publisher.events[1][1]["status"] == InventoryStatus.OUT_OF_STOCK.value

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_mutation(self):
        class ExplodingPublisher:
            async def publish(self, topic, data, correlation_id=None):
                raise RuntimeError("sidecar down")

        repository = FakeInventoryRepository()
        ledger = InventoryLedger(repository, FakeDatabase(repository), ExplodingPublisher(), default_threshold=5)
        variant_id = await seeded(ledger, 1)
        record = await ledger.reserve(variant_id, 1)
        assert record.status == InventoryStatus.OUT_OF_STOCK


class TestTransactionalWrites:

    @pytest.mark.asyncio
    async def test_each_mutation_runs_in_one_transaction(self, ledger, inventory_db):
        variant_id = await seeded(ledger, 10)
        before = inventory_db.transactions

        await ledger.reserve(variant_id, 2, reference_id="order-1")
        await ledger.commit(variant_id, 2, reference_id="order-1")

        assert inventory_db.transactions == before + 2

    @pytest.mark.asyncio
    async def test_rows_carry_inventory_and_variant_ids(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 10)
        record = await ledger.reserve(variant_id, 3)

        rows = ledger_rows(inventory_repo, ObjectId(variant_id))
        assert len(rows) == 2
        assert all(str(row["inventory_id"]) == record.id for row in rows)
        assert (rows[1]["reserved_before"], rows[1]["reserved_after"]) == (0, 3)

    @pytest.mark.asyncio
    async def test_failed_follow_up_rolls_back_counters_and_row(self, inventory_repo, inventory_db, publisher):
        class BrokenReservations:
            def snapshot(self):
                return None

            def restore(self, state):
                pass

            async def create(self, document, session=None, correlation_id=None):
                raise RuntimeError("write conflict")

        ledger = InventoryLedger(
            inventory_repo, inventory_db, publisher, BrokenReservations(), default_threshold=5
        )
        variant_id = await seeded(ledger, 10)

        with pytest.raises(RuntimeError):
            await ledger.reserve(variant_id, 4, reference_id="order-1")

        record = await ledger.get_record(variant_id)
        assert (record.reserved_stock, record.available_stock) == (0, 10)
        assert count_rows(inventory_repo, ObjectId(variant_id), TransactionType.RESERVED) == 0

    @pytest.mark.asyncio
    async def test_verify_detects_broken_row_chain(self, ledger, inventory_repo):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 2)
        await ledger.reserve(variant_id, 1)
        ledger_rows(inventory_repo, ObjectId(variant_id))[1]["reserved_after"] = 5

        verification = await ledger.verify(variant_id)
        assert not verification.consistent
        assert verification.row_count == 3
        assert any("does not continue" in issue for issue in verification.issues)


class TestWarehouseCodes:

    @pytest.mark.asyncio
    async def test_restock_normalizes_code(self, ledger):
        variant_id = await seeded(ledger, 0)
        record = await ledger.restock(variant_id, 2, warehouse=" wh-a ")
        assert record.warehouses == {"WH-A": 2}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["WH A", "WH.1", "", "X" * 33])
    async def test_invalid_restock_code_is_rejected(self, ledger, inventory_repo, code):
        variant_id = await seeded(ledger, 0)
        with pytest.raises(ErrorResponse) as exc_info:
            await ledger.restock(variant_id, 2, warehouse=code)
        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"warehouse": code}
        assert ledger_rows(inventory_repo, ObjectId(variant_id)) == []

    @pytest.mark.asyncio
    async def test_invalid_transfer_code_is_rejected(self, ledger):
        variant_id = await seeded(ledger, 0)
        await ledger.restock(variant_id, 5, warehouse="WH-A")

        with pytest.raises(ErrorResponse) as exc_info:
            await ledger.transfer(variant_id, "WH-A", "WH/B", 1)
        assert exc_info.value.status_code == 400
        assert exc_info.value.details == {"to_warehouse": "WH/B"}

    @pytest.mark.asyncio
    async def test_transfer_compares_normalized_codes(self, ledger):
        variant_id = await seeded(ledger, 0)
        await ledger.restock(variant_id, 5, warehouse="WH-A")
        with pytest.raises(ErrorResponse) as exc_info:
            await ledger.transfer(variant_id, "WH-A", "wh-a", 1)
        assert "must differ" in exc_info.value.message


class TestReservationHolds:

    @pytest.mark.asyncio
    async def test_reserve_with_reference_creates_hold_with_default_ttl(self, ledger, reservation_repo):
        variant_id = await seeded(ledger, 10)
        started = datetime.now(timezone.utc)

        await ledger.reserve(variant_id, 3, reference_id="order-1")

        [hold] = reservation_repo.for_reference("order-1")
        assert hold["variant_id"] == ObjectId(variant_id)
        assert (hold["quantity"], hold["remaining"]) == (3, 3)
        assert hold["status"] == ReservationStatus.ACTIVE.value
        assert hold["expires_at"] >= started + timedelta(seconds=1800)

    @pytest.mark.asyncio
    async def test_reserve_without_reference_is_untracked(self, ledger, reservation_repo):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 3)
        assert reservation_repo.docs == {}

        with pytest.raises(ErrorResponse) as exc_info:
            await ledger.reserve(variant_id, 1, expires_at=datetime.now(timezone.utc))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_commit_and_release_settle_holds(self, ledger, reservation_repo):
        variant_id = await seeded(ledger, 10)
        await ledger.reserve(variant_id, 3, reference_id="order-1")
        await ledger.reserve(variant_id, 2, reference_id="order-2")

        await ledger.commit(variant_id, 3, reference_id="order-1")
        await ledger.release(variant_id, 1, reference_id="order-2")

        [first] = reservation_repo.for_reference("order-1")
        [second] = reservation_repo.for_reference("order-2")
        assert (first["status"], first["remaining"]) == (ReservationStatus.COMMITTED.value, 0)
        assert (second["status"], second["remaining"]) == (ReservationStatus.ACTIVE.value, 1)

        active = await ledger.active_reservations(variant_id)
        assert [r.reference_id for r in active] == ["order-2"]


class TestReservationExpiry:

    @pytest.mark.asyncio
    async def test_expired_hold_is_released(self, ledger, inventory_repo, reservation_repo):
        variant_id = await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        await ledger.reserve(variant_id, 4, reference_id="order-1", expires_at=now - timedelta(minutes=1))
        await ledger.reserve(variant_id, 2, reference_id="order-2", expires_at=now + timedelta(hours=1))

        result = await ledger.expire_reservations(now=now)

        assert (result.expired, result.released_units, result.unreleased, result.failed) == (1, 4, 0, 0)
        record = await ledger.get_record(variant_id)
        assert (record.reserved_stock, record.available_stock) == (2, 8)

        [hold] = reservation_repo.for_reference("order-1")
        assert (hold["status"], hold["remaining"]) == (ReservationStatus.EXPIRED.value, 0)

        released = ledger_rows(inventory_repo, ObjectId(variant_id))[-1]
        assert released["type"] == TransactionType.RELEASED.value
        assert released["reference_type"] == ReferenceType.ORDER.value
        assert released["reference_id"] == "order-1"
        assert released["reason"] == "Reservation expired"
        assert released["performed_by"] == "system"
        assert released["quantity"] == -4

    @pytest.mark.asyncio
    async def test_partially_committed_hold_releases_only_remainder(self, ledger):
        variant_id = await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        await ledger.reserve(variant_id, 5, reference_id="order-1", expires_at=now - timedelta(seconds=1))
        await ledger.commit(variant_id, 3, reference_id="order-1")

        result = await ledger.expire_reservations(now=now)

        assert result.released_units == 2
        record = await ledger.get_record(variant_id)
        assert (record.total_stock, record.reserved_stock, record.available_stock) == (7, 0, 7)

    @pytest.mark.asyncio
    async def test_second_sweep_is_a_no_op(self, ledger):
        variant_id = await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        await ledger.reserve(variant_id, 4, reference_id="order-1", expires_at=now - timedelta(seconds=1))

        await ledger.expire_reservations(now=now)
        again = await ledger.expire_reservations(now=now)

        assert again.expired == 0
        record = await ledger.get_record(variant_id)
        assert record.reserved_stock == 0

    @pytest.mark.asyncio
    async def test_hold_no_longer_covered_is_marked_unreleased(self, ledger, reservation_repo):
        variant_id = await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        await ledger.reserve(variant_id, 4, reference_id="order-1", expires_at=now - timedelta(seconds=1))
        # Released without a reference, so the hold is not settled
        await ledger.release(variant_id, 4)

        result = await ledger.expire_reservations(now=now)

        assert (result.expired, result.unreleased, result.released_units) == (1, 1, 0)
        record = await ledger.get_record(variant_id)
        assert (record.reserved_stock, record.available_stock) == (0, 10)
        [hold] = reservation_repo.for_reference("order-1")
        assert hold["status"] == ReservationStatus.EXPIRED.value

    @pytest.mark.asyncio
    async def test_failure_on_one_hold_does_not_stop_sweep(self, ledger, reservation_repo, inventory_repo):
        good, bad = await seeded(ledger, 10), await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        await ledger.reserve(bad, 1, reference_id="order-bad", expires_at=now - timedelta(minutes=2))
        await ledger.reserve(good, 3, reference_id="order-good", expires_at=now - timedelta(minutes=1))

        original_apply = inventory_repo.apply

        async def flaky_apply(variant_id, mutation, session=None, correlation_id=None):
            if variant_id == ObjectId(bad):
                raise RuntimeError("primary stepped down")
            return await original_apply(variant_id, mutation, session, correlation_id)

        inventory_repo.apply = flaky_apply
        result = await ledger.expire_reservations(now=now)

        assert (result.expired, result.failed, result.released_units) == (1, 1, 3)
        [bad_hold] = reservation_repo.for_reference("order-bad")
        assert bad_hold["status"] == ReservationStatus.ACTIVE.value
        assert (await ledger.get_record(bad)).reserved_stock == 1

    @pytest.mark.asyncio
    async def test_sweep_respects_limit(self, ledger):
        variant_id = await seeded(ledger, 10)
        now = datetime.now(timezone.utc)
        for n in range(3):
            await ledger.reserve(variant_id, 1, reference_id=f"order-{n}", expires_at=now - timedelta(seconds=n + 1))

        result = await ledger.expire_reservations(now=now, limit=2)

        assert result.expired == 2
        assert (await ledger.get_record(variant_id)).reserved_stock == 1
