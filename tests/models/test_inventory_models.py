"""Tests for inventory models and request validation"""
import pytest
from pydantic import ValidationError

from variant_engine.models.inventory import (
    AdjustStockRequest,
    InventoryRecord,
    InventoryStatus,
    RestockRequest,
    StockMutation,
    TransactionType,
    TransferRequest,
)


@pytest.mark.parametrize("available,threshold,discontinued,expected", [
    (10, 5, False, InventoryStatus.IN_STOCK),
    (5, 5, False, InventoryStatus.IN_STOCK),
    (4, 5, False, InventoryStatus.LOW_STOCK),
    (0, 5, False, InventoryStatus.OUT_OF_STOCK),
    (10, 5, True, InventoryStatus.DISCONTINUED),
])
def test_record_status(available, threshold, discontinued, expected):
    record = InventoryRecord(
        id="i", variant_id="v", total_stock=available, available_stock=available,
        low_stock_threshold=threshold, discontinued=discontinued,
    )
    assert record.status == expected


def test_status_is_serialized():
    record = InventoryRecord(id="i", variant_id="v")
    assert record.model_dump()["status"] == InventoryStatus.OUT_OF_STOCK


class TestStockMutation:

    def test_reserve_needs_available(self):
        mutation = StockMutation(type=TransactionType.RESERVED, quantity=3, reserved_delta=3)
        assert mutation.available_delta == -3
        assert mutation.required_available == 3
        assert mutation.required_reserved == 0

    def test_release_needs_reserved(self):
        mutation = StockMutation(type=TransactionType.RELEASED, quantity=-2, reserved_delta=-2)
        assert mutation.available_delta == 2
        assert mutation.required_available == 0
        assert mutation.required_reserved == 2

    def test_transfer_moves_between_warehouses(self):
        mutation = StockMutation(type=TransactionType.TRANSFER, quantity=4,
                                 warehouse_from="A", warehouse_to="B")
        assert mutation.warehouse_deltas == {"A": -4, "B": 4}
        assert mutation.required_available == 0

    def test_plain_restock_has_no_warehouse(self):
        mutation = StockMutation(type=TransactionType.IN, quantity=4, total_delta=4)
        assert mutation.warehouse_deltas == {}


class TestRequests:

    def test_adjust_rejects_zero(self):
        with pytest.raises(ValidationError):
            AdjustStockRequest(delta=0, reason="count")

    def test_adjust_requires_reason(self):
        with pytest.raises(ValidationError):
            AdjustStockRequest(delta=1, reason="")

    def test_warehouse_codes_are_normalized(self):
        assert RestockRequest(quantity=1, warehouse=" wh-east ").warehouse == "WH-EAST"

    def test_bad_warehouse_code(self):
        with pytest.raises(ValidationError):
            RestockRequest(quantity=1, warehouse="east/1")

    def test_transfer_to_same_warehouse(self):
        with pytest.raises(ValidationError):
            TransferRequest(from_warehouse="wh1", to_warehouse="WH1", quantity=1)
