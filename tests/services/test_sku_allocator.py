"""Tests for SKU allocation"""
import pytest

from variant_engine.core.errors import SkuAllocationExhausted
from variant_engine.services.sku_allocator import SkuAllocator, clean_segment, fragment_for, suffix_for

from builders import make_type, make_value


@pytest.fixture
def allocator():
    return SkuAllocator(max_attempts=3, suffix_length=4)


class TestSkuAllocator:

    def test_candidate_uses_fragments_in_order(self, allocator, phone_catalog):
        sku = allocator.allocate("iphone-15", [phone_catalog.red, phone_catalog.s512], set())
        assert sku == "IPHONE15-RED-512"

    def test_fragment_falls_back_to_value_name(self):
        size = make_type("Size")
        assert fragment_for(make_value(size, "x-large")) == "XLA"
        assert fragment_for(make_value(size, "s", fragment="  ")) == "S"
        assert fragment_for(make_value(size, "---")) == "X"

    def test_clean_segment(self):
        assert clean_segment("ab c/9-") == "ABC9"
        assert clean_segment(None) == ""

    def test_collision_gets_deterministic_suffix(self, allocator, phone_catalog):
        existing = {"BASE-RED-128"}
        sku = allocator.allocate("BASE", [phone_catalog.red, phone_catalog.s128], existing)
        assert sku == f"BASE-RED-128-{suffix_for('BASE-RED-128', 1, 4)}"
        assert len(sku.rsplit("-", 1)[1]) == 4
        assert sku in existing

        again = SkuAllocator(max_attempts=3, suffix_length=4).allocate(
            "BASE", [phone_catalog.red, phone_catalog.s128], {"BASE-RED-128"}
        )
        assert again == sku

    def test_allocations_within_a_batch_are_unique(self, phone_catalog):
        allocator = SkuAllocator(max_attempts=5, suffix_length=4)
        existing = set()
        skus = [allocator.allocate("BASE", [phone_catalog.red], existing) for _ in range(4)]
        assert len(set(skus)) == 4

    def test_exhaustion(self, allocator, phone_catalog):
        candidate = "BASE-RED"
        existing = {candidate} | {f"{candidate}-{suffix_for(candidate, n, 4)}" for n in range(1, 4)}
        with pytest.raises(SkuAllocationExhausted) as exc_info:
            allocator.allocate("BASE", [phone_catalog.red], existing)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["attempts"] == 3
