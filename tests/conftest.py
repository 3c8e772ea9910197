"""Shared test fixtures"""
from types import SimpleNamespace

import pytest

from variant_engine.models.attribute import CompatibilityRule, FixedModifier, PercentageModifier
from variant_engine.services.inventory_ledger import InventoryLedger

from builders import build_engine, make_type, make_value, new_id
from fakes import FakeDatabase, FakeInventoryRepository, FakePublisher, FakeReservationRepository


@pytest.fixture
def phone_catalog():
    """Color x Storage, where Red cannot be combined with 512GB"""
    color = make_type("Color", priority=2)
    storage = make_type("Storage", priority=1)
    red = make_value(color, "Red", 1, "RED")
    blue = make_value(color, "Blue", 2, "BLU")
    s128 = make_value(storage, "128GB", 1, "128")
    s512 = make_value(
        storage, "512GB", 2, "512",
        modifiers=[FixedModifier(amount=200), PercentageModifier(amount=5)],
    )
    red_no_512 = CompatibilityRule(
        id=new_id(),
        parent_type_id=color.id,
        parent_value_id=red.id,
        child_type_id=storage.id,
        allowed_child_value_ids=[s512.id],
        is_forbidden=True,
    )
    return SimpleNamespace(
        color=color, storage=storage,
        red=red, blue=blue, s128=s128, s512=s512,
        types=[color, storage],
        values=[red, blue, s128, s512],
        rules=[red_no_512],
    )


@pytest.fixture
def phone_engine(phone_catalog):
    return build_engine(phone_catalog.types, phone_catalog.values, phone_catalog.rules)


@pytest.fixture
def inventory_repo():
    return FakeInventoryRepository()


@pytest.fixture
def reservation_repo():
    return FakeReservationRepository()


@pytest.fixture
def inventory_db(inventory_repo, reservation_repo):
    return FakeDatabase(inventory_repo, reservation_repo)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def ledger(inventory_repo, inventory_db, publisher, reservation_repo):
    return InventoryLedger(inventory_repo, inventory_db, publisher, reservation_repo, default_threshold=5)
