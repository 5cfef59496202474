"""Tests for store-item edits, their propagation, and usage_mode sync."""

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from packages.common.errors import NotFoundError, ValidationError
from packages.common.models import LineItem, StockItem
from packages.common.schemas.purchase import (
    ItemSource,
    LineItemUpdate,
    NewStop,
    StoreItemUpdate,
    UsageMode,
)
from packages.domain.shopping import propagation_service, purchase_service, store_service
from packages.domain.shopping.schemas import StoreCreate


@pytest.fixture
async def store(db, household_id):
    store = await store_service.create_store(StoreCreate(household_id=household_id, name="Mart", state="IN"), db)
    await db.commit()
    return store


@pytest.fixture
async def mart_purchases(db, store, make_purchase):
    """Three Acme purchases at Mart: Milk (oz), Cheese (oz), Bread (lb)."""
    milk = await purchase_service.record_purchase(
        make_purchase(new_stop=NewStop(store_id=store.id), unit_measurement="oz"), db
    )
    cheese = await purchase_service.record_purchase(
        make_purchase(stop_id=milk.stop_id, item="Cheese", unit_measurement="oz"), db
    )
    bread = await purchase_service.record_purchase(
        make_purchase(stop_id=milk.stop_id, item="Bread", unit_measurement="lb"), db
    )
    return {"milk": milk.id, "cheese": cheese.id, "bread": bread.id}


async def test_unit_propagates_only_to_rows_with_old_value(db, household_id, store, mart_purchases, fetch_all):
    """Changing Milk's unit oz -> g changes Cheese (was oz) but not Bread (was lb)."""
    await propagation_service.update_store_item(
        household_id,
        store.id,
        mart_purchases["milk"],
        ItemSource.RECEIPT,
        StoreItemUpdate(unit="g"),
        db,
        propagate=True,
    )

    units = {li.item: li.unit_measurement for li in await fetch_all(db, LineItem)}
    assert units == {"Milk": "g", "Cheese": "g", "Bread": "lb"}

    stock_units = {si.name: si.unit_of_measure for si in await fetch_all(db, StockItem)}
    assert stock_units == {"Milk": "g", "Cheese": "g", "Bread": "lb"}


async def test_without_propagate_only_the_row_changes(db, household_id, store, mart_purchases, fetch_all):
    await propagation_service.update_store_item(
        household_id,
        store.id,
        mart_purchases["milk"],
        ItemSource.RECEIPT,
        StoreItemUpdate(unit="g"),
        db,
    )

    units = {li.item: li.unit_measurement for li in await fetch_all(db, LineItem)}
    assert units == {"Milk": "g", "Cheese": "oz", "Bread": "lb"}


async def test_brand_propagates_from_stock_item(db, household_id, store, mart_purchases, fetch_all):
    milk_stock = (await fetch_all(db, StockItem, StockItem.name == "Milk"))[0]

    await propagation_service.update_store_item(
        household_id,
        store.id,
        milk_stock.id,
        ItemSource.MANUAL,
        StoreItemUpdate(brand="Acme Farms"),
        db,
        propagate=True,
    )

    assert {li.brand for li in await fetch_all(db, LineItem)} == {"Acme Farms"}
    assert {si.brand for si in await fetch_all(db, StockItem)} == {"Acme Farms"}


async def test_brand_and_unit_edit_renames_siblings_but_keeps_their_unit(
    db, household_id, store, mart_purchases, fetch_all
):
    """The brand pass runs first; the unit pass then finds no sibling left under the old brand."""
    await propagation_service.update_store_item(
        household_id,
        store.id,
        mart_purchases["milk"],
        ItemSource.RECEIPT,
        StoreItemUpdate(brand="Acme Farms", unit="g"),
        db,
        propagate=True,
    )

    rows = {li.item: (li.brand, li.unit_measurement) for li in await fetch_all(db, LineItem)}
    assert rows == {
        "Milk": ("Acme Farms", "g"),
        "Cheese": ("Acme Farms", "oz"),
        "Bread": ("Acme Farms", "lb"),
    }


async def test_price_string_is_parsed(db, household_id, store, mart_purchases, fetch_all):
    await propagation_service.update_store_item(
        household_id,
        store.id,
        mart_purchases["milk"],
        ItemSource.RECEIPT,
        StoreItemUpdate(price="2.50"),
        db,
        propagate=True,
    )

    prices = {li.item: li.price_per_unit for li in await fetch_all(db, LineItem)}
    assert prices == {"Milk": Decimal("2.50"), "Cheese": Decimal("2.50"), "Bread": Decimal("2.50")}


def test_blank_price_string_means_no_price():
    assert StoreItemUpdate(price="").price is None
    assert StoreItemUpdate(price="abc").price is None
    assert StoreItemUpdate(price=" 1.25 ").price == Decimal("1.25")


def test_null_usage_mode_rejected():
    with pytest.raises(PydanticValidationError):
        StoreItemUpdate(usage_mode=None)

    assert StoreItemUpdate().usage_mode is None


async def test_blank_brand_rejected(db, household_id, store, mart_purchases):
    with pytest.raises(ValidationError):
        await propagation_service.update_store_item(
            household_id,
            store.id,
            mart_purchases["milk"],
            ItemSource.RECEIPT,
            StoreItemUpdate(brand="  "),
            db,
        )


async def test_unknown_store_not_found(db, household_id, mart_purchases):
    with pytest.raises(NotFoundError):
        await propagation_service.update_store_item(
            household_id,
            uuid.uuid4(),
            mart_purchases["milk"],
            ItemSource.RECEIPT,
            StoreItemUpdate(unit="g"),
            db,
        )


async def test_usage_mode_syncs_case_insensitively(db, household_id, make_purchase, fetch_all):
    """Setting quantity on one Acme/Milk sets it on acme/Milk and on both stock items."""
    upper = await purchase_service.record_purchase(make_purchase(), db)
    await purchase_service.record_purchase(
        make_purchase(brand="acme", new_stop=NewStop(store_name="Corner Shop")), db
    )
    await purchase_service.record_purchase(make_purchase(stop_id=upper.stop_id, item="Bread"), db)

    await purchase_service.update_line_item(
        upper.id, household_id, LineItemUpdate(usage_mode=UsageMode.QUANTITY), db
    )

    modes = {(li.brand, li.item): li.usage_mode for li in await fetch_all(db, LineItem)}
    assert modes == {
        ("Acme", "Milk"): "quantity",
        ("acme", "Milk"): "quantity",
        ("Acme", "Bread"): "count",
    }

    stock_modes = {(si.brand, si.name): si.usage_mode for si in await fetch_all(db, StockItem)}
    assert stock_modes == {
        ("Acme", "Milk"): "quantity",
        ("acme", "Milk"): "quantity",
        ("Acme", "Bread"): "count",
    }


async def test_usage_mode_from_store_item_edit(db, household_id, store, mart_purchases, fetch_all):
    milk_stock = (await fetch_all(db, StockItem, StockItem.name == "Milk"))[0]

    await propagation_service.update_store_item(
        household_id,
        store.id,
        milk_stock.id,
        ItemSource.MANUAL,
        StoreItemUpdate(usage_mode=UsageMode.QUANTITY),
        db,
    )

    milk_rows = await fetch_all(db, LineItem, LineItem.item == "Milk")
    assert [li.usage_mode for li in milk_rows] == ["quantity"]
    cheese_rows = await fetch_all(db, LineItem, LineItem.item == "Cheese")
    assert [li.usage_mode for li in cheese_rows] == ["count"]


async def test_usage_mode_sync_stays_in_household(db, household_id, make_purchase, fetch_all):
    other = make_purchase(household_id=uuid.uuid4())
    await purchase_service.record_purchase(other, db)
    mine = await purchase_service.record_purchase(make_purchase(), db)

    await propagation_service.sync_usage_mode(household_id, "ACME", "milk", UsageMode.QUANTITY, db)

    rows = await fetch_all(db, LineItem)
    modes = {li.id: li.usage_mode for li in rows}
    assert modes[mine.id] == "quantity"
    assert sorted(modes.values()) == ["count", "quantity"]
