"""Tests for the purchase reconciliation workflow."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import OperationalError
from structlog.testing import capture_logs

from packages.common.errors import NotFoundError, StockError, TransactionError, ValidationError
from packages.common.models import (
    CatalogEntry,
    LedgerEntry,
    LedgerSource,
    LineItem,
    SchedulerTask,
    ShoppingTrip,
    StockItem,
    StockSheet,
    Stop,
    ledger_entry_tags,
    line_item_tags,
)
from packages.common.schemas.purchase import LineItemUpdate, NewStop, UsageMode
from packages.domain.catalog.catalog_service import catalog_service
from packages.domain.ledger.ledger_service import ledger_service
from packages.domain.scheduler.scheduler_service import scheduler_service
from packages.domain.shopping import purchase_service, store_service
from packages.domain.shopping.schemas import StoreCreate
from packages.domain.tags import tag_service


async def test_record_purchase_links_line_item_and_entry(db, make_purchase, count_rows):
    """One purchase leaves exactly one line item and one entry pointing at each other."""
    line_item = await purchase_service.record_purchase(make_purchase(), db)

    assert await count_rows(db, LineItem) == 1
    assert await count_rows(db, LedgerEntry) == 1

    entry = await db.get(LedgerEntry, line_item.ledger_entry_id)
    assert entry.line_item_id == line_item.id
    assert entry.amount == Decimal("3.49")
    assert entry.type == "expense"
    assert entry.notes == "Purchase: Acme - Milk"
    assert entry.date == date(2024, 3, 5)


async def test_record_purchase_files_entry_under_store_source(db, make_purchase, count_rows):
    line_item = await purchase_service.record_purchase(make_purchase(), db)
    await purchase_service.record_purchase(make_purchase(item="Bread"), db)

    entry = await db.get(LedgerEntry, line_item.ledger_entry_id)
    source = await db.get(LedgerSource, entry.source_id)
    assert source.name == "Mart"
    assert source.type == "expense"
    assert source.amount == Decimal("0")
    assert await count_rows(db, LedgerSource) == 1


async def test_same_day_purchases_share_one_trip(db, make_purchase, count_rows):
    """Two purchases on 2024-03-05 land in one trip with a growing stop list."""
    first = await purchase_service.record_purchase(make_purchase(), db)
    second = await purchase_service.record_purchase(
        make_purchase(new_stop=NewStop(store_name="Corner Shop")), db
    )

    assert await count_rows(db, ShoppingTrip) == 1
    assert await count_rows(db, Stop) == 2

    first_stop = await db.get(Stop, first.stop_id)
    second_stop = await db.get(Stop, second.stop_id)
    assert first_stop.trip_id == second_stop.trip_id
    assert (first_stop.position, second_stop.position) == (1, 2)


async def test_purchases_on_different_days_get_separate_trips(db, make_purchase, count_rows):
    await purchase_service.record_purchase(make_purchase(), db)
    await purchase_service.record_purchase(make_purchase(date=date(2024, 3, 6)), db)

    assert await count_rows(db, ShoppingTrip) == 2


async def test_existing_stop_is_reused(db, make_purchase, count_rows):
    first = await purchase_service.record_purchase(make_purchase(), db)
    second = await purchase_service.record_purchase(
        make_purchase(stop_id=first.stop_id, item="Eggs"), db
    )

    assert second.stop_id == first.stop_id
    assert await count_rows(db, Stop) == 1


async def test_new_stop_matches_store_by_number_then_name(db, household_id, make_purchase):
    store = await store_service.create_store(
        StoreCreate(household_id=household_id, name="Mart", store_number="1234"), db
    )
    await db.commit()

    by_number = await purchase_service.record_purchase(
        make_purchase(new_stop=NewStop(store_number="1234", store_name="Receipt Header")), db
    )
    by_name = await purchase_service.record_purchase(
        make_purchase(new_stop=NewStop(store_name="mart"), item="Eggs"), db
    )

    for line_item in (by_number, by_name):
        stop = await db.get(Stop, line_item.stop_id)
        assert stop.store_id == store.id
        assert stop.store_name == "Mart"


async def test_stop_id_and_new_stop_together_rejected(db, make_purchase, count_rows):
    first = await purchase_service.record_purchase(make_purchase(), db)

    with pytest.raises(ValidationError):
        await purchase_service.record_purchase(
            make_purchase(stop_id=first.stop_id, new_stop=NewStop(store_name="Mart")), db
        )

    assert await count_rows(db, LineItem) == 1


async def test_unknown_stop_raises_not_found(db, make_purchase, count_rows):
    with pytest.raises(NotFoundError):
        await purchase_service.record_purchase(make_purchase(stop_id=uuid.uuid4()), db)

    assert await count_rows(db, LedgerEntry) == 0


async def test_store_of_other_household_raises_not_found(db, make_purchase, count_rows):
    foreign = await store_service.create_store(StoreCreate(household_id=uuid.uuid4(), name="Mart"), db)
    await db.commit()

    with pytest.raises(NotFoundError):
        await purchase_service.record_purchase(
            make_purchase(new_stop=NewStop(store_id=foreign.id, store_name="Mart")), db
        )

    assert await count_rows(db, Stop) == 0
    assert await count_rows(db, LedgerEntry) == 0


async def test_purchase_without_stop(db, make_purchase, count_rows):
    """No stop means no trip, no ledger source and no scheduler task."""
    line_item = await purchase_service.record_purchase(make_purchase(new_stop=None), db)

    assert line_item.stop_id is None
    entry = await db.get(LedgerEntry, line_item.ledger_entry_id)
    assert entry.source_id is None
    assert await count_rows(db, ShoppingTrip) == 0
    assert await count_rows(db, SchedulerTask) == 0


async def test_missing_date_falls_back_to_today_with_warning(db, make_purchase):
    with capture_logs() as logs:
        line_item = await purchase_service.record_purchase(make_purchase(date=None), db)

    entry = await db.get(LedgerEntry, line_item.ledger_entry_id)
    assert entry.date == datetime.now(timezone.utc).date()

    warnings = [log for log in logs if log["event"] == "purchase_missing_date"]
    assert len(warnings) == 1
    assert warnings[0]["log_level"] == "warning"


async def test_identical_purchases_on_one_stop_both_persist(db, make_purchase, count_rows):
    """Two Acme/Milk lines on the same receipt are two purchases, each with its own entry."""
    first = await purchase_service.record_purchase(make_purchase(), db)
    second = await purchase_service.record_purchase(make_purchase(stop_id=first.stop_id), db)

    assert second.stop_id == first.stop_id
    assert second.id != first.id
    assert second.ledger_entry_id != first.ledger_entry_id
    assert await count_rows(db, LineItem, LineItem.stop_id == first.stop_id) == 2
    assert await count_rows(db, LedgerEntry) == 2


async def test_rejected_line_item_write_rolls_back_entry(db, make_purchase, count_rows, monkeypatch):
    """A constraint violation inside the purchase transaction leaves no orphan entry."""

    async def link_twice(entry, changes, db):
        # A second line item on the same entry breaks the one-to-one link
        db.add(LineItem(
            household_id=entry.household_id,
            ledger_entry_id=entry.id,
            brand="Acme",
            item="Milk",
            total_price=Decimal("3.49"),
        ))
        await db.flush()

    monkeypatch.setattr(ledger_service, "update_entry", link_twice)

    with pytest.raises(TransactionError):
        await purchase_service.record_purchase(make_purchase(), db)

    assert await count_rows(db, LineItem) == 0
    assert await count_rows(db, LedgerEntry) == 0


async def test_failing_catalog_update_does_not_block_purchase(db, make_purchase, count_rows, monkeypatch):
    async def locked(line_item, tag_ids, db):
        raise OperationalError("UPDATE brands", {}, Exception("database is locked"))

    monkeypatch.setattr(catalog_service, "upsert_brand_defaults", locked)

    with capture_logs() as logs:
        line_item = await purchase_service.record_purchase(make_purchase(), db)

    assert await count_rows(db, LineItem, LineItem.id == line_item.id) == 1
    assert await count_rows(db, LedgerEntry) == 1
    assert await count_rows(db, CatalogEntry) == 0
    assert any(
        log["event"] == "catalog_update_failed" and log["log_level"] == "warning" for log in logs
    )


async def test_failing_trip_task_does_not_block_purchase(db, make_purchase, count_rows, monkeypatch):
    """A scheduler failure is logged; the committed purchase comes back usable."""

    async def locked(trip_id, db):
        raise OperationalError("SELECT scheduler_tasks", {}, Exception("database is locked"))

    monkeypatch.setattr(scheduler_service, "get_task_for_trip", locked)

    with capture_logs() as logs:
        line_item = await purchase_service.record_purchase(make_purchase(), db)

    assert line_item.brand == "Acme"
    assert line_item.stop_id is not None
    assert await count_rows(db, LineItem) == 1
    assert await count_rows(db, LedgerEntry) == 1
    assert await count_rows(db, SchedulerTask) == 0
    assert any(
        log["event"] == "trip_task_failed" and log["log_level"] == "warning" for log in logs
    )


async def test_tags_attached_to_line_item_and_entry(db, household_id, make_purchase, count_rows):
    dairy = await tag_service.create_tag(household_id, "dairy", db)
    await db.commit()

    line_item = await purchase_service.record_purchase(make_purchase(tag_ids=[dairy.id]), db)

    assert await tag_service.get_line_item_tag_ids(line_item.id, db) == [dairy.id]
    assert await count_rows(
        db, ledger_entry_tags, ledger_entry_tags.c.ledger_entry_id == line_item.ledger_entry_id
    ) == 1


async def test_unknown_tags_are_dropped(db, make_purchase, count_rows):
    await purchase_service.record_purchase(make_purchase(tag_ids=[uuid.uuid4()]), db)

    assert await count_rows(db, line_item_tags) == 0


async def test_stock_item_derived_from_purchase(db, make_purchase, fetch_all):
    line_item = await purchase_service.record_purchase(make_purchase(), db)

    items = await fetch_all(db, StockItem)
    assert len(items) == 1
    stock_item = items[0]
    stop = await db.get(Stop, line_item.stop_id)

    assert stock_item.name == "Milk"
    assert stock_item.brand == "Acme"
    assert stock_item.store == "Mart"
    assert stock_item.unit_of_measure == "gal"
    assert stock_item.quantity == 1
    assert stock_item.purchase_id == line_item.id
    assert stock_item.stop_id == stop.id
    assert stock_item.trip_id == stop.trip_id

    sheets = await fetch_all(db, StockSheet)
    assert [sheet.name for sheet in sheets] == ["Pantry"]


async def test_failing_stock_sheet_does_not_block_purchase(db, make_purchase, count_rows):
    """An unknown stock sheet is logged and skipped; the purchase still commits."""
    with capture_logs() as logs:
        line_item = await purchase_service.record_purchase(
            make_purchase(stock_sheet_id=uuid.uuid4()), db
        )

    assert await count_rows(db, LineItem, LineItem.id == line_item.id) == 1
    assert await count_rows(db, LedgerEntry) == 1
    assert await count_rows(db, StockItem) == 0
    assert any(
        log["event"] == "stock_item_failed" and log["log_level"] == "warning" for log in logs
    )


async def test_catalog_defaults_follow_latest_purchase(db, household_id, make_purchase, fetch_all):
    tag = await tag_service.create_tag(household_id, "dairy", db)
    await db.commit()

    await purchase_service.record_purchase(make_purchase(tag_ids=[tag.id]), db)
    await purchase_service.record_purchase(
        make_purchase(item="Cheese", unit_measurement="oz", date=date(2024, 3, 6)), db
    )

    brands = await fetch_all(db, CatalogEntry)
    assert len(brands) == 1
    assert brands[0].name == "Acme"
    assert brands[0].default_item == "Cheese"
    assert brands[0].default_unit_measurement == "oz"
    assert brands[0].default_tags == []


async def test_one_scheduler_task_per_trip(db, make_purchase, fetch_all):
    first = await purchase_service.record_purchase(make_purchase(), db)
    await purchase_service.record_purchase(make_purchase(stop_id=first.stop_id, item="Eggs"), db)

    stop = await db.get(Stop, first.stop_id)
    tasks = await fetch_all(db, SchedulerTask)
    assert len(tasks) == 1
    assert tasks[0].trip_id == stop.trip_id
    assert tasks[0].title == "Shopping trip"
    assert tasks[0].date == date(2024, 3, 5)


async def test_update_line_item_moves_amount_and_tags(db, household_id, make_purchase, fetch_all):
    old_tag = await tag_service.create_tag(household_id, "dairy", db)
    new_tag = await tag_service.create_tag(household_id, "breakfast", db)
    await db.commit()

    line_item = await purchase_service.record_purchase(make_purchase(tag_ids=[old_tag.id]), db)
    await purchase_service.update_line_item(
        line_item.id,
        household_id,
        LineItemUpdate(total_price=Decimal("4.25"), tag_ids=[new_tag.id]),
        db,
    )

    entry = (await fetch_all(db, LedgerEntry, LedgerEntry.id == line_item.ledger_entry_id))[0]
    assert entry.amount == Decimal("4.25")
    assert await tag_service.get_line_item_tag_ids(line_item.id, db) == [new_tag.id]

    brand = (await fetch_all(db, CatalogEntry))[0]
    assert brand.default_tags == [str(new_tag.id)]


async def test_update_line_item_from_other_household_not_found(db, make_purchase):
    line_item = await purchase_service.record_purchase(make_purchase(), db)

    with pytest.raises(NotFoundError):
        await purchase_service.update_line_item(
            line_item.id, uuid.uuid4(), LineItemUpdate(usage_mode=UsageMode.QUANTITY), db
        )


@pytest.mark.parametrize("field", ["brand", "item", "taxable", "total_price", "usage_mode"])
def test_line_item_update_rejects_null_for_required_columns(field):
    with pytest.raises(PydanticValidationError):
        LineItemUpdate(**{field: None})


async def test_update_line_item_can_clear_optional_columns(db, household_id, make_purchase):
    line_item = await purchase_service.record_purchase(make_purchase(), db)

    updated = await purchase_service.update_line_item(
        line_item.id, household_id, LineItemUpdate(count=None, unit_measurement=None), db
    )

    assert updated.count is None
    assert updated.unit_measurement is None
    assert updated.brand == "Acme"


async def test_add_line_items_to_stock_all_or_nothing(db, household_id, make_purchase, count_rows):
    first = await purchase_service.record_purchase(make_purchase(new_stop=None), db)
    second = await purchase_service.record_purchase(make_purchase(new_stop=None, item="Eggs"), db)
    first_id, second_id = first.id, second.id
    before = await count_rows(db, StockItem)

    with pytest.raises(StockError):
        await purchase_service.add_line_items_to_stock(
            household_id,
            [first_id, second_id],
            db,
            sheet_assignments={second_id: uuid.uuid4()},
        )
    assert await count_rows(db, StockItem) == before

    created = await purchase_service.add_line_items_to_stock(household_id, [first_id, second_id], db)
    assert len(created) == 2
    assert await count_rows(db, StockItem) == before + 2
