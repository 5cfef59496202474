"""HTTP-level tests for the routers and error mapping."""

import uuid

import httpx
import pytest

from apps.api.main import app
from packages.common.database import get_db_session, sessionmanager


@pytest.fixture
async def client(session_factory, household_id, user_id):
    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = _session
    headers = {"X-Household-Id": str(household_id), "X-User-Id": str(user_id)}
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test", headers=headers) as client:
        yield client
    app.dependency_overrides.clear()


PURCHASE = {
    "new_stop": {"store_name": "Mart"},
    "brand": "Acme",
    "item": "Milk",
    "unit_measurement": "gal",
    "total_price": "3.49",
    "date": "2024-03-05",
}


async def test_record_purchase(client):
    response = await client.post("/purchases", json=PURCHASE)

    assert response.status_code == 201
    body = response.json()
    assert body["brand"] == "Acme"
    assert body["stop_id"] is not None
    assert body["usage_mode"] == "count"


async def test_identical_purchases_on_one_stop_are_both_created(client):
    first = (await client.post("/purchases", json=PURCHASE)).json()

    again = {**PURCHASE, "new_stop": None, "stop_id": first["stop_id"]}
    response = await client.post("/purchases", json=again)

    assert response.status_code == 201
    second = response.json()
    assert second["stop_id"] == first["stop_id"]
    assert second["id"] != first["id"]
    assert second["ledger_entry_id"] != first["ledger_entry_id"]


async def test_null_brand_on_edit_is_unprocessable(client):
    created = (await client.post("/purchases", json=PURCHASE)).json()

    response = await client.patch(f"/purchases/{created['id']}", json={"brand": None})

    assert response.status_code == 422


async def test_stop_id_and_new_stop_together_is_unprocessable(client):
    response = await client.post("/purchases", json={**PURCHASE, "stop_id": str(uuid.uuid4())})

    assert response.status_code == 422


async def test_malformed_household_header(client):
    response = await client.post("/purchases", json=PURCHASE, headers={"X-Household-Id": "not-a-uuid"})

    assert response.status_code == 422


async def test_edit_and_delete_purchase(client):
    created = (await client.post("/purchases", json=PURCHASE)).json()

    edited = await client.patch(f"/purchases/{created['id']}", json={"total_price": "4.25"})
    assert edited.status_code == 200
    assert edited.json()["total_price"] == "4.25"

    deleted = await client.delete(f"/purchases/{created['id']}")
    assert deleted.status_code == 204

    missing = await client.delete(f"/purchases/{created['id']}")
    assert missing.status_code == 404


async def test_trip_listing_and_delete(client):
    await client.post("/purchases", json=PURCHASE)
    await client.post("/purchases", json={**PURCHASE, "item": "Bread", "new_stop": {"store_name": "Bakery"}})

    trips = (await client.get("/trips")).json()
    assert len(trips) == 1
    assert [stop["store_name"] for stop in trips[0]["stops"]] == ["Mart", "Bakery"]

    moved = await client.patch(f"/trips/{trips[0]['id']}/date", json={"date": "2024-03-09"})
    assert moved.status_code == 200
    assert moved.json()["trip_start"].startswith("2024-03-09")

    response = await client.delete(f"/trips/{trips[0]['id']}")
    assert response.status_code == 204
    assert (await client.get("/trips")).json() == []


async def test_corrections_round(client):
    stored = await client.put(
        "/corrections",
        json={"raw_text": "GV WHL MLK", "corrected_brand": "Great Value", "corrected_item": "Whole Milk"},
    )
    assert stored.status_code == 200

    found = await client.get("/corrections", params={"raw_text": "gv whl mlk"})
    assert found.json()["corrected_item"] == "Whole Milk"

    missing = await client.get("/corrections", params={"raw_text": "UNKNOWN"})
    assert missing.status_code == 404


async def test_tax_rules(client):
    stored = await client.put(
        "/tax-rules",
        json={"store_name": "Mart", "indicator": "N", "is_taxable": False, "description": "Food"},
    )
    assert stored.status_code == 200

    rules = (await client.get("/tax-rules", params={"store_name": "MART"})).json()
    assert [(rule["indicator"], rule["is_taxable"]) for rule in rules] == [("N", False)]


async def test_health(database_url):
    await sessionmanager.init(database_url)
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
    finally:
        await sessionmanager.close()

    assert response.status_code == 200
    assert response.json()["services"] == {"database": "connected"}
