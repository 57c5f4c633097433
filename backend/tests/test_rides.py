"""
Tests for ride CRUD, catalog search and capacity edits.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from conftest import auth_headers_for, make_ride
from returnvehicle.services.common import local_today


def _ride_payload(**overrides) -> dict:
    payload = {
        "from": "Dhaka",
        "to": "Sylhet",
        "journeyDate": (local_today() + timedelta(days=3)).isoformat(),
        "category": "Car",
        "price": 800,
        "vehicleModel": "Toyota Axio",
        "totalSeats": 4,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_ride(client: AsyncClient, driver_headers):
    response = await client.post("/api/rides", json=_ride_payload(), headers=driver_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["from"] == "Dhaka"
    assert data["to"] == "Sylhet"
    assert data["driverId"] == "driver-1"
    assert data["totalSeats"] == 4
    assert data["availableSeats"] == 4
    assert data["status"] == "available"


@pytest.mark.asyncio
async def test_create_ride_requires_driver(client: AsyncClient, rider_headers):
    response = await client.post("/api/rides", json=_ride_payload(), headers=rider_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_ride_in_the_past(client: AsyncClient, driver_headers):
    yesterday = (local_today() - timedelta(days=1)).isoformat()
    response = await client.post("/api/rides", json=_ride_payload(journeyDate=yesterday), headers=driver_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_ride_return_before_journey(client: AsyncClient, driver_headers):
    payload = _ride_payload(returnDate=local_today().isoformat())
    response = await client.post("/api/rides", json=payload, headers=driver_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_ride_available_above_total(client: AsyncClient, driver_headers):
    response = await client.post(
        "/api/rides", json=_ride_payload(availableSeats=5), headers=driver_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_create_ride_schema_errors(client: AsyncClient, driver_headers):
    """Shape errors (zero price, unknown category) are caught by the schema."""
    response = await client.post("/api/rides", json=_ride_payload(price=0), headers=driver_headers)
    assert response.status_code == 422
    response = await client.post("/api/rides", json=_ride_payload(category="Boat"), headers=driver_headers)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_ride(client: AsyncClient, test_ride):
    response = await client.get(f"/api/rides/{test_ride.id}")
    assert response.status_code == 200
    assert response.json()["id"] == str(test_ride.id)


@pytest.mark.asyncio
async def test_get_ride_not_found(client: AsyncClient):
    response = await client.get("/api/rides/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


@pytest.mark.asyncio
async def test_get_ride_malformed_id(client: AsyncClient):
    response = await client.get("/api/rides/not-a-uuid")
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_search_filters(client: AsyncClient, db_session, driver):
    await make_ride(db_session, driver.uid, origin="Dhaka", destination="Sylhet", price=900)
    await make_ride(db_session, driver.uid, origin="Khulna", destination="Dhaka", price=300)
    await make_ride(db_session, driver.uid, origin="Dhaka", destination="Rajshahi", available=0)

    response = await client.get("/api/rides", params={"from": "dha"})
    assert response.json()["total"] == 2

    response = await client.get("/api/rides", params={"to": "DHAKA"})
    assert [r["from"] for r in response.json()["items"]] == ["Khulna"]

    response = await client.get("/api/rides", params={"priceMin": 400, "priceMax": 1000})
    assert {r["to"] for r in response.json()["items"]} == {"Sylhet", "Rajshahi"}

    response = await client.get("/api/rides", params={"onlyAvailable": "true"})
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_search_like_wildcards_are_literal(client: AsyncClient, db_session, driver):
    await make_ride(db_session, driver.uid, origin="Dhaka")
    response = await client.get("/api/rides", params={"from": "%"})
    assert response.json()["total"] == 0


@pytest.mark.asyncio
async def test_search_pagination_clamps_limit(client: AsyncClient, db_session, driver):
    for _ in range(3):
        await make_ride(db_session, driver.uid)

    response = await client.get("/api/rides", params={"limit": 2, "page": 2})
    data = response.json()
    assert data["total"] == 3
    assert data["pages"] == 2
    assert len(data["items"]) == 1
    assert data["cached"] is False

    response = await client.get("/api/rides", params={"limit": 500})
    assert response.json()["limit"] == 50


@pytest.mark.asyncio
async def test_my_rides(client: AsyncClient, db_session, driver, other_driver, driver_headers):
    await make_ride(db_session, driver.uid)
    await make_ride(db_session, other_driver.uid)

    response = await client.get("/api/rides/mine", headers=driver_headers)
    assert response.status_code == 200
    assert [r["driverId"] for r in response.json()["items"]] == ["driver-1"]


@pytest.mark.asyncio
async def test_update_ride_plain_fields(client: AsyncClient, test_ride, driver_headers):
    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"price": 650, "vehicleModel": "Hiace"}, headers=driver_headers
    )
    assert response.status_code == 200
    assert response.json()["price"] == 650
    assert response.json()["vehicleModel"] == "Hiace"


@pytest.mark.asyncio
async def test_update_ride_by_other_driver(client: AsyncClient, test_ride, other_driver):
    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"price": 1}, headers=auth_headers_for(other_driver.uid)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_total_seat_change_shifts_available(client: AsyncClient, db_session, driver, driver_headers):
    ride = await make_ride(db_session, driver.uid, seats=4, available=2)

    response = await client.patch(f"/api/rides/{ride.id}", json={"totalSeats": 6}, headers=driver_headers)
    assert response.status_code == 200
    assert (response.json()["totalSeats"], response.json()["availableSeats"]) == (6, 4)

    response = await client.patch(f"/api/rides/{ride.id}", json={"totalSeats": 2}, headers=driver_headers)
    assert (response.json()["totalSeats"], response.json()["availableSeats"]) == (2, 0)


@pytest.mark.asyncio
async def test_total_seat_change_below_booked(client: AsyncClient, db_session, driver, driver_headers):
    ride = await make_ride(db_session, driver.uid, seats=4, available=1)

    response = await client.patch(f"/api/rides/{ride.id}", json={"totalSeats": 2}, headers=driver_headers)
    assert response.status_code == 400

    unchanged = (await client.get(f"/api/rides/{ride.id}")).json()
    assert (unchanged["totalSeats"], unchanged["availableSeats"]) == (4, 1)


@pytest.mark.asyncio
async def test_available_seats_cannot_exceed_total(client: AsyncClient, test_ride, driver_headers):
    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"availableSeats": 9}, headers=driver_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_null_for_required_field(client: AsyncClient, test_ride, driver_headers):
    response = await client.patch(f"/api/rides/{test_ride.id}", json={"price": None}, headers=driver_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_toggle_ride_status(client: AsyncClient, test_ride, driver_headers):
    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"status": "unavailable"}, headers=driver_headers
    )
    assert response.json()["status"] == "unavailable"

    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"status": "available"}, headers=driver_headers
    )
    assert response.json()["status"] == "available"


@pytest.mark.asyncio
async def test_delete_ride(client: AsyncClient, test_ride, driver_headers):
    response = await client.delete(f"/api/rides/{test_ride.id}", headers=driver_headers)
    assert response.status_code == 200
    assert response.json() == {"ok": True, "id": str(test_ride.id)}

    response = await client.get(f"/api/rides/{test_ride.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_ride_with_active_booking(client: AsyncClient, test_ride, driver_headers, rider_headers):
    booked = await client.post(
        f"/api/rides/{test_ride.id}/book",
        json={"seats": 1, "contactName": "Rahim", "contactPhone": "01700000000"},
        headers=rider_headers,
    )
    assert booked.status_code == 201

    response = await client.delete(f"/api/rides/{test_ride.id}", headers=driver_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_delete_ride_keeps_finished_bookings(client: AsyncClient, test_ride, driver_headers, rider_headers):
    booked = await client.post(
        f"/api/rides/{test_ride.id}/book",
        json={"seats": 1, "contactName": "Rahim", "contactPhone": "01700000000"},
        headers=rider_headers,
    )
    booking_id = booked.json()["id"]
    await client.patch(f"/api/bookings/{booking_id}/cancel", headers=rider_headers)

    response = await client.delete(f"/api/rides/{test_ride.id}", headers=driver_headers)
    assert response.status_code == 200

    mine = (await client.get("/api/bookings/mine", headers=rider_headers)).json()
    assert mine["total"] == 1
    assert mine["items"][0]["status"] == "cancelled"
    assert mine["items"][0]["ride"] is None


@pytest.mark.asyncio
async def test_price_ceiling(client: AsyncClient, test_ride, driver_headers):
    """A per-seat price must stay small enough for a 100-seat total to fit the ledger column."""
    response = await client.post("/api/rides", json=_ride_payload(price=2_000_000_000), headers=driver_headers)
    assert response.status_code == 422

    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"price": 1_000_001}, headers=driver_headers
    )
    assert response.status_code == 422

    response = await client.patch(
        f"/api/rides/{test_ride.id}", json={"price": 1_000_000}, headers=driver_headers
    )
    assert response.status_code == 200
