"""
Tests for booking endpoints: reservation, cancellation and the driver-side
transitions.
"""

import pytest
from httpx import AsyncClient

from conftest import auth_headers_for, make_ride


def _book(seats: int = 1, **overrides) -> dict:
    payload = {"seats": seats, "contactName": "Rahim Uddin", "contactPhone": "01711111111"}
    payload.update(overrides)
    return payload


async def _seats_left(client: AsyncClient, ride_id) -> int:
    return (await client.get(f"/api/rides/{ride_id}")).json()["availableSeats"]


@pytest.mark.asyncio
async def test_book_seats(client: AsyncClient, test_ride, rider_headers):
    """Successful booking decrements available seats and snapshots the price."""
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(2), headers=rider_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["rideId"] == str(test_ride.id)
    assert data["riderId"] == "rider-1"
    assert data["driverId"] == "driver-1"
    assert data["seats"] == 2
    assert data["pricePerSeat"] == 500
    assert data["totalPrice"] == 1000
    assert data["status"] == "booked"
    assert data["seatsReleased"] is False
    assert data["code"].startswith("RV-")
    assert data["ride"]["from"] == "Dhaka"

    assert await _seats_left(client, test_ride.id) == 2


@pytest.mark.asyncio
async def test_book_accepts_legacy_field_names(client: AsyncClient, test_ride, rider_headers):
    payload = {"passengers": 1, "passengerName": "Karim", "phone": "01722222222"}
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=payload, headers=rider_headers)
    assert response.status_code == 201
    assert response.json()["contactName"] == "Karim"


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, test_ride):
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=_book())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_last_seats_then_sold_out(client: AsyncClient, db_session, driver, rider_headers):
    ride = await make_ride(db_session, driver.uid, seats=4, available=2)

    response = await client.post(f"/api/rides/{ride.id}/book", json=_book(2), headers=rider_headers)
    assert response.status_code == 201
    assert await _seats_left(client, ride.id) == 0

    response = await client.post(f"/api/rides/{ride.id}/book", json=_book(1), headers=rider_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "seat_unavailable"
    assert await _seats_left(client, ride.id) == 0


@pytest.mark.asyncio
async def test_book_sold_out_ride(client: AsyncClient, full_ride, rider_headers):
    response = await client.post(f"/api/rides/{full_ride.id}/book", json=_book(), headers=rider_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "seat_unavailable"


@pytest.mark.asyncio
async def test_book_more_than_available(client: AsyncClient, test_ride, rider_headers):
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(5), headers=rider_headers)
    assert response.status_code == 409
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        _book(0),
        _book(-2),
        _book(1, contactName="   "),
        _book(1, contactPhone=""),
        _book(101),
        _book(10**20),
        _book(1, contactName="N" * 121),
        _book(1, contactPhone="0" * 33),
    ],
)
async def test_book_invalid_request(client: AsyncClient, test_ride, rider_headers, payload):
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=payload, headers=rider_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_book_unknown_ride(client: AsyncClient, rider_headers):
    response = await client.post(
        "/api/rides/00000000-0000-0000-0000-000000000000/book", json=_book(), headers=rider_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_book_unavailable_ride(client: AsyncClient, test_ride, driver_headers, rider_headers):
    await client.patch(f"/api/rides/{test_ride.id}", json={"status": "unavailable"}, headers=driver_headers)

    response = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_driver_cannot_book_own_ride(client: AsyncClient, test_ride, driver_headers):
    response = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=driver_headers)
    assert response.status_code == 403
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_driver_can_book_someone_elses_ride(client: AsyncClient, test_ride, other_driver):
    response = await client.post(
        f"/api/rides/{test_ride.id}/book", json=_book(), headers=auth_headers_for(other_driver.uid)
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_price_edit_does_not_touch_existing_booking(
    client: AsyncClient, test_ride, driver_headers, rider_headers
):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(2), headers=rider_headers)
    await client.patch(f"/api/rides/{test_ride.id}", json={"price": 9999}, headers=driver_headers)

    detail = await client.get(f"/api/bookings/{booked.json()['id']}", headers=rider_headers)
    assert detail.json()["pricePerSeat"] == 500
    assert detail.json()["totalPrice"] == 1000


@pytest.mark.asyncio
async def test_cancel_returns_seats(client: AsyncClient, db_session, driver, rider_headers):
    ride = await make_ride(db_session, driver.uid, seats=2, days_ahead=1)
    booked = await client.post(f"/api/rides/{ride.id}/book", json=_book(2), headers=rider_headers)
    assert await _seats_left(client, ride.id) == 0

    response = await client.patch(f"/api/bookings/{booked.json()['id']}/cancel", headers=rider_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["seatsReleased"] is True
    assert await _seats_left(client, ride.id) == 2


@pytest.mark.asyncio
async def test_double_cancel(client: AsyncClient, test_ride, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(2), headers=rider_headers)
    booking_id = booked.json()["id"]

    first = await client.patch(f"/api/bookings/{booking_id}/cancel", headers=rider_headers)
    second = await client.patch(f"/api/bookings/{booking_id}/cancel", headers=rider_headers)

    assert first.status_code == 200
    assert second.status_code == 409
    assert second.json()["code"] == "invalid_state"
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_cancel_on_journey_date(client: AsyncClient, db_session, driver, rider_headers):
    ride = await make_ride(db_session, driver.uid, days_ahead=0)
    booked = await client.post(f"/api/rides/{ride.id}/book", json=_book(1), headers=rider_headers)

    response = await client.patch(f"/api/bookings/{booked.json()['id']}/cancel", headers=rider_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "window_closed"

    detail = await client.get(f"/api/bookings/{booked.json()['id']}", headers=rider_headers)
    assert detail.json()["status"] == "booked"
    assert await _seats_left(client, ride.id) == 3


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking(client: AsyncClient, test_ride, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)

    response = await client.patch(
        f"/api/bookings/{booked.json()['id']}/cancel", headers=auth_headers_for("stranger")
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_malformed_id(client: AsyncClient, rider_headers):
    response = await client.patch("/api/bookings/42/cancel", headers=rider_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_booking_detail_visibility(client: AsyncClient, test_ride, rider_headers, driver_headers, admin_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)
    url = f"/api/bookings/{booked.json()['id']}"

    assert (await client.get(url, headers=rider_headers)).status_code == 200
    assert (await client.get(url, headers=driver_headers)).status_code == 200
    assert (await client.get(url, headers=admin_headers)).status_code == 200
    assert (await client.get(url, headers=auth_headers_for("stranger"))).status_code == 403


@pytest.mark.asyncio
async def test_list_my_bookings(client: AsyncClient, test_ride, rider_headers):
    for _ in range(3):
        await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)

    response = await client.get("/api/bookings/mine", params={"limit": 2}, headers=rider_headers)
    data = response.json()
    assert data["total"] == 3
    assert data["pages"] == 2
    assert len(data["items"]) == 2
    assert data["items"][0]["ride"]["to"] == "Chittagong"
    # Prices on a booking come only from its own snapshot
    assert "price" not in data["items"][0]["ride"]
    assert data["items"][0]["pricePerSeat"] == 500


@pytest.mark.asyncio
async def test_list_driver_bookings(client: AsyncClient, test_ride, rider_headers, driver_headers):
    await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)

    response = await client.get("/api/bookings/driver", headers=driver_headers)
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["contactPhone"] == "01711111111"

    response = await client.get("/api/bookings/driver", headers=rider_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_confirm_then_complete(client: AsyncClient, db_session, driver, driver_headers, rider_headers):
    ride = await make_ride(db_session, driver.uid, days_ahead=0)
    booked = await client.post(f"/api/rides/{ride.id}/book", json=_book(), headers=rider_headers)
    booking_id = booked.json()["id"]

    response = await client.patch(f"/api/bookings/{booking_id}/confirm", headers=driver_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"

    response = await client.patch(f"/api/bookings/{booking_id}/complete", headers=driver_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    # Completed trips keep their seats
    assert await _seats_left(client, ride.id) == 3


@pytest.mark.asyncio
async def test_complete_before_journey_date(client: AsyncClient, test_ride, driver_headers, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)

    response = await client.patch(f"/api/bookings/{booked.json()['id']}/complete", headers=driver_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_reject_returns_seats(client: AsyncClient, test_ride, driver_headers, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(3), headers=rider_headers)
    booking_id = booked.json()["id"]

    response = await client.patch(f"/api/bookings/{booking_id}/reject", headers=driver_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert await _seats_left(client, test_ride.id) == 4

    response = await client.patch(f"/api/bookings/{booking_id}/reject", headers=driver_headers)
    assert response.status_code == 409
    assert await _seats_left(client, test_ride.id) == 4


@pytest.mark.asyncio
async def test_reject_confirmed_booking(client: AsyncClient, test_ride, driver_headers, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)
    booking_id = booked.json()["id"]
    await client.patch(f"/api/bookings/{booking_id}/confirm", headers=driver_headers)

    response = await client.patch(f"/api/bookings/{booking_id}/reject", headers=driver_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "invalid_state"


@pytest.mark.asyncio
async def test_other_driver_cannot_confirm(client: AsyncClient, test_ride, other_driver, rider_headers):
    booked = await client.post(f"/api/rides/{test_ride.id}/book", json=_book(), headers=rider_headers)

    response = await client.patch(
        f"/api/bookings/{booked.json()['id']}/confirm", headers=auth_headers_for(other_driver.uid)
    )
    assert response.status_code == 403
