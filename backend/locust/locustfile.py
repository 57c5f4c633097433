"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Oversell attempt on one ride
  locust -f locustfile.py --tags throughput   # Catalog cache
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Identity tokens are minted locally with the server's SECRET_KEY, so point
SECRET_KEY at the same value the API runs with.
"""

import os
import random
import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt
from locust import HttpUser, between, events, tag, task

SECRET_KEY = os.environ.get("SECRET_KEY", "super-secret-key-change-in-production")
ALGORITHM = os.environ.get("ALGORITHM", "HS256")
CONTESTED_SEATS = 10

# Shared state
RIDE_IDS = []
CONTESTED_RIDE_ID = None


def mint_headers(uid: str) -> dict:
    claims = {
        "sub": uid,
        "email": f"{uid}@load.test",
        "name": uid,
        "exp": datetime.now(timezone.utc) + timedelta(hours=2),
    }
    return {"Authorization": f"Bearer {jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)}"}


def booking_payload(seats: int = 1) -> dict:
    return {"seats": seats, "contactName": "Load Tester", "contactPhone": "01700000000"}


def ride_payload(seats: int, days_ahead: int = 7) -> dict:
    return {
        "from": random.choice(["Dhaka", "Sylhet", "Khulna", "Rajshahi"]),
        "to": random.choice(["Chittagong", "Barishal", "Rangpur", "Cox's Bazar"]),
        "journeyDate": (datetime.now(timezone.utc).date() + timedelta(days=days_ahead)).isoformat(),
        "category": random.choice(["Car", "Ambulance", "Truck"]),
        "price": random.randint(300, 3000),
        "vehicleModel": "Toyota Hiace",
        "totalSeats": seats,
    }


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: contested ride gets {CONTESTED_SEATS} seats")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 riders -> 10 seats

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COALESCE(SUM(seats), 0) FROM bookings
      WHERE ride_id = X AND status IN ('booked', 'confirmed');
    Should be <= 10, and rides.available_seats should equal 10 minus that sum.
    """

    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = mint_headers(f"load-rider-{uuid.uuid4().hex[:10]}")

        if not CONTESTED_RIDE_ID:
            driver_headers = mint_headers("load-driver")
            self.client.post("/api/auth/set-role", json={"role": "driver"}, headers=driver_headers)
            resp = self.client.post("/api/rides", json=ride_payload(CONTESTED_SEATS), headers=driver_headers)
            if resp.status_code == 201:
                globals()["CONTESTED_RIDE_ID"] = resp.json()["id"]
                print(f"\nCreated ride {CONTESTED_RIDE_ID} with {CONTESTED_SEATS} seats\n")

    @tag("concurrency")
    @task
    def book_contested_seat(self):
        """All riders fight for the same 10 seats."""
        if not CONTESTED_RIDE_ID:
            return

        with self.client.post(
            f"/api/rides/{CONTESTED_RIDE_ID}/book",
            json=booking_payload(),
            headers=self.headers,
            name="/api/rides/{id}/book [contested]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409 and resp.json().get("code") == "seat_unavailable":
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - catalog cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again
    """

    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def search_rides_cached(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/rides?page={page}&limit=12", name="/api/rides [cached]")

    @tag("throughput", "read")
    @task(3)
    def get_ride_detail(self):
        if RIDE_IDS:
            self.client.get(f"/api/rides/{random.choice(RIDE_IDS)}", name="/api/rides/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    Every request must come back with its documented error code, never a 500.
    """

    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = mint_headers(f"load-edge-{uuid.uuid4().hex[:10]}")

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    def _target(self) -> str:
        return CONTESTED_RIDE_ID or (RIDE_IDS[0] if RIDE_IDS else str(uuid.uuid4()))

    @tag("edge")
    @task
    def unknown_ride(self):
        with self.client.post(
            f"/api/rides/{uuid.uuid4()}/book", json=booking_payload(), headers=self.headers,
            name="/api/rides/{id}/book [unknown]", catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def malformed_ride_id(self):
        with self.client.post(
            "/api/rides/12345/book", json=booking_payload(), headers=self.headers,
            name="/api/rides/{id}/book [malformed]", catch_response=True,
        ) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def non_positive_seats(self):
        with self.client.post(
            f"/api/rides/{self._target()}/book", json=booking_payload(random.choice([0, -5])),
            headers=self.headers, name="/api/rides/{id}/book [bad seats]", catch_response=True,
        ) as resp:
            self._expect(resp, [400, 404])

    @tag("edge")
    @task
    def huge_seats(self):
        with self.client.post(
            f"/api/rides/{self._target()}/book", json=booking_payload(999999),
            headers=self.headers, name="/api/rides/{id}/book [huge]", catch_response=True,
        ) as resp:
            self._expect(resp, [404, 409])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            f"/api/rides/{self._target()}/book", data="not json at all",
            headers=self.headers, name="/api/rides/{id}/book [garbage]", catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            f"/api/rides/{self._target()}/book", json=booking_payload(),
            name="/api/rides/{id}/book [no auth]", catch_response=True,
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

      - Mostly browsing
      - Some bookings, a share of them cancelled again
      - Rare ride posts by drivers
    """

    wait_time = between(1, 3)

    def on_start(self):
        self.uid = f"load-user-{uuid.uuid4().hex[:10]}"
        self.headers = mint_headers(self.uid)
        self.is_driver = random.random() < 0.1
        if self.is_driver:
            self.client.post("/api/auth/set-role", json={"role": "driver"}, headers=self.headers)
        self.booking_ids = []

    @task(50)
    def browse_rides(self):
        resp = self.client.get("/api/rides?page=1&limit=12&onlyAvailable=true")
        if resp.status_code == 200:
            for ride in resp.json().get("items", []):
                if ride["id"] not in RIDE_IDS:
                    RIDE_IDS.append(ride["id"])

    @task(20)
    def view_ride(self):
        if RIDE_IDS:
            self.client.get(f"/api/rides/{random.choice(RIDE_IDS)}", name="/api/rides/{id}")

    @task(10)
    def book_seats(self):
        if not RIDE_IDS:
            return
        with self.client.post(
            f"/api/rides/{random.choice(RIDE_IDS)}/book", json=booking_payload(random.randint(1, 3)),
            headers=self.headers, name="/api/rides/{id}/book", catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.booking_ids.append(resp.json()["id"])
                resp.success()
            elif resp.status_code in (403, 409):
                resp.success()

    @task(4)
    def cancel_booking(self):
        if self.booking_ids:
            self.client.patch(
                f"/api/bookings/{self.booking_ids.pop()}/cancel", headers=self.headers,
                name="/api/bookings/{id}/cancel",
            )

    @task(3)
    def post_ride(self):
        if self.is_driver:
            resp = self.client.post(
                "/api/rides", json=ride_payload(random.randint(2, 12), random.randint(1, 60)), headers=self.headers
            )
            if resp.status_code == 201:
                RIDE_IDS.append(resp.json()["id"])
