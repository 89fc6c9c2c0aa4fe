"""
Locust load tests for the booking API.

Run scenarios:
  locust -f locustfile.py --tags oversell     # Many users, few seats
  locust -f locustfile.py --tags churn        # Book/cancel cycles on one event
  locust -f locustfile.py --tags browse       # Listing cache throughput
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # Everything

After an oversell run the seat count must still add up:
  SELECT e.total_seats - e.available_seats AS held,
         COALESCE(SUM(b.number_of_seats), 0) AS booked
  FROM events e LEFT JOIN bookings b
    ON b.event_id = e.id AND b.status != 'cancelled'
  WHERE e.id = <event id> GROUP BY e.id;
"""

import random
import uuid
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

PASSWORD = "loadtest-password"
LIMITED_SEATS = 10

EVENT_IDS = []
LIMITED_EVENT_ID = None


def register_and_login(client, role: str = "user") -> dict:
    """Register a throwaway account and return auth headers (empty on failure)."""
    email = f"load_{uuid.uuid4().hex[:12]}@test.com"
    client.post("/api/v1/auth/register", json={
        "first_name": "Load",
        "last_name": "Tester",
        "email": email,
        "password": PASSWORD,
        "role": role,
    })
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    if resp.status_code != 200:
        return {}
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def create_event(client, headers: dict, seats: int, title: str):
    starts_at = (datetime.now(timezone.utc) + timedelta(days=random.randint(7, 90))).isoformat()
    resp = client.post("/api/v1/events/", json={
        "title": title,
        "description": "Created by the load test",
        "starts_at": starts_at,
        "location": "Load Test Arena",
        "category": "loadtest",
        "total_seats": seats,
        "price": "15.00",
    }, headers=headers)
    if resp.status_code == 201:
        return resp.json()["id"]
    return None


class OversellUser(HttpUser):
    """
    Every user tries to grab one seat of the same small event.

    Run: locust -f locustfile.py --tags oversell -u 100 -r 50 --run-time 30s
    Exactly LIMITED_SEATS requests may succeed; the rest get 400 (sold out)
    or 409 (already booked).
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        global LIMITED_EVENT_ID
        self.headers = register_and_login(self.client)
        if LIMITED_EVENT_ID is None:
            admin = register_and_login(self.client, role="admin")
            LIMITED_EVENT_ID = create_event(self.client, admin, LIMITED_SEATS, "Oversell Test Event")

    @tag("oversell")
    @task
    def grab_a_seat(self):
        if not LIMITED_EVENT_ID or not self.headers:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"event_id": LIMITED_EVENT_ID, "number_of_seats": 1},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 400, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ChurnUser(HttpUser):
    """
    Reserve then cancel in a loop; cancellations must put back exactly what
    was taken, so the event ends the run with every seat available.

    Run: locust -f locustfile.py --tags churn -u 50 -r 10 --run-time 60s
    """
    wait_time = between(0, 0.2)
    event_id = None

    def on_start(self):
        self.headers = register_and_login(self.client)
        if ChurnUser.event_id is None:
            admin = register_and_login(self.client, role="admin")
            ChurnUser.event_id = create_event(self.client, admin, 100, "Churn Test Event")

    @tag("churn")
    @task
    def reserve_and_cancel(self):
        if not ChurnUser.event_id or not self.headers:
            return

        resp = self.client.post(
            "/api/v1/bookings/",
            json={"event_id": ChurnUser.event_id, "number_of_seats": random.randint(1, 4)},
            headers=self.headers,
        )
        if resp.status_code == 201:
            booking_id = resp.json()["id"]
            self.client.patch(
                f"/api/v1/bookings/{booking_id}/cancel",
                headers=self.headers,
                name="/api/v1/bookings/{id}/cancel",
            )


class BrowseUser(HttpUser):
    """
    Listing throughput. Run once with Redis and once without to compare.

    Run: locust -f locustfile.py --tags browse -u 100 -r 20 --run-time 60s
    """
    wait_time = between(0.1, 0.5)

    @tag("browse")
    @task(10)
    def list_events(self):
        page = random.randint(1, 5)
        resp = self.client.get(
            f"/api/v1/events/?page={page}&page_size=20",
            name="/api/v1/events/ [cached]",
        )
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("browse")
    @task(3)
    def event_detail(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @tag("browse")
    @task(1)
    def health(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    Bad input must come back as a 4xx, never a 5xx.

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = register_and_login(self.client)

    def expect(self, expected, **request):
        with self.client.post("/api/v1/bookings/", catch_response=True, **request) as resp:
            if resp.status_code in expected:
                resp.success()
            else:
                resp.failure(f"Expected {expected}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_event(self):
        self.expect((404,), json={"event_id": 999999, "number_of_seats": 1}, headers=self.headers)

    @tag("edge")
    @task
    def seat_count_out_of_range(self):
        seats = random.choice([-5, 0, 11, 999999])
        self.expect((422,), json={"event_id": 1, "number_of_seats": seats}, headers=self.headers)

    @tag("edge")
    @task
    def malformed_body(self):
        self.expect((422,), data="not json at all", headers=self.headers)

    @tag("edge")
    @task
    def missing_auth(self):
        self.expect((401,), json={"event_id": 1, "number_of_seats": 1})

    @tag("edge")
    @task
    def cancel_random_booking(self):
        with self.client.patch(
            f"/api/v1/bookings/{random.randint(1, 1000)}/cancel",
            headers=self.headers,
            name="/api/v1/bookings/{id}/cancel",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 400, 404):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
