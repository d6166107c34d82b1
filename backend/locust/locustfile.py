"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Race for the last slots
  locust -f locustfile.py --tags churn        # Cancel/re-register, waitlist promotion
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests
"""

import itertools
import random
from datetime import date, timedelta

from locust import HttpUser, task, between, tag, events

CAPACITY = 10

# Shared state
EVENT_IDS = []
CONCURRENCY_EVENT_ID = None
USER_IDS = itertools.count(100_000)


def next_user():
    user_id = next(USER_IDS)
    return {
        "user_id": user_id,
        "user_email": f"load_{user_id}@test.com",
        "user_name": f"Load User {user_id}",
    }


def future_date(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"SETUP: concurrency event will have {CAPACITY} slots")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 slots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT status, COUNT(*) FROM registrations WHERE event_id = X GROUP BY status;
    confirmed must be <= 10, everyone else waitlisted.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user = next_user()
        if not CONCURRENCY_EVENT_ID:
            resp = self.client.post("/api/v1/events/", json={
                "title": "Concurrency Test Event",
                "description": f"{CAPACITY} slots only",
                "date": future_date(),
                "location": "Test",
                "capacity": CAPACITY,
            })
            if resp.status_code == 201:
                globals()["CONCURRENCY_EVENT_ID"] = resp.json()["id"]
                print(f"\nCreated event {CONCURRENCY_EVENT_ID} with {CAPACITY} slots\n")

    @tag("concurrency")
    @task
    def register_for_limited_event(self):
        """All users fight for the same slots. Once registered, a user only reads counts."""
        if not CONCURRENCY_EVENT_ID:
            return

        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": CONCURRENCY_EVENT_ID, **self.user},
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Duplicate, or transient conflict with Retry-After
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

        with self.client.get(
            f"/api/v1/events/{CONCURRENCY_EVENT_ID}/counts",
            name="/api/v1/events/{id}/counts",
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["confirmed"] > CAPACITY:
                resp.failure(f"Over-admitted: {resp.json()}")


class ChurnUser(HttpUser):
    """
    TEST 2: Churn - register, cancel, register again

    Run: locust -f locustfile.py --tags churn -u 50 -r 10 --run-time 60s

    Every cancellation of a confirmed registration promotes the waitlist head,
    so confirmed stays pinned at capacity while waitlist drains and refills.
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.user = next_user()
        self.registration_id = None

    @tag("churn")
    @task(3)
    def register(self):
        if not CONCURRENCY_EVENT_ID or self.registration_id:
            return
        resp = self.client.post(
            "/api/v1/registrations/",
            json={"event_id": CONCURRENCY_EVENT_ID, **self.user},
        )
        if resp.status_code == 201:
            self.registration_id = resp.json()["id"]

    @tag("churn")
    @task(1)
    def cancel(self):
        if not self.registration_id:
            return
        self.client.delete(
            f"/api/v1/registrations/{self.registration_id}",
            name="/api/v1/registrations/{id}",
        )
        self.registration_id = None

    @tag("churn", "read")
    @task(2)
    def waitlist_position(self):
        if CONCURRENCY_EVENT_ID:
            self.client.get(
                f"/api/v1/events/{CONCURRENCY_EVENT_ID}/waitlist/{self.user['user_id']}",
                name="/api/v1/events/{id}/waitlist/{user_id}",
            )


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    @tag("edge")
    @task
    def invalid_event_id(self):
        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": 999999, **next_user()},
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_email(self):
        user = next_user()
        user["user_email"] = "not-an-email"
        with self.client.post(
            "/api/v1/registrations/",
            json={"event_id": 1, **user},
            catch_response=True,
        ) as resp:
            if resp.status_code == 422:
                resp.success()
            else:
                resp.failure(f"Expected 422, got {resp.status_code}")

    @tag("edge")
    @task
    def zero_capacity(self):
        with self.client.patch(
            "/api/v1/events/1/capacity",
            json={"capacity": 0},
            name="/api/v1/events/{id}/capacity",
            catch_response=True,
        ) as resp:
            if resp.status_code in [404, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 404/422, got {resp.status_code}")

    @tag("edge")
    @task
    def cancel_unknown(self):
        with self.client.delete(
            "/api/v1/registrations/999999",
            name="/api/v1/registrations/{id}",
            catch_response=True,
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/registrations/",
            data="not json at all",
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing
      - Some registrations and cancellations
      - Rare event creation
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.user = next_user()
        self.registrations = []

    @task(50)
    def browse_events(self):
        resp = self.client.get("/api/v1/events/?page=1&page_size=20")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @task(20)
    def view_event(self):
        if EVENT_IDS:
            self.client.get(f"/api/v1/events/{random.choice(EVENT_IDS)}", name="/api/v1/events/{id}")

    @task(10)
    def register(self):
        if EVENT_IDS:
            resp = self.client.post(
                "/api/v1/registrations/",
                json={"event_id": random.choice(EVENT_IDS), **self.user},
            )
            if resp.status_code == 201:
                self.registrations.append(resp.json()["id"])

    @task(3)
    def cancel(self):
        if self.registrations:
            registration_id = self.registrations.pop(random.randrange(len(self.registrations)))
            self.client.delete(f"/api/v1/registrations/{registration_id}", name="/api/v1/registrations/{id}")

    @task(5)
    def my_registrations(self):
        self.client.get(
            f"/api/v1/users/{self.user['user_id']}/registrations",
            name="/api/v1/users/{id}/registrations",
        )

    @task(2)
    def create_event(self):
        resp = self.client.post("/api/v1/events/", json={
            "title": f"Event {random.randint(1, 10000)}",
            "description": "Test event",
            "date": future_date(random.randint(1, 90)),
            "location": "Venue",
            "capacity": random.randint(10, 500),
        })
        if resp.status_code == 201:
            EVENT_IDS.append(resp.json()["id"])
