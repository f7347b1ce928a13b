"""
Locust Load Test Suite

Targets the demo catalog the memory backend seeds on startup
(STORE_BACKEND=memory), or any database with the same ids. Checkouts
with PROMO_CODE need Stripe test keys; everything else uses FREE_CODE.

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import random

from locust import HttpUser, between, events, tag, task

CONTENDED_OFFERING_ID = 1
CONTENDED_SESSION_ID = 1
POPULAR_OFFERING_ID = 2
POPULAR_SESSION_ID = 2
COURSE_OFFERING_ID = 3
PROMO_CODE = "WELC-OME1"
# 100% off: checkouts confirm without a payment gateway round trip
FREE_CODE = "FREE-LOAD"

BOOKING_IDS = []


def random_contact():
    n = random.randint(10000, 99999)
    return {"first_name": "Load", "last_name": f"User{n}", "email": f"load_{n}@test.com"}


def checkout_body(offering_id, session_id=None, party_size=1, discount_code=None):
    body = {"offering_id": offering_id, "party_size": party_size, "contact": random_contact()}
    if session_id is not None:
        body["session_id"] = session_id
    if discount_code:
        body["discount_code"] = discount_code
    return body


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Contended session {CONTENDED_SESSION_ID}: 10 spots")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> 10 spots

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After the test, availability for the session must be >= 0 and the
    number of 201 responses must be <= 10. 409s are expected; their body
    says retryable: true.
    """
    wait_time = between(0, 0.1)

    @tag("concurrency")
    @task
    def checkout_last_spots(self):
        with self.client.post(
            "/api/v1/checkout",
            json=checkout_body(CONTENDED_OFFERING_ID, CONTENDED_SESSION_ID, discount_code=FREE_CODE),
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                BOOKING_IDS.append(resp.json()["booking_id"])
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out or rolled back
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task
    def checkout_course(self):
        """Course checkouts contend on three sessions at once."""
        with self.client.post(
            "/api/v1/checkout",
            json=checkout_body(COURSE_OFFERING_ID, party_size=random.randint(1, 2), discount_code=FREE_CODE),
            name="/api/v1/checkout [course]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (201, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability_cached(self):
        offering_id = random.choice([CONTENDED_OFFERING_ID, POPULAR_OFFERING_ID, COURSE_OFFERING_ID])
        self.client.get(
            f"/api/v1/offerings/{offering_id}/availability",
            name="/api/v1/offerings/{id}/availability [cached]",
        )

    @tag("throughput", "read")
    @task(2)
    def validate_code(self):
        self.client.get(f"/api/v1/discount-codes/{PROMO_CODE}", name="/api/v1/discount-codes/{code}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def _expect(self, body, allowed, name):
        with self.client.post("/api/v1/checkout", json=body, name=name, catch_response=True) as resp:
            if resp.status_code in allowed:
                resp.success()
            else:
                resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_offering(self):
        self._expect(checkout_body(999999, 1), [404], "checkout [unknown offering]")

    @tag("edge")
    @task
    def zero_party(self):
        self._expect(checkout_body(POPULAR_OFFERING_ID, POPULAR_SESSION_ID, party_size=0), [400, 422], "checkout [zero]")

    @tag("edge")
    @task
    def huge_party(self):
        self._expect(checkout_body(POPULAR_OFFERING_ID, POPULAR_SESSION_ID, party_size=999999), [400, 409, 422], "checkout [huge]")

    @tag("edge")
    @task
    def bad_discount_code(self):
        body = checkout_body(POPULAR_OFFERING_ID, POPULAR_SESSION_ID, discount_code="NOPE-NOPE")
        self._expect(body, [400, 404], "checkout [bad code]")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/checkout",
            data="not json at all",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def unsigned_webhook(self):
        with self.client.post("/api/v1/webhooks/payments", data="{}", catch_response=True) as resp:
            if resp.status_code == 400:
                resp.success()
            else:
                resp.failure(f"Expected 400, got {resp.status_code}")


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing availability
      - Some checkouts, some with a promo code
      - A few cancellations of abandoned checkouts
    """
    wait_time = between(1, 3)

    @task(50)
    def browse(self):
        self.client.get(
            f"/api/v1/offerings/{POPULAR_OFFERING_ID}/availability",
            name="/api/v1/offerings/{id}/availability",
        )

    @task(10)
    def checkout(self):
        code = PROMO_CODE if random.random() < 0.3 else FREE_CODE
        resp = self.client.post(
            "/api/v1/checkout",
            json=checkout_body(POPULAR_OFFERING_ID, POPULAR_SESSION_ID, random.randint(1, 3), code),
        )
        if resp.status_code == 201:
            BOOKING_IDS.append(resp.json()["booking_id"])

    @task(3)
    def cancel(self):
        if BOOKING_IDS:
            booking_id = BOOKING_IDS.pop(random.randrange(len(BOOKING_IDS)))
            self.client.delete(f"/api/v1/bookings/{booking_id}", name="/api/v1/bookings/{id}")
