from locust import HttpUser, task, between
import random

PASSWORD = "Locust@123"


class StoreRater(HttpUser):
    """Normal user that browses the store list and rates stores through the API."""

    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register a fresh normal user for this simulated client
        n = random.randint(1, 1_000_000)
        r = self.client.post("/api/auth/register", json={
            "name": f"Locust Load Test User {n:07d}",
            "email": f"locust_{n}@example.com",
            "address": "1 Load Test Avenue",
            "password": PASSWORD,
        })
        if r.status_code != 201:
            r = self.client.post("/api/auth/login", json={"email": f"locust_{n}@example.com", "password": PASSWORD})
        self.headers = {}
        if r.status_code in (200, 201):
            self.headers = {"Authorization": f"Bearer {r.json()['data']['token']}"}
        self.stores = []

    @task(3)
    def browse_stores(self):
        if not self.headers:
            return
        r = self.client.get("/api/stores", params={"sortBy": "name", "sortOrder": "asc"}, headers=self.headers)
        if r.status_code == 200:
            self.stores = r.json()["data"]["stores"]

    @task(1)
    def rate_store(self):
        if not self.stores:
            return
        store = random.choice(self.stores)
        value = random.randint(1, 5)
        mine = store.get("userRating")
        if mine:
            self.client.put(f"/api/ratings/{mine['id']}", json={"value": value}, headers=self.headers,
                            name="/api/ratings/[id]")
        else:
            self.client.post("/api/ratings", json={"storeId": store["id"], "value": value}, headers=self.headers)

    @task(1)
    def search_stores(self):
        if not self.headers:
            return
        self.client.get("/api/stores", params={"search": random.choice(["Mart", "Shop", "Street"])},
                        headers=self.headers, name="/api/stores?search")
