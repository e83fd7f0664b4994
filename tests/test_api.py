from conftest import ADMIN, OWNER, USER, bearer, make_store, make_user


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_register_and_me(client):
    r = client.post("/api/auth/register", json=USER)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "NORMAL_USER"
    assert "passwordHash" not in body["data"]["user"]

    token = body["data"]["token"]
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["data"]["user"]["email"] == USER["email"]


def test_register_validation_error_envelope(client):
    r = client.post("/api/auth/register", json={**USER, "name": "Too short"})
    assert r.status_code == 400
    assert r.json() == {
        "success": False,
        "error": {"code": "VALIDATION_FAILED", "message": "Name must be at least 20 characters long"},
    }


def test_register_duplicate_email_conflict(client, normal_user):
    r = client.post("/api/auth/register", json=USER)
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "Email already exists"


def test_login_errors(client, normal_user):
    r = client.post("/api/auth/login", json={"email": USER["email"]})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_INPUT"

    r = client.post("/api/auth/login", json={"email": USER["email"], "password": "Wrong@123"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid email or password"


def test_missing_or_malformed_token(client):
    assert client.get("/api/auth/me").json()["error"]["message"] == "Authorization header is required"
    r = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Authorization header must be in format: Bearer <token>"
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer abc"})
    assert r.json()["error"]["message"] == "Invalid or expired token"


def test_logout_is_public(client):
    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_admin_creates_store_owner_for_store(client, admin, store):
    headers = bearer(client, ADMIN)
    r = client.post("/api/users", json={**OWNER, "role": "STORE_OWNER", "storeId": store.id}, headers=headers)
    assert r.status_code == 201
    user = r.json()["data"]["user"]
    assert user["storeId"] == store.id
    assert user["store"]["name"] == store.name
    assert user["averageRating"] is None

    # a store has at most one owner
    r = client.post("/api/users", json={**OWNER, "email": "other@example.com", "role": "STORE_OWNER",
                                        "storeId": store.id}, headers=headers)
    assert r.status_code == 409

    r = client.post("/api/users", json={**OWNER, "email": "x@example.com", "role": "STORE_OWNER",
                                        "storeId": 999}, headers=headers)
    assert r.status_code == 404


def test_create_user_rejects_invalid_role(client, admin):
    r = client.post("/api/users", json={**USER, "role": "ADMIN"}, headers=bearer(client, ADMIN))
    assert r.status_code == 400
    assert r.json()["error"]["message"].startswith("Invalid role")


def test_list_users_filters_and_sorting(client, db_session, admin):
    make_user(db_session, USER)
    make_user(db_session, {**USER, "name": "Another Normal User Zed", "email": "zed@example.com"})
    headers = bearer(client, ADMIN)

    r = client.get("/api/users", params={"role": "NORMAL_USER", "sortBy": "name", "sortOrder": "desc"},
                   headers=headers)
    assert r.status_code == 200
    assert [u["email"] for u in r.json()["data"]["users"]] == ["user@example.com", "zed@example.com"]

    r = client.get("/api/users", params={"email": "ZED"}, headers=headers)
    assert [u["email"] for u in r.json()["data"]["users"]] == ["zed@example.com"]

    r = client.get("/api/users", params={"sortBy": "password"}, headers=headers)
    assert r.status_code == 400
    r = client.get("/api/users", params={"sortOrder": "sideways"}, headers=headers)
    assert r.status_code == 400


def test_get_missing_user(client, admin):
    r = client.get("/api/users/999", headers=bearer(client, ADMIN))
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "User not found"


def test_store_create_and_duplicate(client, admin):
    headers = bearer(client, ADMIN)
    payload = {"name": "Brand New Electronics Store", "email": "shop@example.com", "address": "5 High St"}
    r = client.post("/api/stores", json=payload, headers=headers)
    assert r.status_code == 201
    store = r.json()["data"]["store"]
    assert store["averageRating"] is None
    assert store["totalRatings"] == 0

    r = client.post("/api/stores", json=payload, headers=headers)
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "Store email already exists"


def test_search_overrides_filters(client, db_session, normal_user):
    make_store(db_session, name="Green Valley Organic Foods", email="a@example.com", address="Hill Road")
    make_store(db_session, name="City Books And Stationery", email="b@example.com", address="Green Street")
    headers = bearer(client, USER)

    r = client.get("/api/stores", params={"search": "green", "name": "books", "sortBy": "name", "sortOrder": "asc"},
                   headers=headers)
    names = [s["name"] for s in r.json()["data"]["stores"]]
    assert names == ["City Books And Stationery", "Green Valley Organic Foods"]


def test_rating_lifecycle(client, store, normal_user):
    headers = bearer(client, USER)
    r = client.post("/api/ratings", json={"storeId": store.id, "value": 4}, headers=headers)
    assert r.status_code == 201
    rating = r.json()["data"]["rating"]
    assert rating["value"] == 4

    r = client.post("/api/ratings", json={"storeId": store.id, "value": 5}, headers=headers)
    assert r.status_code == 409

    r = client.put(f"/api/ratings/{rating['id']}", json={"value": 2}, headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["rating"]["value"] == 2

    r = client.get(f"/api/stores/{store.id}", headers=headers)
    store_body = r.json()["data"]["store"]
    assert store_body["averageRating"] == 2
    assert store_body["userRating"] == {"id": rating["id"], "value": 2}


def test_rating_validation(client, store, normal_user):
    headers = bearer(client, USER)
    r = client.post("/api/ratings", json={"storeId": store.id, "value": 6}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Rating must be between 1 and 5"
    r = client.post("/api/ratings", json={"storeId": store.id, "value": 3.5}, headers=headers)
    assert r.json()["error"]["message"] == "Rating must be an integer"
    r = client.post("/api/ratings", json={"value": 3}, headers=headers)
    assert r.json()["error"]["message"] == "Store ID and rating value are required"
    r = client.post("/api/ratings", json={"storeId": 999, "value": 3}, headers=headers)
    assert r.status_code == 404


def test_average_is_arithmetic_mean(client, db_session, store):
    for i, value in enumerate((5, 4, 2), start=1):
        make_user(db_session, {**USER, "email": f"rater{i}@example.com"})
        headers = bearer(client, {"email": f"rater{i}@example.com", "password": USER["password"]})
        client.post("/api/ratings", json={"storeId": store.id, "value": value}, headers=headers)
    r = client.get(f"/api/stores/{store.id}", headers=headers)
    assert abs(r.json()["data"]["store"]["averageRating"] - 11 / 3) < 1e-9


def test_admin_dashboard_counts(client, admin, normal_user, store):
    client.post("/api/ratings", json={"storeId": store.id, "value": 3}, headers=bearer(client, USER))
    r = client.get("/api/dashboard/admin", headers=bearer(client, ADMIN))
    assert r.json()["data"] == {"totalUsers": 2, "totalStores": 1, "totalRatings": 1}


def test_owner_without_store(client, db_session):
    make_user(db_session, OWNER, role="STORE_OWNER")
    r = client.get("/api/dashboard/owner", headers=bearer(client, OWNER))
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Store owner has no associated store"


def test_unknown_api_route_uses_error_envelope(client):
    r = client.get("/api/nothing-here")
    assert r.status_code == 404
    assert r.json()["success"] is False
