import pytest

from conftest import ADMIN, OWNER, USER, bearer, make_store, make_user

FORBIDDEN = "You do not have permission to access this resource"


@pytest.mark.parametrize("method,path", [
    ("get", "/api/users"),
    ("get", "/api/users/1"),
    ("get", "/api/dashboard/admin"),
    ("post", "/api/stores"),
    ("post", "/api/users"),
])
def test_admin_only_endpoints_reject_normal_users(client, normal_user, method, path):
    r = getattr(client, method)(path, headers=bearer(client, USER))
    assert r.status_code == 403
    assert r.json()["error"]["message"] == FORBIDDEN


def test_only_normal_users_rate(client, admin, owner, store):
    for who in (ADMIN, OWNER):
        r = client.post("/api/ratings", json={"storeId": store.id, "value": 3}, headers=bearer(client, who))
        assert r.status_code == 403


def test_rating_update_requires_author(client, db_session, normal_user, store):
    r = client.post("/api/ratings", json={"storeId": store.id, "value": 3}, headers=bearer(client, USER))
    rating_id = r.json()["data"]["rating"]["id"]

    other = {**USER, "email": "other@example.com"}
    make_user(db_session, other)
    r = client.put(f"/api/ratings/{rating_id}", json={"value": 1}, headers=bearer(client, other))
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "You can only update your own ratings"


def test_owner_reads_only_own_store_ratings(client, db_session, owner, store, admin):
    other_store = make_store(db_session, name="Somebody Else's Fine Store", email="else@example.com")
    headers = bearer(client, OWNER)
    assert client.get(f"/api/ratings/store/{store.id}", headers=headers).status_code == 200
    r = client.get(f"/api/ratings/store/{other_store.id}", headers=headers)
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "You can only view ratings for your own store"

    # administrators read any store
    assert client.get(f"/api/ratings/store/{other_store.id}", headers=bearer(client, ADMIN)).status_code == 200


def test_owner_dashboard_requires_store_owner(client, normal_user):
    r = client.get("/api/dashboard/owner", headers=bearer(client, USER))
    assert r.status_code == 403


def test_password_update_self_or_admin(client, db_session, admin, normal_user):
    other = make_user(db_session, {**USER, "email": "other@example.com"})
    r = client.put(f"/api/users/{other.id}/password", json={"newPassword": "Hacked@123"},
                   headers=bearer(client, USER))
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "You can only update your own password"

    r = client.put(f"/api/users/{other.id}/password", json={"newPassword": "Reset@1234"},
                   headers=bearer(client, ADMIN))
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": "other@example.com", "password": "Reset@1234"})
    assert r.status_code == 200
