import pytest
import requests

from conftest import ADMIN, USER, make_store, token_for
from storerating.services import ApiClient, ApiError, Services


class Unreachable:
    def request(self, *args, **kwargs):
        raise requests.ConnectionError("connection refused")


def test_transport_failure_becomes_api_error():
    api = ApiClient("http://127.0.0.1:9/api", http=Unreachable())
    with pytest.raises(ApiError) as exc:
        api.get("/stores")
    assert exc.value.status_code is None
    assert exc.value.message is None
    assert exc.value.describe("Failed to load stores") == "Failed to load stores"


class HtmlOk:
    def request(self, *args, **kwargs):
        response = requests.Response()
        response.status_code = 200
        response._content = b"<html>maintenance</html>"
        return response


def test_non_json_success_body_becomes_api_error():
    api = ApiClient("http://testserver/api", http=HtmlOk())
    with pytest.raises(ApiError) as exc:
        api.get("/stores")
    assert exc.value.status_code == 200
    assert exc.value.describe("Failed to load stores") == "Failed to load stores"


def test_error_envelope_is_decoded(services):
    with pytest.raises(ApiError) as exc:
        services.stores.list()
    assert exc.value.status_code == 401
    assert exc.value.code == "UNAUTHORIZED"
    assert exc.value.message == "Authorization header is required"


def test_admin_user_management(client, services, admin):
    services.api.token = token_for(client, ADMIN)
    created = services.users.create({**USER, "role": "NORMAL_USER"})
    assert created["email"] == USER["email"]

    users = services.users.list({"role": "NORMAL_USER"}, {"field": "name", "direction": "asc"})
    assert [u["email"] for u in users] == [USER["email"]]
    # empty filters are not sent
    assert len(services.users.list({"name": "", "email": ""})) == 2
    assert services.users.get(created["id"])["name"] == USER["name"]


def test_store_listing_and_rating_submission(client, db_session, services, normal_user):
    store = make_store(db_session)
    make_store(db_session, name="Second Hardware Store Name", email="store2@example.com", address="Elm Road")
    services.api.token = token_for(client, USER)

    stores = services.stores.list({"search": "market"})
    assert [s["id"] for s in stores] == [store.id]
    assert stores[0]["userRating"] is None

    services.ratings.submit_for_store(stores[0], 4)
    refreshed = services.stores.get(store.id)
    assert refreshed["userRating"]["value"] == 4
    assert refreshed["averageRating"] == 4

    # the second submission updates instead of creating a duplicate
    services.ratings.submit_for_store(refreshed, 2)
    refreshed = services.stores.get(store.id)
    assert refreshed["totalRatings"] == 1
    assert refreshed["averageRating"] == 2


def test_owner_dashboard_service(client, services, owner, normal_user, store):
    user_api = Services(ApiClient(services.api.base_url, http=client, token=token_for(client, USER)))
    user_api.ratings.create(store.id, 5)

    services.api.token = token_for(client, {"email": owner.email, "password": "Owner@123"})
    stats = services.dashboard.owner_stats()
    assert stats["totalRatings"] == 1
    assert stats["averageRating"] == 5
    assert stats["ratings"][0]["userEmail"] == USER["email"]
    assert [r["value"] for r in services.ratings.for_store(store.id)] == [5]


def test_password_update_service(client, services, normal_user):
    services.api.token = token_for(client, USER)
    result = services.users.update_password(normal_user.id, "Changed@123", "User@1234")
    assert result["success"] is True
    with pytest.raises(ApiError) as exc:
        services.users.update_password(normal_user.id, "Changed@123")
    assert exc.value.status_code == 400
    assert "cannot be the same" in exc.value.message
