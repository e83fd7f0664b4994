"""REST wrappers around the store rating API.

Every call raises ``ApiError`` on a non-2xx response or transport failure.
Call sites pick their own fallback text through ``ApiError.describe``.
"""
import logging
from typing import Any, Mapping

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int | None, message: str | None = None, code: str | None = None):
        super().__init__(message or f"request failed ({status_code})")
        self.status_code = status_code
        self.message = message
        self.code = code

    @classmethod
    def from_response(cls, response) -> "ApiError":
        message = code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            message = body["error"].get("message")
            code = body["error"].get("code")
        return cls(response.status_code, message, code)

    def describe(self, fallback: str) -> str:
        return self.message or fallback


def _clean_params(params: Mapping[str, Any] | None) -> dict:
    return {k: v for k, v in (params or {}).items() if v not in (None, "")}


class ApiClient:
    """Thin HTTP client holding the base URL and the session's bearer token.

    ``http`` is anything with a requests-style ``request()`` method; tests
    pass FastAPI's TestClient to talk to the app in-process.
    """

    def __init__(self, base_url: str, http=None, token: str | None = None):
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.token = token

    def request(self, method: str, path: str, params: Mapping | None = None, json: Any = None):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, params=_clean_params(params), json=json, headers=headers)
        except requests.RequestException as exc:
            logger.warning("API request failed", extra={"method": method, "url": url})
            raise ApiError(None) from exc
        if response.status_code >= 400:
            error = ApiError.from_response(response)
            logger.info(
                "API error %s on %s %s: %s", error.status_code, method, path, error.message,
                extra={"code": error.code},
            )
            raise error
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("API returned a non-JSON body", extra={"method": method, "url": url})
            raise ApiError(response.status_code) from exc

    def get(self, path: str, params: Mapping | None = None):
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None):
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None):
        return self.request("PUT", path, json=json)


def _sorting_params(sorting: Mapping[str, str] | None) -> dict:
    sorting = sorting or {}
    return {"sortBy": sorting.get("field"), "sortOrder": sorting.get("direction")}


class AuthService:
    def __init__(self, api: ApiClient):
        self.api = api

    def register(self, fields: Mapping[str, str]) -> dict:
        return self.api.post("/auth/register", json=dict(fields))["data"]

    def login(self, email: str, password: str) -> dict:
        return self.api.post("/auth/login", json={"email": email, "password": password})["data"]

    def logout(self) -> dict:
        return self.api.post("/auth/logout")

    def me(self) -> dict:
        return self.api.get("/auth/me")["data"]["user"]


class UserService:
    FILTERS = ("name", "email", "address", "role")

    def __init__(self, api: ApiClient):
        self.api = api

    def list(self, filters: Mapping[str, str] | None = None, sorting: Mapping[str, str] | None = None) -> list:
        filters = filters or {}
        params = {key: filters.get(key) for key in self.FILTERS}
        params.update(_sorting_params(sorting))
        return self.api.get("/users", params=params)["data"]["users"]

    def get(self, user_id: int) -> dict:
        return self.api.get(f"/users/{user_id}")["data"]["user"]

    def create(self, fields: Mapping[str, Any]) -> dict:
        return self.api.post("/users", json=dict(fields))["data"]["user"]

    def update_password(self, user_id: int, new_password: str, current_password: str | None = None) -> dict:
        payload = {"newPassword": new_password}
        if current_password:
            payload["currentPassword"] = current_password
        return self.api.put(f"/users/{user_id}/password", json=payload)


class StoreService:
    FILTERS = ("name", "email", "address", "search")

    def __init__(self, api: ApiClient):
        self.api = api

    def list(self, filters: Mapping[str, str] | None = None, sorting: Mapping[str, str] | None = None) -> list:
        filters = filters or {}
        params = {key: filters.get(key) for key in self.FILTERS}
        params.update(_sorting_params(sorting))
        return self.api.get("/stores", params=params)["data"]["stores"]

    def get(self, store_id: int) -> dict:
        return self.api.get(f"/stores/{store_id}")["data"]["store"]

    def create(self, fields: Mapping[str, str]) -> dict:
        return self.api.post("/stores", json=dict(fields))["data"]["store"]


class RatingService:
    def __init__(self, api: ApiClient):
        self.api = api

    def create(self, store_id: int, value: int) -> dict:
        return self.api.post("/ratings", json={"storeId": store_id, "value": value})["data"]["rating"]

    def update(self, rating_id: int, value: int) -> dict:
        return self.api.put(f"/ratings/{rating_id}", json={"value": value})["data"]["rating"]

    def for_store(self, store_id: int) -> list:
        return self.api.get(f"/ratings/store/{store_id}")["data"]["ratings"]

    def submit_for_store(self, store: Mapping, value: int) -> dict:
        """Create the user's rating for ``store``, or update it if one exists."""
        existing = store.get("userRating")
        if existing:
            return self.update(existing["id"], value)
        return self.create(store["id"], value)


class DashboardService:
    def __init__(self, api: ApiClient):
        self.api = api

    def admin_stats(self) -> dict:
        return self.api.get("/dashboard/admin")["data"]

    def owner_stats(self) -> dict:
        return self.api.get("/dashboard/owner")["data"]


class Services:
    """All service wrappers sharing one ApiClient (and so one bearer token)."""

    def __init__(self, api: ApiClient):
        self.api = api
        self.auth = AuthService(api)
        self.users = UserService(api)
        self.stores = StoreService(api)
        self.ratings = RatingService(api)
        self.dashboard = DashboardService(api)
