import time

import jwt

from conftest import USER
from storerating.auth import ALGORITHM, create_access_token, decode_access_token, hash_password, verify_password
from storerating.config import get_settings
from storerating.roles import Role


def test_password_hashing():
    hashed = hash_password("Secret@123")
    assert hashed != "Secret@123"
    assert verify_password("Secret@123", hashed)
    assert not verify_password("Secret@124", hashed)


def test_token_payload():
    payload = decode_access_token(create_access_token(7, Role.STORE_OWNER))
    assert payload["sub"] == "7"
    assert payload["role"] == "STORE_OWNER"
    assert payload["exp"] - payload["iat"] == get_settings().jwt_expiration_seconds


def test_expired_token_is_rejected(client, normal_user):
    now = int(time.time())
    token = jwt.encode({"sub": str(normal_user.id), "role": "NORMAL_USER", "iat": now - 100, "exp": now - 10},
                       get_settings().jwt_secret, algorithm=ALGORITHM)
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid or expired token"


def test_password_login_flow(client, normal_user):
    # login with wrong password
    r = client.post("/api/auth/login", json={"email": USER["email"], "password": "Wrong@123"})
    assert r.status_code == 401

    # login with correct password
    r = client.post("/api/auth/login", json={"email": USER["email"], "password": USER["password"]})
    assert r.status_code == 200
    assert r.json()["data"]["token"]


def test_password_change_checks_current_password(client, normal_user):
    token = client.post("/api/auth/login", json={"email": USER["email"], "password": USER["password"]}).json()
    headers = {"Authorization": f"Bearer {token['data']['token']}"}
    r = client.put(f"/api/users/{normal_user.id}/password",
                   json={"currentPassword": "Nope@1234", "newPassword": "Fresh@123"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Current password is incorrect"

    r = client.put(f"/api/users/{normal_user.id}/password", json={"newPassword": "weak"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Password must be at least 8 characters long"

    r = client.put(f"/api/users/{normal_user.id}/password",
                   json={"currentPassword": USER["password"], "newPassword": "Fresh@123"}, headers=headers)
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": USER["email"], "password": "Fresh@123"})
    assert r.status_code == 200
