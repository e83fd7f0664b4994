from typing import Generator
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storerating import crud, models, schemas, ui
from storerating.config import get_settings
from storerating.db import init_db
from storerating.main import app, get_db
from storerating.roles import Role
from storerating.services import ApiClient, Services

ADMIN = {"name": "Initial System Administrator", "email": "admin@example.com",
         "address": "1 Admin Street", "password": "Admin@123"}
USER = {"name": "Normal Test User Account", "email": "user@example.com",
        "address": "22 Customer Road", "password": "User@1234"}
OWNER = {"name": "Store Owner Test Account", "email": "owner@example.com",
         "address": "3 Owner Lane", "password": "Owner@123"}


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    init_db(engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    # Override dependency to use the same session
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        # the UI's service layer calls back into the same app in-process
        app.dependency_overrides[ui.get_api_client] = lambda: ApiClient(get_settings().api_prefix, http=c)
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def api(client):
    return ApiClient(get_settings().api_prefix, http=client)


@pytest.fixture
def services(api):
    return Services(api)


def make_user(db, fields, role=Role.NORMAL_USER, store_id=None) -> models.User:
    return crud.create_user(db, schemas.RegisterRequest(**fields), role=role, store_id=store_id)


def make_store(db, name="Corner Grocery Store Number One", email="store1@example.com",
               address="10 Market Street") -> models.Store:
    return crud.create_store(db, schemas.StoreCreate(name=name, email=email, address=address))


def token_for(client, fields) -> str:
    r = client.post("/api/auth/login", json={"email": fields["email"], "password": fields["password"]})
    assert r.status_code == 200, r.text
    return r.json()["data"]["token"]


def bearer(client, fields) -> dict:
    return {"Authorization": f"Bearer {token_for(client, fields)}"}


@pytest.fixture
def admin(db_session):
    return make_user(db_session, ADMIN, role=Role.SYSTEM_ADMIN)


@pytest.fixture
def normal_user(db_session):
    return make_user(db_session, USER)


@pytest.fixture
def store(db_session):
    return make_store(db_session)


@pytest.fixture
def owner(db_session, store):
    return make_user(db_session, OWNER, role=Role.STORE_OWNER, store_id=store.id)


def ui_login(client, fields):
    r = client.post("/login", data={"email": fields["email"], "password": fields["password"]},
                    follow_redirects=False)
    assert r.status_code == 303, r.text
    return r
