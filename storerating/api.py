"""JSON REST API consumed by the service wrappers in ``services.py``."""
import logging
from typing import NamedTuple

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import create_access_token, decode_access_token
from .db import get_db
from .errors import ValidationFailed
from .roles import Role

logger = logging.getLogger(__name__)

router = APIRouter()


class Caller(NamedTuple):
    user_id: int
    role: Role


def current_caller(request: Request) -> Caller:
    auth = request.headers.get("authorization")
    if not auth:
        raise HTTPException(status_code=401, detail="Authorization header is required")
    parts = auth.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Authorization header must be in format: Bearer <token>")
    try:
        payload = decode_access_token(parts[1])
        return Caller(int(payload["sub"]), Role(payload["role"]))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def require_roles(*roles: Role):
    def dependency(caller: Caller = Depends(current_caller)) -> Caller:
        if caller.role not in roles:
            raise HTTPException(status_code=403, detail="You do not have permission to access this resource")
        return caller
    return dependency


def _session(user) -> dict:
    return {"token": create_access_token(user.id, user.role), "user": user}


# -------------------- Auth --------------------

@router.post("/auth/register", response_model=schemas.Envelope[schemas.AuthSession], status_code=201)
async def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    user = crud.create_user(db, payload, role=Role.NORMAL_USER)
    logger.info("Registered", extra={"user_id": user.id})
    return {"data": _session(user)}


@router.post("/auth/login", response_model=schemas.Envelope[schemas.AuthSession])
async def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise ValidationFailed("Email and password are required", code="INVALID_INPUT")
    logger.info("Login attempt", extra={"email": payload.email})
    user = crud.authenticate(db, payload.email, payload.password)
    if not user:
        logger.info("Login rejected", extra={"email": payload.email})
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"data": _session(user)}


@router.post("/auth/logout")
async def logout():
    # tokens are stateless; the client discards its copy
    return {"success": True, "message": "Logged out successfully"}


@router.get("/auth/me", response_model=schemas.Envelope[schemas.UserEnvelope])
async def me(caller: Caller = Depends(current_caller), db: Session = Depends(get_db)):
    return {"data": {"user": crud.user_detail(db, caller.user_id)}}


# -------------------- Users --------------------

@router.post("/users", response_model=schemas.Envelope[schemas.UserEnvelope], status_code=201)
async def create_user(payload: schemas.UserCreate, db: Session = Depends(get_db),
                      caller: Caller = Depends(require_roles(Role.SYSTEM_ADMIN))):
    user = crud.create_user(db, payload, role=payload.role or Role.NORMAL_USER, store_id=payload.store_id)
    return {"data": {"user": crud.user_detail(db, user.id)}}


@router.get("/users", response_model=schemas.Envelope[schemas.UserList])
async def list_users(name: str | None = None, email: str | None = None, address: str | None = None,
                     role: str | None = None, sort_by: str | None = Query(None, alias="sortBy"),
                     sort_order: str | None = Query(None, alias="sortOrder"),
                     db: Session = Depends(get_db), caller: Caller = Depends(require_roles(Role.SYSTEM_ADMIN))):
    users = crud.list_users(db, name=name, email=email, address=address, role=role,
                            sort_by=sort_by, sort_order=sort_order)
    return {"data": {"users": users}}


@router.get("/users/{user_id}", response_model=schemas.Envelope[schemas.UserEnvelope])
async def get_user(user_id: int, db: Session = Depends(get_db),
                   caller: Caller = Depends(require_roles(Role.SYSTEM_ADMIN))):
    return {"data": {"user": crud.user_detail(db, user_id)}}


@router.put("/users/{user_id}/password")
async def update_password(user_id: int, payload: schemas.PasswordUpdate, db: Session = Depends(get_db),
                          caller: Caller = Depends(current_caller)):
    # own password, or any password for an administrator
    if caller.user_id != user_id and caller.role != Role.SYSTEM_ADMIN:
        raise HTTPException(status_code=403, detail="You can only update your own password")
    user = crud.update_password(db, user_id, payload.new_password, payload.current_password)
    user_data = schemas.UserRead.model_validate(user).model_dump(by_alias=True, mode="json")
    return {"success": True, "data": {"user": user_data}, "message": "Password updated successfully"}


# -------------------- Stores --------------------

@router.post("/stores", response_model=schemas.Envelope[schemas.StoreEnvelope], status_code=201)
async def create_store(payload: schemas.StoreCreate, db: Session = Depends(get_db),
                       caller: Caller = Depends(require_roles(Role.SYSTEM_ADMIN))):
    store = crud.create_store(db, payload)
    return {"data": {"store": crud.store_with_ratings(db, store.id)}}


@router.get("/stores", response_model=schemas.Envelope[schemas.StoreList])
async def list_stores(name: str | None = None, email: str | None = None, address: str | None = None,
                      search: str | None = None, sort_by: str | None = Query(None, alias="sortBy"),
                      sort_order: str | None = Query(None, alias="sortOrder"),
                      db: Session = Depends(get_db), caller: Caller = Depends(current_caller)):
    stores = crud.list_stores(db, name=name, email=email, address=address, search=search,
                              sort_by=sort_by, sort_order=sort_order, user_id=caller.user_id)
    return {"data": {"stores": stores}}


@router.get("/stores/{store_id}", response_model=schemas.Envelope[schemas.StoreEnvelope])
async def get_store(store_id: int, db: Session = Depends(get_db), caller: Caller = Depends(current_caller)):
    return {"data": {"store": crud.store_with_ratings(db, store_id, caller.user_id)}}


# -------------------- Ratings --------------------

@router.post("/ratings", response_model=schemas.Envelope[schemas.RatingEnvelope], status_code=201)
async def create_rating(payload: schemas.RatingCreate, db: Session = Depends(get_db),
                        caller: Caller = Depends(require_roles(Role.NORMAL_USER))):
    rating = crud.create_rating(db, caller.user_id, payload.store_id, payload.value)
    return {"data": {"rating": rating}}


@router.put("/ratings/{rating_id}", response_model=schemas.Envelope[schemas.RatingEnvelope])
async def update_rating(rating_id: int, payload: schemas.RatingUpdate, db: Session = Depends(get_db),
                        caller: Caller = Depends(require_roles(Role.NORMAL_USER))):
    rating = crud.update_rating(db, rating_id, caller.user_id, payload.value)
    return {"data": {"rating": rating}}


@router.get("/ratings/store/{store_id}", response_model=schemas.Envelope[schemas.RatingList])
async def ratings_for_store(store_id: int, db: Session = Depends(get_db),
                            caller: Caller = Depends(require_roles(Role.STORE_OWNER, Role.SYSTEM_ADMIN))):
    return {"data": {"ratings": crud.ratings_for_store_as(db, store_id, caller.user_id, caller.role)}}


# -------------------- Dashboards --------------------

@router.get("/dashboard/admin", response_model=schemas.Envelope[schemas.AdminStats])
async def admin_dashboard(db: Session = Depends(get_db), caller: Caller = Depends(require_roles(Role.SYSTEM_ADMIN))):
    return {"data": crud.admin_stats(db)}


@router.get("/dashboard/owner", response_model=schemas.Envelope[schemas.OwnerStats])
async def owner_dashboard(db: Session = Depends(get_db), caller: Caller = Depends(require_roles(Role.STORE_OWNER))):
    return {"data": crud.owner_stats(db, caller.user_id)}
