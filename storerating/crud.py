import logging
from typing import Mapping

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas, validation
from .auth import hash_password, verify_password
from .errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from .roles import Role
from .utils import sanitize_input

logger = logging.getLogger(__name__)

SORT_ORDERS = ("asc", "desc")

USER_SORT_COLUMNS = {
    "name": models.User.name,
    "email": models.User.email,
    "address": models.User.address,
    "role": models.User.role,
    "createdAt": models.User.created_at,
}

STORE_SORT_COLUMNS = {
    "name": models.Store.name,
    "email": models.Store.email,
    "address": models.Store.address,
    "createdAt": models.Store.created_at,
}


def _check(values: Mapping[str, str], schema) -> None:
    error = validation.first_error(values, schema)
    if error:
        raise ValidationFailed(error)


def _order_by(columns: Mapping, id_column, sort_by: str | None, sort_order: str | None):
    sort_by = sort_by or "createdAt"
    sort_order = (sort_order or "desc").lower()
    if sort_by not in columns:
        raise ValidationFailed(f"Invalid sort field: {sort_by}")
    if sort_order not in SORT_ORDERS:
        raise ValidationFailed(f"Invalid sort order: {sort_order}")
    column = columns[sort_by]
    if sort_order == "asc":
        return column.asc(), id_column.asc()
    return column.desc(), id_column.desc()


def _contains(column, term: str | None):
    term = sanitize_input(term)
    if not term:
        return None
    return column.ilike(f"%{term}%")


def _commit(db: Session, conflict_message: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(conflict_message) from e


# -------------------- Ratings aggregates --------------------

def rating_summary(db: Session, store_id: int) -> tuple[float | None, int]:
    avg, count = (
        db.query(func.avg(models.Rating.value), func.count(models.Rating.id))
        .filter(models.Rating.store_id == store_id)
        .one()
    )
    return (float(avg) if count else None), count


def average_rating(db: Session, store_id: int) -> float | None:
    return rating_summary(db, store_id)[0]


def _summaries(db: Session, store_ids: list[int]) -> dict[int, tuple[float, int]]:
    if not store_ids:
        return {}
    rows = (
        db.query(models.Rating.store_id, func.avg(models.Rating.value), func.count(models.Rating.id))
        .filter(models.Rating.store_id.in_(store_ids))
        .group_by(models.Rating.store_id)
        .all()
    )
    return {store_id: (float(avg), count) for store_id, avg, count in rows}


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> models.User | None:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == (email or "").strip()).first()


def authenticate(db: Session, email: str, password: str) -> models.User | None:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def create_user(db: Session, user: schemas.RegisterRequest, role: Role | str = Role.NORMAL_USER,
                store_id: int | None = None) -> models.User:
    values = user.model_dump()
    values["role"] = getattr(role, "value", role)
    _check(values, validation.CREATE_USER_FORM)
    role = Role(values["role"])

    email = user.email.strip()
    if get_user_by_email(db, email):
        raise ConflictError("Email already exists")

    store = None
    if role == Role.STORE_OWNER and store_id is not None:
        store = db.get(models.Store, store_id)
        if not store:
            raise NotFoundError("Store not found")
        if store.owner is not None:
            raise ConflictError("Store already has an owner")

    db_user = models.User(
        name=user.name.strip(),
        email=email,
        address=user.address.strip(),
        password_hash=hash_password(user.password),
        role=role,
        store=store,
    )
    db.add(db_user)
    _commit(db, "Email already exists")
    db.refresh(db_user)
    logger.info("User created", extra={"user_id": db_user.id, "role": role.value})
    return db_user


def _user_row(db: Session, user: models.User, summaries: Mapping | None = None) -> dict:
    row = schemas.UserRead.model_validate(user).model_dump()
    if user.role == Role.STORE_OWNER and user.store_id:
        if summaries is None:
            row["average_rating"] = average_rating(db, user.store_id)
        else:
            row["average_rating"] = summaries.get(user.store_id, (None, 0))[0]
    return row


def list_users(db: Session, name: str | None = None, email: str | None = None, address: str | None = None,
               role: str | None = None, sort_by: str | None = None, sort_order: str | None = None) -> list[dict]:
    query = db.query(models.User)
    for condition in (
        _contains(models.User.name, name),
        _contains(models.User.email, email),
        _contains(models.User.address, address),
    ):
        if condition is not None:
            query = query.filter(condition)
    if role:
        parsed = Role.parse(role)
        if parsed is None:
            raise ValidationFailed(validation.validate_role(role).error)
        query = query.filter(models.User.role == parsed)
    users = query.order_by(*_order_by(USER_SORT_COLUMNS, models.User.id, sort_by, sort_order)).all()
    summaries = _summaries(db, [u.store_id for u in users if u.store_id])
    return [_user_row(db, u, summaries) for u in users]


def user_detail(db: Session, user_id: int) -> dict:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    row = _user_row(db, user)
    if user.role == Role.STORE_OWNER and user.store is not None:
        store = schemas.StoreSummary.model_validate(user.store).model_dump()
        store["average_rating"] = row.get("average_rating")
        row["store"] = store
    return row


def update_password(db: Session, user_id: int, new_password: str, current_password: str | None = None) -> models.User:
    _check({"newPassword": new_password}, {"newPassword": validation.NEW_PASSWORD})
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    if current_password and not verify_password(current_password, user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    if verify_password(new_password, user.password_hash):
        raise ValidationFailed(
            "New password cannot be the same as your current password. Please choose a different password."
        )
    user.password_hash = hash_password(new_password)
    db.commit()
    db.refresh(user)
    logger.info("Password updated", extra={"user_id": user.id})
    return user


# -------------------- Stores --------------------

def create_store(db: Session, store: schemas.StoreCreate) -> models.Store:
    _check(store.model_dump(), validation.CREATE_STORE_FORM)
    email = store.email.strip()
    if db.query(models.Store).filter(models.Store.email == email).first():
        raise ConflictError("Store email already exists")
    db_store = models.Store(name=store.name.strip(), email=email, address=store.address.strip())
    db.add(db_store)
    _commit(db, "Store email already exists")
    db.refresh(db_store)
    logger.info("Store created", extra={"store_id": db_store.id})
    return db_store


def _user_ratings(db: Session, user_id: int | None, store_ids: list[int]) -> dict[int, models.Rating]:
    if not user_id or not store_ids:
        return {}
    ratings = (
        db.query(models.Rating)
        .filter(models.Rating.user_id == user_id, models.Rating.store_id.in_(store_ids))
        .all()
    )
    return {r.store_id: r for r in ratings}


def _store_row(store: models.Store, summary: tuple, user_rating: models.Rating | None) -> dict:
    avg, count = summary
    return {
        "id": store.id,
        "name": store.name,
        "email": store.email,
        "address": store.address,
        "average_rating": avg,
        "total_ratings": count,
        "user_rating": {"id": user_rating.id, "value": user_rating.value} if user_rating else None,
        "created_at": store.created_at,
    }


def list_stores(db: Session, name: str | None = None, email: str | None = None, address: str | None = None,
                search: str | None = None, sort_by: str | None = None, sort_order: str | None = None,
                user_id: int | None = None) -> list[dict]:
    query = db.query(models.Store)
    search_name = _contains(models.Store.name, search)
    if search_name is not None:
        # search overrides the individual filters
        query = query.filter(search_name | _contains(models.Store.address, search))
    else:
        for condition in (
            _contains(models.Store.name, name),
            _contains(models.Store.email, email),
            _contains(models.Store.address, address),
        ):
            if condition is not None:
                query = query.filter(condition)
    stores = query.order_by(*_order_by(STORE_SORT_COLUMNS, models.Store.id, sort_by, sort_order)).all()
    ids = [s.id for s in stores]
    summaries = _summaries(db, ids)
    mine = _user_ratings(db, user_id, ids)
    return [_store_row(s, summaries.get(s.id, (None, 0)), mine.get(s.id)) for s in stores]


def store_with_ratings(db: Session, store_id: int, user_id: int | None = None) -> dict:
    store = db.get(models.Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    return _store_row(store, rating_summary(db, store_id), _user_ratings(db, user_id, [store_id]).get(store_id))


# -------------------- Ratings --------------------

def _check_rating(value) -> None:
    result = validation.validate_rating(value)
    if not result.valid:
        raise ValidationFailed(result.error)


def create_rating(db: Session, user_id: int, store_id: int | None, value) -> models.Rating:
    if not store_id or value is None:
        raise ValidationFailed("Store ID and rating value are required")
    _check_rating(value)
    if not get_user(db, user_id):
        raise NotFoundError("User not found")
    if not db.get(models.Store, store_id):
        raise NotFoundError("Store not found")
    existing = (
        db.query(models.Rating)
        .filter(models.Rating.user_id == user_id, models.Rating.store_id == store_id)
        .first()
    )
    if existing:
        raise ConflictError("Rating already exists for this store. Use update instead.")

    rating = models.Rating(user_id=user_id, store_id=store_id, value=value)
    db.add(rating)
    _commit(db, "Rating already exists for this store. Use update instead.")
    db.refresh(rating)
    logger.info("Rating created", extra={"rating_id": rating.id, "store_id": store_id, "user_id": user_id})
    return rating


def update_rating(db: Session, rating_id: int, user_id: int, value) -> models.Rating:
    if value is None:
        raise ValidationFailed("Rating value is required")
    _check_rating(value)
    rating = db.get(models.Rating, rating_id)
    if not rating:
        raise NotFoundError("Rating not found")
    if rating.user_id != user_id:
        raise ForbiddenError("You can only update your own ratings")
    rating.value = value
    db.commit()
    db.refresh(rating)
    logger.info("Rating updated", extra={"rating_id": rating.id, "user_id": user_id})
    return rating


def _rating_row(rating: models.Rating) -> dict:
    return {
        "id": rating.id,
        "store_id": rating.store_id,
        "user_id": rating.user_id,
        "value": rating.value,
        "created_at": rating.created_at,
        "user_name": rating.user.name,
        "user_email": rating.user.email,
    }


def ratings_for_store(db: Session, store_id: int) -> list[dict]:
    ratings = (
        db.query(models.Rating)
        .filter(models.Rating.store_id == store_id)
        .order_by(models.Rating.created_at.desc(), models.Rating.id.desc())
        .all()
    )
    return [_rating_row(r) for r in ratings]


def ratings_for_store_as(db: Session, store_id: int, user_id: int, role: Role) -> list[dict]:
    """Ratings of one store, readable by its owner and by administrators."""
    store = db.get(models.Store, store_id)
    if not store:
        raise NotFoundError("Store not found")
    if role == Role.STORE_OWNER and (store.owner is None or store.owner.id != user_id):
        raise ForbiddenError("You can only view ratings for your own store")
    if role not in (Role.STORE_OWNER, Role.SYSTEM_ADMIN):
        raise ForbiddenError("You do not have permission to access this resource")
    return ratings_for_store(db, store_id)


# -------------------- Dashboards --------------------

def admin_stats(db: Session) -> dict:
    return {
        "total_users": db.query(func.count(models.User.id)).scalar(),
        "total_stores": db.query(func.count(models.Store.id)).scalar(),
        "total_ratings": db.query(func.count(models.Rating.id)).scalar(),
    }


def owner_stats(db: Session, owner_id: int) -> dict:
    user = get_user(db, owner_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role != Role.STORE_OWNER:
        raise ForbiddenError("User is not a store owner")
    if not user.store_id:
        raise ForbiddenError("Store owner has no associated store")
    avg, count = rating_summary(db, user.store_id)
    return {"average_rating": avg, "total_ratings": count, "ratings": ratings_for_store(db, user.store_id)}
