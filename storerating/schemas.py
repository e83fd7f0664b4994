from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .roles import Role

T = TypeVar("T")


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, alias_generator=to_camel)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T


# -------------------- Requests --------------------
# Field rules live in validation.py so the API reports the same messages as the forms.

class RegisterRequest(CamelModel):
    name: str = ""
    email: str = ""
    address: str = ""
    password: str = ""


class LoginRequest(CamelModel):
    email: str = ""
    password: str = ""


class UserCreate(RegisterRequest):
    role: Optional[str] = Field(default=Role.NORMAL_USER.value)
    store_id: Optional[int] = None


class PasswordUpdate(CamelModel):
    new_password: str = ""
    current_password: Optional[str] = None


class StoreCreate(CamelModel):
    name: str = ""
    email: str = ""
    address: str = ""


class RatingCreate(CamelModel):
    store_id: Optional[int] = None
    value: Any = None


class RatingUpdate(CamelModel):
    value: Any = None


# -------------------- Responses --------------------

class UserRead(CamelModel):
    id: int
    name: str
    email: str
    address: str
    role: Role
    store_id: Optional[int] = None
    created_at: datetime
    average_rating: Optional[float] = None


class StoreSummary(CamelModel):
    id: int
    name: str
    email: str
    address: str
    average_rating: Optional[float] = None


class UserDetail(UserRead):
    store: Optional[StoreSummary] = None


class UserRatingRef(CamelModel):
    id: int
    value: int


class StoreRead(CamelModel):
    id: int
    name: str
    email: str
    address: str
    average_rating: Optional[float] = None
    total_ratings: int = 0
    user_rating: Optional[UserRatingRef] = None
    created_at: datetime


class RatingRead(CamelModel):
    id: int
    store_id: int
    user_id: int
    value: int
    created_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None


class AuthSession(CamelModel):
    token: str
    user: UserRead


class UserEnvelope(CamelModel):
    user: UserDetail


class UserList(CamelModel):
    users: list[UserRead]


class StoreEnvelope(CamelModel):
    store: StoreRead


class StoreList(CamelModel):
    stores: list[StoreRead]


class RatingEnvelope(CamelModel):
    rating: RatingRead


class RatingList(CamelModel):
    ratings: list[RatingRead]


class AdminStats(CamelModel):
    total_users: int
    total_stores: int
    total_ratings: int


class OwnerStats(CamelModel):
    average_rating: Optional[float] = None
    total_ratings: int
    ratings: list[RatingRead]
