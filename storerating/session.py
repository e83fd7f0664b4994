"""Authenticated principal for one client session.

The context is built explicitly and handed to whatever needs it:
``init()`` restores a previous session from the token store and
``logout()`` tears it down again.
"""
import enum
import logging
from typing import Iterable, Mapping, NamedTuple, Protocol

from .roles import Role, default_redirect_path
from .services import ApiError, AuthService

logger = logging.getLogger(__name__)


class Principal(NamedTuple):
    id: int
    name: str
    email: str
    role: Role
    address: str | None = None
    store_id: int | None = None

    @classmethod
    def from_api(cls, data: Mapping) -> "Principal":
        return cls(
            id=data["id"],
            name=data["name"],
            email=data["email"],
            role=Role(data["role"]),
            address=data.get("address"),
            store_id=data.get("storeId"),
        )


class AuthResult(NamedTuple):
    ok: bool
    principal: Principal | None = None
    error: str | None = None


class Access(enum.Enum):
    ALLOWED = "allowed"
    LOGIN = "login"
    NOT_FOUND = "not_found"


class TokenStore(Protocol):
    def get(self) -> str | None: ...

    def set(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    def __init__(self, token: str | None = None):
        self.token = token

    def get(self) -> str | None:
        return self.token

    def set(self, token: str):
        self.token = token

    def clear(self):
        self.token = None


class SessionContext:
    def __init__(self, auth: AuthService, token_store: TokenStore):
        self.auth = auth
        self.token_store = token_store
        self.current_user: Principal | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    @property
    def home_path(self) -> str:
        if self.current_user is None:
            return "/login"
        return default_redirect_path(self.current_user.role)

    def _use_token(self, token: str | None):
        self.auth.api.token = token

    def _establish(self, data: Mapping) -> Principal:
        token = data["token"]
        self.token_store.set(token)
        self._use_token(token)
        self.current_user = Principal.from_api(data["user"])
        return self.current_user

    def init(self) -> Principal | None:
        """Restore the session from a stored token, if it is still accepted."""
        token = self.token_store.get()
        if not token:
            return None
        self._use_token(token)
        try:
            self.current_user = Principal.from_api(self.auth.me())
        except ApiError as exc:
            logger.info("Session restore failed", extra={"status": exc.status_code})
            self._forget()
        return self.current_user

    def login(self, email: str, password: str) -> AuthResult:
        try:
            data = self.auth.login(email, password)
        except ApiError as exc:
            return AuthResult(False, error=exc.describe("Login failed. Please try again."))
        principal = self._establish(data)
        logger.info("Logged in", extra={"user_id": principal.id, "role": principal.role.value})
        return AuthResult(True, principal)

    def register(self, fields: Mapping[str, str]) -> AuthResult:
        try:
            data = self.auth.register(fields)
        except ApiError as exc:
            return AuthResult(False, error=exc.describe("Registration failed. Please try again."))
        principal = self._establish(data)
        logger.info("Registered", extra={"user_id": principal.id})
        return AuthResult(True, principal)

    def _forget(self):
        self.token_store.clear()
        self._use_token(None)
        self.current_user = None

    def logout(self):
        if self.current_user is not None:
            try:
                self.auth.logout()
            except ApiError:
                # the token is discarded locally either way
                logger.info("Logout request failed", extra={"user_id": self.current_user.id})
        self._forget()

    def check_access(self, allowed_roles: Iterable[Role]) -> Access:
        if self.current_user is None:
            return Access.LOGIN
        if self.current_user.role not in set(allowed_roles):
            return Access.NOT_FOUND
        return Access.ALLOWED
