"""Runtime configuration for the app (read from the environment, overridable during tests/runtime)."""
import logging
import os
from typing import NamedTuple


class Settings(NamedTuple):
    database_url: str
    jwt_secret: str
    jwt_expiration_seconds: int
    api_prefix: str
    api_base_url: str
    page_size: int
    log_level: str
    session_cookie: str


def from_env() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./storerating.db"),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        jwt_expiration_seconds=int(os.getenv("JWT_EXPIRATION_SECONDS", str(60 * 60 * 24))),
        api_prefix=os.getenv("API_PREFIX", "/api"),
        api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000/api"),
        page_size=int(os.getenv("PAGE_SIZE", "10")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        session_cookie=os.getenv("SESSION_COOKIE", "session_token"),
    )


state = from_env()


def configure(**overrides) -> Settings:
    """Replace individual settings at runtime, e.g. ``configure(api_base_url="/api")``."""
    global state
    state = state._replace(**overrides)
    return state


def get_settings() -> Settings:
    return state


def configure_logging(level: str | None = None):
    logging.basicConfig(
        level=(level or state.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
