import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import api, ui
from .config import configure_logging, get_settings
from .db import get_db, init_db  # noqa: F401  (tests override get_db)
from .errors import STATUS_CODES, StoreRatingError, error_body

configure_logging()
logger = logging.getLogger(__name__)

init_db()

settings = get_settings()

app = FastAPI(title="Store Rating")

app.mount("/static", StaticFiles(directory=str(Path(__file__).parent / "static")), name="static")
app.include_router(api.router, prefix=settings.api_prefix)
app.include_router(ui.router)


def _is_api(request: Request) -> bool:
    return request.url.path.startswith(get_settings().api_prefix + "/")


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.exception_handler(StoreRatingError)
async def domain_error_handler(request: Request, exc: StoreRatingError):
    return JSONResponse(error_body(exc.message, exc.code), status_code=exc.status_code)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if not _is_api(request) and exc.status_code == 404:
        return ui.not_found(request)
    code = STATUS_CODES.get(exc.status_code, "ERROR")
    return JSONResponse(error_body(str(exc.detail), code), status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    if not _is_api(request):
        return ui.not_found(request)
    errors = exc.errors()
    message = errors[0]["msg"] if errors else "Invalid request"
    logger.info("Rejected request body", extra={"path": request.url.path})
    return JSONResponse(error_body(message, "INVALID_INPUT"), status_code=400)


app.add_exception_handler(ui.AccessDenied, ui.access_denied_handler)
