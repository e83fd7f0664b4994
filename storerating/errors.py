"""Domain errors raised by ``crud`` and turned into error envelopes by the API."""


class StoreRatingError(ValueError):
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationFailed(StoreRatingError):
    code = "VALIDATION_FAILED"


class NotFoundError(StoreRatingError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(StoreRatingError):
    status_code = 409
    code = "CONFLICT"


class ForbiddenError(StoreRatingError):
    status_code = 403
    code = "FORBIDDEN"


STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    500: "INTERNAL_ERROR",
}


def error_body(message: str, code: str) -> dict:
    return {"success": False, "error": {"code": code, "message": message}}
