from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class NotFound(HTTPException):
    """A template, document or person does not exist."""

    def __init__(self, message: str):
        super().__init__(
            status_code=404, detail={"code": "not_found", "message": message}
        )


class Forbidden(HTTPException):
    """The actor does not hold a role the operation requires."""

    def __init__(self, message: str):
        super().__init__(
            status_code=403, detail={"code": "forbidden", "message": message}
        )


class InvalidState(HTTPException):
    """The document status does not allow the requested transition."""

    def __init__(self, message: str):
        super().__init__(
            status_code=409, detail={"code": "invalid_state", "message": message}
        )


class IOFailure(HTTPException):
    """The template could not be read or the rendered PDF could not be written."""

    def __init__(self, message: str):
        super().__init__(
            status_code=500, detail={"code": "io_failure", "message": message}
        )


class DecodeFailure(ValueError):
    """A single signature image could not be decoded.

    Raised and caught inside the compositor only; the field falls back to a
    text marker and the render carries on.
    """


def error_message(exc: HTTPException) -> str:
    detail = exc.detail
    if isinstance(detail, dict):
        return detail.get("message", "")
    if isinstance(detail, str):
        return detail
    return ""


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = error_message(exc) or "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            details = detail.get("details")
        elif not isinstance(detail, str):
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items()}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
