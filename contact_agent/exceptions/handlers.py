import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .custom import (
    AuthorizationError,
    ExtractionError,
    LoginError,
    NavigationError,
    TaskValidationError,
)

logger = logging.getLogger(__name__)


def _error_body(message: str, where: str | None) -> dict[str, str]:
    body = {"error": message}
    if where:
        body["where"] = where
    return body


async def validation_error_handler(_request: Request, exc: TaskValidationError) -> JSONResponse:
    logger.info("Rejected task request: %s", exc.message)
    return JSONResponse(status_code=400, content=_error_body(exc.message, exc.where))


async def request_validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request body")
    if field:
        message = f"{field}: {message}"
    logger.info("Rejected malformed task request: %s", message)
    return JSONResponse(status_code=400, content={"error": message})


async def authorization_error_handler(_request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.warning("Unauthorized task request")
    return JSONResponse(status_code=403, content={"error": exc.message})


async def navigation_error_handler(_request: Request, exc: NavigationError) -> JSONResponse:
    logger.error("Navigation failed in %s: %s", exc.where, exc.message)
    return JSONResponse(status_code=502, content=_error_body(exc.message, exc.where))


async def login_error_handler(_request: Request, exc: LoginError) -> JSONResponse:
    logger.error("Login failed in %s: %s", exc.where, exc.message)
    return JSONResponse(status_code=502, content=_error_body(exc.message, exc.where))


async def extraction_error_handler(_request: Request, exc: ExtractionError) -> JSONResponse:
    logger.error("Extraction failed in %s: %s", exc.where, exc.message)
    return JSONResponse(status_code=500, content=_error_body(exc.message, exc.where))
