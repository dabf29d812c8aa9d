from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from smart_parking.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ParkingError,
    StateError,
    ValidationError,
)

STATUS_CODES = {
    ValidationError: 422,
    NotFoundError: 404,
    ConflictError: 409,
    StateError: 409,
    AuthorizationError: 403,
}


def status_code_for(exc: ParkingError) -> int:
    for error_type, code in STATUS_CODES.items():
        if isinstance(exc, error_type):
            return code
    return 400


async def parking_error_handler(request: Request, exc: ParkingError) -> JSONResponse:
    code = status_code_for(exc)
    logger.debug(f"{request.method} {request.url.path} -> {code}: {exc}")
    return JSONResponse(
        status_code=code,
        content={"detail": str(exc), "error": type(exc).__name__, "retryable": exc.retryable},
    )
