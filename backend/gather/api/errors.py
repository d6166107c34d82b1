"""
Maps domain errors to HTTP responses.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from gather.core.logging import get_logger
from gather.domain.errors import DomainError, ErrorCode

logger = get_logger(__name__)

STATUS_BY_CODE = {
    ErrorCode.INVALID_EVENT: status.HTTP_404_NOT_FOUND,
    ErrorCode.REGISTRATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_REGISTRATION: status.HTTP_409_CONFLICT,
    ErrorCode.CAPACITY_RACE_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_STATUS_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorCode.EVENT_HAS_ACTIVE_REGISTRATIONS: status.HTTP_409_CONFLICT,
    ErrorCode.INVALID_CAPACITY: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
    headers = None
    if exc.code is ErrorCode.CAPACITY_RACE_CONFLICT:
        headers = {"Retry-After": "1"}
    logger.info("domain_error", code=exc.code.value, status_code=status_code)
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code.value, "detail": exc.message},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
