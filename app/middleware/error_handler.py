import logging
import traceback
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from app.schemas.common import ErrorBody, ErrorDetail, ErrorResponse
from app.utils.exceptions import AppException, ErrorCode

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, error: ErrorBody) -> JSONResponse:
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Render an AppException (raised directly or via ServiceResult.unwrap)."""
    if exc.status_code >= 500:
        logger.error(f"{exc} on {request.method} {request.url}")
    error = exc.detail.get("error") or {"code": ErrorCode.INTERNAL_SERVER_ERROR}
    return _error_response(exc.status_code, exc.message, ErrorBody(**error))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors (422).
    Each failing field becomes one ErrorDetail; "body" is dropped from the location.
    """
    details = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field = ".".join(str(part) for part in loc if part != "body") if loc else "unknown"
        details.append(ErrorDetail(field=field or "body", message=error.get("msg", "Invalid value")))

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error. Please check your input.",
        ErrorBody(code=ErrorCode.VALIDATION_ERROR, details=details),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all for failures outside the service layer (dependencies, DB sessions).
    Logs the full traceback, returns a safe 500 response.
    """
    logger.error(
        f"Unhandled exception on {request.method} {request.url}\n"
        f"{''.join(traceback.format_exception(exc))}"
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        ErrorBody(code=ErrorCode.INTERNAL_SERVER_ERROR),
    )
