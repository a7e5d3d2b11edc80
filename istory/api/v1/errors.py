"""Exception handlers rendering errors as ``{"error": message}`` bodies."""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from istory.core.exceptions import AppError
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    log = LOGGER.error if exc.status_code >= 500 else LOGGER.info
    log(
        f"{type(exc).__name__}: {exc.message}",
        extra={
            "path": request.url.path,
            "status_code": exc.status_code,
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error(
        f"Unhandled error on {request.method} {request.url.path}",
        exc_info=exc,
        extra={"correlation_id": getattr(request.state, "correlation_id", None)},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
