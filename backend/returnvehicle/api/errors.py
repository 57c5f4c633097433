"""
Exception handlers: every domain error becomes {"detail", "code"} with its
own status, so clients can tell "sold out" from "already cancelled".
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from returnvehicle.core.exceptions import DependencyFailureError, DomainError
from returnvehicle.core.logging import get_logger

logger = get_logger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("domain_error", code=exc.code, detail=exc.message)
    else:
        logger.info("domain_error", code=exc.code, detail=exc.message, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


async def storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("storage_unavailable", error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage temporarily unavailable", "code": DependencyFailureError.code},
    )


EXCEPTION_HANDLERS = {
    DomainError: domain_error_handler,
    OperationalError: storage_error_handler,
    InterfaceError: storage_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
