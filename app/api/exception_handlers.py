# app/api/exception_handlers.py

from typing import TYPE_CHECKING
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from exceptions.domain_exceptions import DomainException
import logging

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """
    Global exception handler for domain exceptions in FastAPI

    Returns a consistent JSON response format for all domain exceptions
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.__class__.__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details,
            "path": request.url.path
        }
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters are a client error (400)"""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "InvalidRequest",
            "message": "Invalid request body",
            "details": {"errors": jsonable_encoder(exc.errors())},
            "path": request.url.path
        }
    )


def register_exception_handlers(app: "FastAPI") -> None:
    """
    Register exception handlers with FastAPI app

    DomainException covers every subclass (chat errors, not found, conflicts).
    """
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
