"""
Error handling utilities following FastAPI best practices

ErrorResponse is the single exception type surfaced by repositories and
services. Domain errors subclass it so routers never translate them by hand:
the registered handler renders status code, stable error code and details.
"""

import traceback
from typing import Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from variant_engine.core.config import config
from variant_engine.core.logger import logger


class ErrorResponse(Exception):
    """Custom exception for application errors"""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, status_code: Optional[int] = None, details: dict = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidAttributeSelection(ErrorResponse):
    status_code = 400
    code = "invalid_attribute_selection"


class NoVariantAttributesSelected(ErrorResponse):
    status_code = 400
    code = "no_variant_attributes_selected"

    def __init__(self, message: str = "No variant-generating attributes selected", **kwargs):
        super().__init__(message, **kwargs)


class InvalidIdentifier(ErrorResponse):
    status_code = 400
    code = "invalid_identifier"


class UnsatisfiableConstraint(ErrorResponse):
    """A compatibility rule leaves no valid value for a required attribute."""
    status_code = 409
    code = "unsatisfiable_constraint"


class SkuAllocationExhausted(ErrorResponse):
    status_code = 409
    code = "sku_allocation_exhausted"


class InsufficientStock(ErrorResponse):
    """Guarded stock update did not match; nothing was applied."""
    status_code = 409
    code = "insufficient_stock"


class InventoryDiscontinued(ErrorResponse):
    status_code = 409
    code = "inventory_discontinued"


class VariantNotFound(ErrorResponse):
    status_code = 404
    code = "variant_not_found"


class InventoryRecordNotFound(ErrorResponse):
    status_code = 404
    code = "inventory_record_not_found"


class PersistenceFailure(ErrorResponse):
    status_code = 500
    code = "persistence_failure"


class ErrorResponseModel(BaseModel):
    """Pydantic model for error responses"""
    error: str
    code: str = ErrorResponse.code
    details: Optional[dict] = None


async def error_response_handler(request: Request, exc: ErrorResponse):
    """Handler for custom ErrorResponse exceptions"""
    metadata = {
        "event": "error_response",
        "status_code": exc.status_code,
        "code": exc.code,
        "url": str(request.url),
        "method": request.method,
        **exc.details,
    }

    if exc.status_code >= 500:
        if config.environment == "development":
            metadata["traceback"] = "".join(traceback.format_exception(exc))
        logger.error(f"Error: {exc.message}", metadata=metadata)
    else:
        logger.warning(f"Request rejected: {exc.message}", metadata=metadata)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "details": exc.details},
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handler for FastAPI HTTPException"""
    logger.error(
        f"HTTPException: {exc.detail}",
        metadata={
            "event": "http_exception",
            "status_code": exc.status_code,
            "url": str(request.url),
            "method": request.method,
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request body and parameter validation errors"""
    logger.warning(
        "Request validation failed",
        metadata={
            "event": "validation_error",
            "url": str(request.url),
            "method": request.method,
            "errors": len(exc.errors()),
        }
    )

    return JSONResponse(
        status_code=422,
        content={
            "error": "Validation error",
            "code": "validation_error",
            "details": jsonable_encoder(exc.errors()),
        }
    )
