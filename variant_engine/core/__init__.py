"""
Core module initialization

- config: environment-driven settings
- logger: structured logging with correlation IDs
- errors: ErrorResponse hierarchy and FastAPI handlers
"""

from .config import config
from .logger import logger
from .errors import (
    ErrorResponse,
    ErrorResponseModel,
    error_response_handler,
    http_exception_handler,
    validation_exception_handler,
)

__all__ = [
    "config",
    "logger",
    "ErrorResponse",
    "ErrorResponseModel",
    "error_response_handler",
    "http_exception_handler",
    "validation_exception_handler",
]
