"""
Correlation ID utilities for distributed tracing
Shared across API and service components
"""

import uuid
from contextvars import ContextVar
from typing import Dict

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Context variable to store correlation ID across async operations
correlation_id_context: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """
    Get the current correlation ID from context
    Generates a new one if none exists

    Returns:
        str: Current correlation ID
    """
    correlation_id = correlation_id_context.get("")
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        correlation_id_context.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in context"""
    correlation_id_context.set(correlation_id)


def create_correlation_id() -> str:
    """Create a new UUID-based correlation ID"""
    return str(uuid.uuid4())


def extract_correlation_id_from_headers(headers: Dict[str, str]) -> str:
    """
    Extract correlation ID from request headers
    Generates new one if not present
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    correlation_id = lowered.get(CORRELATION_ID_HEADER.lower())

    if not correlation_id:
        correlation_id = create_correlation_id()

    return correlation_id
