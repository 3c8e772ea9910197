"""
Middleware modules for the Variant Engine
"""

from .correlation_id import CorrelationIdMiddleware

__all__ = ["CorrelationIdMiddleware"]
