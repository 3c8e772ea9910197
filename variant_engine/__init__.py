"""
Variant Engine

Variant generation and inventory consistency service for configurable products.
"""

__version__ = "1.0.0"
