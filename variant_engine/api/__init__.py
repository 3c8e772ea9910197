"""
API routers
"""

from . import health, inventory, variants

__all__ = ["health", "inventory", "variants"]
