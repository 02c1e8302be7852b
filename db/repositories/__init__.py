"""
Repository layer exports.
"""

from db.repositories.product_repository import ProductRepository

__all__ = [
    "ProductRepository",
]
