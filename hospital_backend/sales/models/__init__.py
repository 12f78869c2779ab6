# sales/models/__init__.py

from .sale import Sale

__all__ = [
    "Sale",
]
