# payments/models/__init__.py

from .panel import Panel
from .payment import Payment

__all__ = [
    "Panel",
    "Payment",
]
