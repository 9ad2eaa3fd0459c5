"""
Discount codes: case-insensitive lookup per conference, validation against
enabled/expiry/usage rules, percentage and fixed amount application.
"""

from .router import router
from .service import DiscountService

__all__ = ["router", "DiscountService"]
