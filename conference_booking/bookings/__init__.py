"""
Conference bookings.

- capacity.py: per ticket type capacity checks and atomic sold counter
- booking_service.py: prices, discounts and persists a booking with its attendees
- router.py: booking creation and lookup endpoints
- schemas.py: request, response and snapshot models
"""

from .router import router
from .booking_service import BookingService
from .capacity import CapacityGuard
from .schemas import BookingRequest, BookingResponse, BookingDetail, PaymentStatus, PaymentMethod

__all__ = [
    "router",
    "BookingService",
    "CapacityGuard",
    "BookingRequest",
    "BookingResponse",
    "BookingDetail",
    "PaymentStatus",
    "PaymentMethod",
]
