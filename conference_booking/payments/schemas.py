from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from decimal import Decimal

from conference_booking.bookings.schemas import PaymentMethod, PaymentStatus

class PaymentOrderRequest(BaseModel):
    """Request to start a gateway payment for a booking"""
    booking_id: str
    payment_method: Optional[PaymentMethod] = None
    amount: Optional[Decimal] = Field(None, gt=0)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class PaymentOrderResponse(BaseModel):
    order_id: str
    status: str
    amount: Decimal
    currency: str
    links: List[Dict[str, Any]] = []

class CaptureRequest(BaseModel):
    order_id: str

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class CaptureResponse(BaseModel):
    booking_id: str
    status: PaymentStatus
    amount_paid: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    account_exists: bool
    account_verified: bool

class CapturedPayment(BaseModel):
    """The parts of a gateway capture the ledger cares about"""
    capture_id: str
    amount: Decimal
    currency: Optional[str] = None
    status: str
    booking_id: Optional[str] = None
    order_id: Optional[str] = None

class WebhookAck(BaseModel):
    received: bool = True
    event_type: Optional[str] = None
    applied: bool = False
