from pydantic import BaseModel, EmailStr, Field, validator
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

MAX_ATTENDEES_PER_BOOKING = 20

class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"

class PaymentMethod(str, Enum):
    """How the group leader intends to pay"""
    FULL = "full"
    DEPOSIT = "deposit"
    INSTALLMENT = "installment"
    DEPOSIT20 = "deposit20"
    BANK_TRANSFER = "bank_transfer"

# Methods that leave a balance collected through a payment schedule
INSTALLMENT_METHODS = {PaymentMethod.DEPOSIT.value, PaymentMethod.INSTALLMENT.value}

class ScheduleStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"

# Request Models
class AttendeeInput(BaseModel):
    """Attendee as submitted on the booking form.

    Ids, ticket ids and ages are always generated server side; any such
    fields sent by the client are dropped.
    """
    ticket_type_id: str
    full_name: str = Field(..., min_length=1)
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    consent_waiver: Optional[bool] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class BookingRequest(BaseModel):
    """Request to book one or more attendees onto a conference"""
    conference_id: str
    group_leader_name: str = Field(..., min_length=1)
    group_leader_email: EmailStr
    group_leader_phone: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.FULL
    attendees: List[AttendeeInput]
    discount_code: Optional[str] = None
    notes: Optional[str] = None
    # Client-side figures: never persisted, only compared in strict mode
    subtotal: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @validator('attendees')
    def validate_attendees(cls, v):
        if not v:
            raise ValueError('At least one attendee is required')
        if len(v) > MAX_ATTENDEES_PER_BOOKING:
            raise ValueError(f'Maximum {MAX_ATTENDEES_PER_BOOKING} attendees per booking')
        return v

    @validator('discount_code')
    def blank_code_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v

# Response Models
class Attendee(BaseModel):
    id: str
    booking_id: str
    ticket_id: str
    ticket_type_id: str
    full_name: str
    email: Optional[str] = None
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    unit_price: Decimal
    emergency_contact: Optional[Dict[str, Any]] = None
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    consent_waiver: Optional[bool] = None

    class Config:
        from_attributes = True

class PaymentScheduleEntry(BaseModel):
    id: str
    booking_id: str
    conference_id: str
    amount: Decimal
    due_date: date
    status: ScheduleStatus
    installment_number: int
    paid_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class Booking(BaseModel):
    id: str
    conference_id: str
    booking_reference: str
    group_leader_name: str
    group_leader_email: str
    group_leader_phone: Optional[str] = None
    attendee_count: int
    subtotal: Decimal
    discount_amount: Decimal
    discount_code: Optional[str] = None
    total_amount: Decimal
    payment_method: str
    payment_status: PaymentStatus
    paid_amount: Decimal
    paypal_order_id: Optional[str] = None
    paypal_capture_id: Optional[str] = None
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    archived: bool = False
    created_at: datetime

    class Config:
        from_attributes = True

class BookingDetail(Booking):
    attendees: List[Attendee] = []
    payment_schedules: List[PaymentScheduleEntry] = []
    balance_due: Decimal

class AttendeeSummary(BaseModel):
    """Attendee without contact or health details"""
    id: str
    ticket_id: str
    ticket_type_id: str
    full_name: str
    age: Optional[int] = None
    unit_price: Decimal

    class Config:
        from_attributes = True

class BookingSummary(Booking):
    """Booking as shown to anyone holding its id"""
    attendees: List[AttendeeSummary] = []
    payment_schedules: List[PaymentScheduleEntry] = []
    balance_due: Decimal

class BookingResponse(BaseModel):
    """Outcome of a successful booking"""
    booking_id: str
    booking_reference: str
    subtotal: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    account_needs_setup: bool
    account_exists: bool
    account_verified: bool

class BookingSnapshot(BaseModel):
    """Detached copy of a booking handed to background notifications"""
    booking: BookingDetail
    conference_title: str
    conference_start_date: Optional[date] = None
    conference_end_date: Optional[date] = None
    venue_name: Optional[str] = None
    child_group_leaders: Dict[str, Optional[str]] = {}
    ticket_type_names: Dict[str, str] = {}
    ticket_type_categories: Dict[str, str] = {}
