from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal

from conference_booking.bookings.schemas import PaymentStatus

class RegisterRequest(BaseModel):
    email: EmailStr
    booking_id: Optional[str] = Field(None, alias="bookingId")
    name: Optional[str] = None

    class Config:
        populate_by_name = True

class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)

class EmailRequest(BaseModel):
    email: EmailStr

class SetPasswordRequest(BaseModel):
    email: EmailStr
    password: str

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class ResetPasswordRequest(BaseModel):
    email: EmailStr
    token: str
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True

class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")

    class Config:
        populate_by_name = True

class UserAccount(BaseModel):
    id: str
    email: EmailStr
    name: Optional[str] = None
    email_verified: bool
    verified: bool
    booking_ids: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserAccount

class MessageResponse(BaseModel):
    success: bool = True
    message: str

class VerifyEmailResponse(MessageResponse):
    needs_password: bool = True

class AccountStatus(BaseModel):
    exists: bool
    verified: bool
    email: str

class AccountBookingSummary(BaseModel):
    """Linked booking as listed on the account page"""
    id: str
    booking_reference: str
    conference_id: str
    conference_title: Optional[str] = None
    conference_start_date: Optional[date] = None
    attendee_count: int
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    payment_status: PaymentStatus
    payment_method: str
    created_at: datetime
