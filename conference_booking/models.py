from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text, ForeignKey, Numeric, JSON,
    UniqueConstraint, Index, func
)
from sqlalchemy.orm import relationship
from conference_booking.database import Base

MONEY = Numeric(10, 2)

# ================================
# Conferences & Ticket Types
# ================================
class Conference(Base):
    __tablename__ = "conferences"

    id = Column(String(64), primary_key=True, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    start_date = Column(Date)
    end_date = Column(Date)
    venue = Column(JSON)  # {"name": ..., "address": ...}
    published = Column(Boolean, default=False, nullable=False)
    registration_open = Column(Boolean, default=False, nullable=False)
    early_bird_start_date = Column(Date)
    early_bird_end_date = Column(Date)
    early_bird_discount_amount = Column(MONEY, default=0)
    payment_settings = Column(JSON)
    child_group_leaders = Column(JSON)  # {"0-5": email, "6-8": email, "9-12": email}
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    ticket_types = relationship("TicketType", back_populates="conference", cascade="all, delete-orphan")
    discount_codes = relationship("DiscountCode", back_populates="conference", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="conference")

class TicketType(Base):
    __tablename__ = "conference_ticket_types"

    id = Column(String(64), primary_key=True, index=True)
    conference_id = Column(String(64), ForeignKey("conferences.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    type = Column(String(50), nullable=False, default="adult")  # adult, teen, child, under-2s, ...
    camping = Column(Boolean, default=False, nullable=False)
    price = Column(MONEY, nullable=False, default=0)
    early_bird_price = Column(MONEY)
    early_bird_end_date = Column(Date)
    late_price = Column(MONEY)
    late_price_start_date = Column(Date)
    capacity = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    sold = Column(Integer, nullable=False, default=0)
    age_min = Column(Integer)
    age_max = Column(Integer)
    enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    conference = relationship("Conference", back_populates="ticket_types")

# ================================
# Discount Codes
# ================================
class DiscountCode(Base):
    __tablename__ = "conference_discount_codes"

    id = Column(String(64), primary_key=True, index=True)
    conference_id = Column(String(64), ForeignKey("conferences.id"), nullable=False, index=True)
    code = Column(String(100), nullable=False)
    description = Column(Text)
    type = Column(String(20), nullable=False, default="percentage")  # percentage, fixed
    value = Column(MONEY, nullable=False, default=0)
    applicable_ticket_types = Column(JSON, default=list)  # empty = all
    max_usage = Column(Integer, nullable=False, default=0)  # 0 = unlimited
    used_count = Column(Integer, nullable=False, default=0)
    expiry_date = Column(DateTime)
    enabled = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    conference = relationship("Conference", back_populates="discount_codes")

# Codes are unique per conference regardless of case
Index("ux_discount_code_per_conference", DiscountCode.conference_id, func.lower(DiscountCode.code), unique=True)

# ================================
# Bookings & Attendees
# ================================
class Booking(Base):
    __tablename__ = "conference_bookings"

    id = Column(String(64), primary_key=True, index=True)
    conference_id = Column(String(64), ForeignKey("conferences.id"), nullable=False, index=True)
    booking_reference = Column(String(32), unique=True, nullable=False, index=True)
    group_leader_name = Column(String(255), nullable=False)
    group_leader_email = Column(String(255), nullable=False, index=True)
    group_leader_phone = Column(String(50))
    attendee_count = Column(Integer, nullable=False, default=0)
    subtotal = Column(MONEY, nullable=False, default=0)
    discount_amount = Column(MONEY, nullable=False, default=0)
    discount_code = Column(String(100))
    total_amount = Column(MONEY, nullable=False, default=0)
    payment_method = Column(String(30), nullable=False, default="full")
    payment_status = Column(String(20), nullable=False, default="unpaid")  # unpaid, partial, paid
    paid_amount = Column(MONEY, nullable=False, default=0)
    paypal_order_id = Column(String(64), index=True)
    paypal_order_status = Column(String(32))
    paypal_capture_id = Column(String(64))
    payment_date = Column(DateTime)
    notes = Column(Text)
    archived = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    conference = relationship("Conference", back_populates="bookings")
    attendees = relationship("Attendee", back_populates="booking", cascade="all, delete-orphan",
                             passive_deletes=True)
    payment_schedules = relationship("PaymentSchedule", back_populates="booking",
                                     cascade="all, delete-orphan", passive_deletes=True,
                                     order_by="PaymentSchedule.installment_number")
    captures = relationship("PaymentCapture", back_populates="booking", cascade="all, delete-orphan",
                            passive_deletes=True)

class Attendee(Base):
    __tablename__ = "conference_attendees"

    id = Column(String(64), primary_key=True, index=True)
    booking_id = Column(String(64), ForeignKey("conference_bookings.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    ticket_id = Column(String(64), unique=True, nullable=False)
    ticket_type_id = Column(String(64), ForeignKey("conference_ticket_types.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255))
    date_of_birth = Column(Date)
    age = Column(Integer)
    unit_price = Column(MONEY, nullable=False, default=0)
    emergency_contact = Column(JSON)
    medical_history = Column(Text)
    allergies = Column(Text)
    dietary_restrictions = Column(Text)
    consent_waiver = Column(Boolean)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    booking = relationship("Booking", back_populates="attendees")
    ticket_type = relationship("TicketType")

# ================================
# Payments
# ================================
class PaymentSchedule(Base):
    __tablename__ = "conference_payment_schedules"

    id = Column(String(64), primary_key=True, index=True)
    booking_id = Column(String(64), ForeignKey("conference_bookings.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    conference_id = Column(String(64), ForeignKey("conferences.id"), nullable=False)
    amount = Column(MONEY, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, paid
    installment_number = Column(Integer, nullable=False)
    paid_at = Column(DateTime)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    booking = relationship("Booking", back_populates="payment_schedules")

class PaymentCapture(Base):
    __tablename__ = "payment_captures"
    __table_args__ = (
        UniqueConstraint("booking_id", "capture_id", name="uq_payment_capture"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(64), ForeignKey("conference_bookings.id", ondelete="CASCADE"),
                        nullable=False, index=True)
    capture_id = Column(String(64), nullable=False)
    order_id = Column(String(64))
    amount = Column(MONEY, nullable=False)
    source = Column(String(20), nullable=False, default="capture")  # capture, webhook, manual, import
    created_at = Column(DateTime, nullable=False)

    # Relationships
    booking = relationship("Booking", back_populates="captures")

# ================================
# User Accounts
# ================================
class UserAccount(Base):
    __tablename__ = "user_accounts"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-cased
    name = Column(String(255))
    password_hash = Column(String(255))
    email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime)
    verified = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime)
    password_changed_at = Column(DateTime)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    booking_links = relationship("AccountBooking", back_populates="account", cascade="all, delete-orphan")

    @property
    def booking_ids(self):
        return [link.booking_id for link in self.booking_links]

class AccountBooking(Base):
    __tablename__ = "account_bookings"

    account_id = Column(String(64), ForeignKey("user_accounts.id", ondelete="CASCADE"), primary_key=True)
    booking_id = Column(String(64), primary_key=True, index=True)

    # Relationships
    account = relationship("UserAccount", back_populates="booking_links")

class EmailVerificationCode(Base):
    __tablename__ = "email_verification_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    code = Column(String(6), nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)

class PasswordResetToken(Base):
    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    token = Column(String(128), nullable=False, unique=True)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False)
