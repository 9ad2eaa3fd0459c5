import logging
import secrets
import string
import uuid
from typing import List, Optional
from datetime import datetime, date
from decimal import Decimal
from sqlalchemy.orm import Session

from conference_booking.config import settings
from conference_booking.models import Booking, Attendee, TicketType
from conference_booking.bookings.schemas import (
    BookingRequest, BookingDetail, BookingSnapshot, PaymentMethod, PaymentStatus,
    Booking as BookingSchema, Attendee as AttendeeSchema, PaymentScheduleEntry
)
from conference_booking.bookings.capacity import CapacityGuard
from conference_booking.conferences.service import ConferenceService
from conference_booking.conferences.pricing_service import resolve_unit_price
from conference_booking.discounts.schemas import DiscountLine
from conference_booking.discounts.service import DiscountService
from conference_booking.exceptions import (
    ConferenceBookingError, ConferenceUnavailable, InvalidTicketType, SubtotalMismatch, BookingNotFound
)
from conference_booking.money import to_money, ZERO

logger = logging.getLogger(__name__)

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits

def calculate_age(date_of_birth: Optional[date], today: date) -> Optional[int]:
    """Whole years between birth and ``today``"""
    if date_of_birth is None:
        return None
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age

def initial_payment_status(payment_method: str, total_amount: Decimal) -> PaymentStatus:
    if total_amount <= ZERO:
        return PaymentStatus.PAID
    if payment_method == PaymentMethod.DEPOSIT20.value:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID

def _random_code(length: int) -> str:
    return "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(length))

class BookingService:
    """Service for creating and reading conference bookings"""

    def __init__(self, db: Session):
        self.db = db

    def create_booking(self, request: BookingRequest, now: Optional[datetime] = None) -> Booking:
        """Validate, price and persist a booking with all its attendees.

        Every amount is computed here; nothing the client sent about prices,
        ids or ages is stored.
        """
        now = now or datetime.now()

        conference = ConferenceService.get_conference(self.db, request.conference_id)
        if not conference or not conference.published or not conference.registration_open:
            raise ConferenceUnavailable()

        discount = None
        if request.discount_code:
            discount = DiscountService.validate_discount_code(
                self.db, request.discount_code, conference.id, now
            )

        guard = CapacityGuard(self.db)
        priced = []
        for attendee in request.attendees:
            ticket_type = ConferenceService.get_ticket_type(self.db, attendee.ticket_type_id)
            if not ticket_type or not ticket_type.enabled or ticket_type.conference_id != conference.id:
                raise InvalidTicketType(f"Invalid ticket type for attendee {attendee.full_name}")
            guard.admit(ticket_type)
            priced.append((attendee, ticket_type, resolve_unit_price(ticket_type, conference, now)))

        subtotal = to_money(sum((price for _, _, price in priced), ZERO))
        discount_amount = ZERO
        if discount is not None:
            lines = [DiscountLine(ticket_type_id=t.id, amount=price) for _, t, price in priced]
            discount_amount = DiscountService.calculate_discount(discount, lines)
        total_amount = to_money(max(ZERO, subtotal - discount_amount))

        self._check_client_totals(request, subtotal, total_amount)

        booking = Booking(
            id=str(uuid.uuid4()),
            conference_id=conference.id,
            booking_reference=self._generate_booking_reference(),
            group_leader_name=request.group_leader_name,
            group_leader_email=str(request.group_leader_email).lower(),
            group_leader_phone=request.group_leader_phone,
            attendee_count=len(priced),
            subtotal=subtotal,
            discount_amount=to_money(discount_amount),
            discount_code=discount.code if discount else None,
            total_amount=total_amount,
            payment_method=request.payment_method.value,
            payment_status=initial_payment_status(request.payment_method.value, total_amount).value,
            paid_amount=to_money(0),
            notes=request.notes,
            archived=False,
            created_at=now
        )

        try:
            for attendee, ticket_type, price in priced:
                guard.claim(ticket_type)
                booking.attendees.append(Attendee(
                    id=str(uuid.uuid4()),
                    ticket_id=self._generate_ticket_id(),
                    ticket_type_id=ticket_type.id,
                    full_name=attendee.full_name,
                    email=attendee.email,
                    date_of_birth=attendee.date_of_birth,
                    age=calculate_age(attendee.date_of_birth, now.date()),
                    unit_price=price,
                    emergency_contact=attendee.emergency_contact,
                    medical_history=attendee.medical_history,
                    allergies=attendee.allergies,
                    dietary_restrictions=attendee.dietary_restrictions,
                    consent_waiver=attendee.consent_waiver
                ))
            if discount is not None:
                DiscountService.claim_usage(self.db, discount.id)

            self.db.add(booking)
            self.db.commit()
        except ConferenceBookingError:
            self.db.rollback()
            raise

        self.db.refresh(booking)
        logger.info(
            "Booking %s created for conference %s: %d attendee(s), total %s",
            booking.booking_reference, conference.id, booking.attendee_count, booking.total_amount
        )
        return booking

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Get booking by ID"""
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.get_booking(booking_id)
        if not booking:
            raise BookingNotFound()
        return booking

    def get_booking_by_reference(self, booking_reference: str) -> Optional[Booking]:
        """Get booking by reference number"""
        return self.db.query(Booking).filter(Booking.booking_reference == booking_reference).first()

    def get_booking_by_order_id(self, order_id: str) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.paypal_order_id == order_id).first()

    def get_bookings(self, booking_ids: List[str], include_archived: bool = False) -> List[Booking]:
        if not booking_ids:
            return []
        query = self.db.query(Booking).filter(Booking.id.in_(booking_ids))
        if not include_archived:
            query = query.filter(Booking.archived.is_(False))
        return query.order_by(Booking.created_at.desc()).all()

    @staticmethod
    def to_detail(booking: Booking) -> BookingDetail:
        balance_due = max(ZERO, to_money(booking.total_amount) - to_money(booking.paid_amount))
        return BookingDetail(
            **BookingSchema.model_validate(booking).model_dump(),
            attendees=[AttendeeSchema.model_validate(a) for a in booking.attendees],
            payment_schedules=[PaymentScheduleEntry.model_validate(s) for s in booking.payment_schedules],
            balance_due=to_money(balance_due)
        )

    def build_snapshot(self, booking: Booking) -> BookingSnapshot:
        """Copy everything notifications need out of the session"""
        conference = booking.conference
        ticket_type_ids = {a.ticket_type_id for a in booking.attendees}
        ticket_types = self.db.query(TicketType).filter(TicketType.id.in_(ticket_type_ids)).all()
        venue = conference.venue or {}
        return BookingSnapshot(
            booking=self.to_detail(booking),
            conference_title=conference.title,
            conference_start_date=conference.start_date,
            conference_end_date=conference.end_date,
            venue_name=venue.get("name") if isinstance(venue, dict) else None,
            child_group_leaders=conference.child_group_leaders or {},
            ticket_type_names={t.id: t.name for t in ticket_types},
            ticket_type_categories={t.id: t.type for t in ticket_types}
        )

    def _check_client_totals(self, request: BookingRequest, subtotal: Decimal, total_amount: Decimal):
        submitted = [
            ("subtotal", request.subtotal, subtotal),
            ("total", request.total_amount, total_amount),
        ]
        for label, client_value, server_value in submitted:
            if client_value is None or to_money(client_value) == server_value:
                continue
            if settings.STRICT_CLIENT_TOTALS:
                raise SubtotalMismatch(
                    f"Submitted {label} {to_money(client_value)} does not match calculated {server_value}"
                )
            logger.info(
                "Discarding client %s %s for conference %s (calculated %s)",
                label, client_value, request.conference_id, server_value
            )

    def _generate_booking_reference(self) -> str:
        """Generate human-readable booking reference"""
        while True:
            reference = f"CONF-{_random_code(8)}"
            if not self.get_booking_by_reference(reference):
                return reference

    def _generate_ticket_id(self) -> str:
        return f"TICKET-{_random_code(6)}-{_random_code(6)}"
