"""Payment ledger for conference bookings.

Payments accumulate on ``Booking.paid_amount``; a new payment never replaces
an earlier one. The paid amount is clamped to the booking total, and the
status follows it: ``paid`` once the total is covered, ``partial`` before.
Each gateway capture is recorded once per ``(booking_id, capture_id)``, so
replayed captures and webhook retries leave the ledger untouched.
"""

import logging
import uuid
from typing import Optional, Tuple
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import case, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from conference_booking.config import settings
from conference_booking.models import Booking, Conference, PaymentCapture, PaymentSchedule
from conference_booking.bookings.schemas import (
    INSTALLMENT_METHODS, PaymentMethod, PaymentStatus, ScheduleStatus
)
from conference_booking.conferences.schemas import PaymentSettings
from conference_booking.exceptions import BookingNotFound, InvalidPaymentAmount
from conference_booking.money import to_money, percent_of, ZERO

logger = logging.getLogger(__name__)

def balance_due(booking) -> Decimal:
    return max(ZERO, to_money(booking.total_amount) - to_money(booking.paid_amount))

def payment_settings_for(conference) -> Optional[PaymentSettings]:
    if conference is None or not conference.payment_settings:
        return None
    return PaymentSettings.model_validate(conference.payment_settings)

def split_installments(remaining: Decimal, count: int) -> list:
    """Split ``remaining`` into ``count`` 2dp amounts; the last absorbs rounding"""
    if count <= 0:
        return []
    each = to_money(remaining / count)
    amounts = [each] * (count - 1)
    amounts.append(to_money(remaining - each * (count - 1)))
    return amounts

class PaymentLedgerService:
    """Resolves payment amounts and records confirmed payments"""

    def __init__(self, db: Session):
        self.db = db

    def resolve_payment_amount(
        self,
        booking: Booking,
        payment_method: Optional[str] = None,
        custom_amount: Optional[Decimal] = None
    ) -> Decimal:
        """Amount to charge for the next payment on ``booking``.

        Precedence: custom amount, 20% deposit, configured deposit, next
        scheduled installment, full balance. Always capped at the balance.
        """
        due = balance_due(booking)
        if due <= ZERO:
            raise InvalidPaymentAmount("Booking is already fully paid")

        if custom_amount is not None:
            amount = to_money(custom_amount)
            if amount <= ZERO:
                raise InvalidPaymentAmount("Payment amount must be greater than zero")
            if amount > due:
                raise InvalidPaymentAmount(f"Payment amount {amount} exceeds the balance due of {due}")
            return amount

        method = payment_method or booking.payment_method
        first_payment = to_money(booking.paid_amount) <= ZERO
        options = payment_settings_for(booking.conference)

        if method == PaymentMethod.DEPOSIT20.value and first_payment:
            return min(due, percent_of(booking.total_amount, settings.DEPOSIT20_PERCENTAGE))

        if method in INSTALLMENT_METHODS:
            if first_payment and options is not None:
                if options.deposit_amount:
                    return min(due, to_money(options.deposit_amount))
                if options.deposit_percentage:
                    return min(due, percent_of(booking.total_amount, options.deposit_percentage))
            next_installment = self._next_pending_installment(booking.id)
            if next_installment is not None:
                return min(due, to_money(next_installment.amount))

        return due

    def record_payment(
        self,
        booking_id: str,
        amount_paid: Decimal,
        capture_id: Optional[str] = None,
        order_id: Optional[str] = None,
        source: str = "capture",
        now: Optional[datetime] = None
    ) -> Tuple[Booking, bool]:
        """Add a confirmed payment to the booking.

        Returns the booking and whether the payment was applied; a capture id
        seen before for this booking is ignored.
        """
        now = now or datetime.now()
        amount_paid = to_money(amount_paid)
        if amount_paid <= ZERO:
            raise InvalidPaymentAmount("Payment amount must be greater than zero")

        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise BookingNotFound()

        capture_id = capture_id or f"manual-{uuid.uuid4()}"
        try:
            self.db.add(PaymentCapture(
                booking_id=booking.id,
                capture_id=capture_id,
                order_id=order_id,
                amount=amount_paid,
                source=source,
                created_at=now
            ))
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.info("Capture %s already recorded for booking %s; ignoring", capture_id, booking_id)
            return self.db.query(Booking).filter(Booking.id == booking_id).first(), False

        new_paid = Booking.paid_amount + amount_paid
        self.db.execute(
            update(Booking)
            .where(Booking.id == booking.id)
            .values(paid_amount=case((new_paid >= Booking.total_amount, Booking.total_amount), else_=new_paid))
            .execution_options(synchronize_session=False)
        )
        self.db.refresh(booking)

        if to_money(booking.paid_amount) >= to_money(booking.total_amount):
            booking.paid_amount = to_money(booking.total_amount)
            booking.payment_status = PaymentStatus.PAID.value
        else:
            booking.payment_status = PaymentStatus.PARTIAL.value
        booking.paypal_capture_id = capture_id
        booking.payment_date = now

        if booking.payment_method in INSTALLMENT_METHODS:
            self._ensure_schedule(booking, now)
        self._settle_schedule(booking, now)

        self.db.commit()
        self.db.refresh(booking)
        logger.info(
            "Recorded %s payment of %s on booking %s: paid %s of %s (%s)",
            source, amount_paid, booking.booking_reference, booking.paid_amount,
            booking.total_amount, booking.payment_status
        )
        return booking, True

    def _next_pending_installment(self, booking_id: str) -> Optional[PaymentSchedule]:
        return (
            self.db.query(PaymentSchedule)
            .filter(PaymentSchedule.booking_id == booking_id,
                    PaymentSchedule.status == ScheduleStatus.PENDING.value)
            .order_by(PaymentSchedule.installment_number)
            .first()
        )

    def _ensure_schedule(self, booking: Booking, now: datetime) -> None:
        """Spread the remaining balance over future installments, once per booking"""
        exists = self.db.query(PaymentSchedule.id).filter(PaymentSchedule.booking_id == booking.id).first()
        if exists:
            return

        conference = self.db.query(Conference).filter(Conference.id == booking.conference_id).first()
        options = payment_settings_for(conference)
        if options is None or options.installment_count < 2:
            return

        remaining = balance_due(booking)
        if remaining <= ZERO:
            return

        today = now.date()
        amounts = split_installments(remaining, options.installment_count - 1)
        for i, amount in enumerate(amounts, start=1):
            self.db.add(PaymentSchedule(
                id=f"schedule-{booking.id}-{i}",
                booking_id=booking.id,
                conference_id=booking.conference_id,
                amount=amount,
                due_date=today + timedelta(days=options.installment_interval * i),
                status=ScheduleStatus.PENDING.value,
                installment_number=i + 1
            ))
        self.db.flush()
        logger.info("Created %d installment(s) for booking %s", len(amounts), booking.booking_reference)

    def _settle_schedule(self, booking: Booking, now: datetime) -> None:
        """Mark installments paid, in order, as far as the paid amount reaches"""
        rows = (
            self.db.query(PaymentSchedule)
            .filter(PaymentSchedule.booking_id == booking.id)
            .order_by(PaymentSchedule.installment_number)
            .all()
        )
        if not rows:
            return

        fully_paid = booking.payment_status == PaymentStatus.PAID.value
        scheduled = sum((to_money(r.amount) for r in rows), ZERO)
        credit = to_money(booking.paid_amount) - (to_money(booking.total_amount) - scheduled)
        for row in rows:
            amount = to_money(row.amount)
            covered = fully_paid or credit >= amount
            credit -= amount
            if covered and row.status != ScheduleStatus.PAID.value:
                row.status = ScheduleStatus.PAID.value
                row.paid_at = now
