"""Conference emails.

Every public method builds a message from a detached snapshot and hands it
to the provider. Delivery problems are logged and swallowed: a failed email
never affects a booking or payment that has already been committed.
"""

import logging
from collections import OrderedDict
from decimal import Decimal
from functools import lru_cache
from html import escape
from typing import Dict, List, Optional

from conference_booking.config import settings
from conference_booking.bookings.schemas import BookingSnapshot
from conference_booking.money import to_money
from conference_booking.notifications.providers import EmailMessage, EmailProvider, build_provider

logger = logging.getLogger(__name__)

CHILD_TICKET_TYPE = "child"

# (label, childGroupLeaders key, oldest age in band)
AGE_BANDS = [
    ("0-5 years", "0-5", 5),
    ("6-8 years", "6-8", 8),
    ("9-12 years", "9-12", 12),
    ("Teen", "teen", None),
]

def age_band(age: Optional[int]):
    """Band an attendee falls into; unknown ages go to the youngest band"""
    for band in AGE_BANDS:
        if band[2] is None or (age or 0) <= band[2]:
            return band
    return AGE_BANDS[-1]

def format_money(amount) -> str:
    symbol = {"GBP": "£", "EUR": "€", "USD": "$"}.get(settings.CURRENCY, "")
    return f"{symbol}{to_money(amount):,.2f}"

def _day(value) -> str:
    return f"{value.day} {value.strftime('%b %Y')}"

def format_date_range(start, end) -> str:
    if not start:
        return "TBA"
    if not end or start == end:
        return _day(start)
    if (start.year, start.month) == (end.year, end.month):
        return f"{start.day}-{end.day} {start.strftime('%b %Y')}"
    return f"{_day(start)} - {_day(end)}"

def _page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head>"
        "<body style=\"font-family: Arial, sans-serif; line-height: 1.6; color: #333;\">"
        f"<h2>{escape(title)}</h2>{body}"
        f"<p style=\"color: #888; font-size: 12px;\">{escape(settings.BRAND_NAME)}</p>"
        "</body></html>"
    )

def _rows(rows: List[List[str]], header: List[str]) -> str:
    head = "".join(f"<th style=\"padding: 8px; text-align: left;\">{escape(h)}</th>" for h in header)
    body = "".join(
        "<tr>" + "".join(
            f"<td style=\"padding: 8px; border-bottom: 1px solid #eee;\">{escape(str(c))}</td>" for c in row
        ) + "</tr>"
        for row in rows
    )
    return (
        "<table style=\"width: 100%; border-collapse: collapse;\">"
        f"<thead><tr style=\"background: #f0f0f0;\">{head}</tr></thead><tbody>{body}</tbody></table>"
    )

class ConferenceNotifier:
    """Composes and sends booking, payment and account emails"""

    def __init__(self, provider: EmailProvider, admin_email: Optional[str] = None):
        self.provider = provider
        self.admin_email = admin_email if admin_email is not None else settings.ADMIN_NOTIFICATION_EMAIL

    def _deliver(self, message: EmailMessage) -> bool:
        try:
            result = self.provider.send(message)
        except Exception:
            logger.exception("Email '%s' to %s raised", message.subject, ", ".join(message.to))
            return False
        if not result.success:
            logger.error("Email '%s' to %s failed: %s", message.subject, ", ".join(message.to), result.error)
        return result.success

    def _attendee_rows(self, snapshot: BookingSnapshot) -> List[List[str]]:
        return [
            [a.full_name, snapshot.ticket_type_names.get(a.ticket_type_id, a.ticket_type_id),
             format_money(a.unit_price)]
            for a in snapshot.booking.attendees
        ]

    def _summary(self, snapshot: BookingSnapshot) -> str:
        booking = snapshot.booking
        lines = [
            f"<p><strong>Booking Reference:</strong> {escape(booking.booking_reference)}</p>",
            f"<p><strong>Conference:</strong> {escape(snapshot.conference_title)}, "
            f"{escape(format_date_range(snapshot.conference_start_date, snapshot.conference_end_date))}"
            + (f", {escape(snapshot.venue_name)}" if snapshot.venue_name else "") + "</p>",
            _rows(self._attendee_rows(snapshot), ["Attendee", "Ticket", "Price"]),
            f"<p>Subtotal: {format_money(booking.subtotal)}</p>",
        ]
        if booking.discount_amount and to_money(booking.discount_amount) > 0:
            lines.append(
                f"<p>Discount ({escape(booking.discount_code or '')}): -{format_money(booking.discount_amount)}</p>"
            )
        lines.append(f"<p><strong>Total: {format_money(booking.total_amount)}</strong></p>")
        lines.append(
            f"<p>Paid: {format_money(booking.paid_amount)}, balance due: {format_money(booking.balance_due)}</p>"
        )
        return "".join(lines)

    def send_booking_confirmation(self, snapshot: BookingSnapshot) -> bool:
        booking = snapshot.booking
        body = (
            f"<p>Dear {escape(booking.group_leader_name)},</p>"
            f"<p>Thank you for booking {escape(snapshot.conference_title)}.</p>"
            + self._summary(snapshot)
        )
        return self._deliver(EmailMessage(
            to=[booking.group_leader_email],
            subject=f"Booking Confirmation: {snapshot.conference_title}",
            html=_page("Booking Confirmed", body),
            tags=["booking-confirmation"],
        ))

    def send_admin_booking_notification(self, snapshot: BookingSnapshot) -> bool:
        if not self.admin_email:
            return False
        booking = snapshot.booking
        body = (
            f"<p><strong>Group Leader:</strong> {escape(booking.group_leader_name)} "
            f"({escape(booking.group_leader_email)})</p>"
            f"<p><strong>Payment method:</strong> {escape(booking.payment_method)}</p>"
            + self._summary(snapshot)
        )
        return self._deliver(EmailMessage(
            to=[self.admin_email],
            subject=f"New Booking: {booking.booking_reference} - {snapshot.conference_title}",
            html=_page("New Conference Booking", body),
            reply_to=booking.group_leader_email,
            tags=["admin-booking"],
        ))

    def send_child_registration_notifications(self, snapshot: BookingSnapshot) -> int:
        """Email each configured age-band leader about the children in the booking.

        Returns the number of emails sent.
        """
        children = [
            a for a in snapshot.booking.attendees
            if snapshot.ticket_type_categories.get(a.ticket_type_id) == CHILD_TICKET_TYPE
        ]
        if not children:
            return 0

        by_band: Dict[tuple, list] = OrderedDict()
        for child in children:
            by_band.setdefault(age_band(child.age), []).append(child)

        booking = snapshot.booking
        sent = 0
        for (label, key, _), band_children in by_band.items():
            leader_email = snapshot.child_group_leaders.get(key)
            if not leader_email:
                continue
            rows = [
                [c.full_name, f"{c.age} years" if c.age is not None else "Unknown",
                 c.allergies or "None", c.dietary_restrictions or "None",
                 (c.emergency_contact or {}).get("name") or "N/A"]
                for c in band_children
            ]
            body = (
                f"<p>New children have been registered for <strong>{escape(snapshot.conference_title)}"
                f"</strong> in the {escape(label)} age group.</p>"
                + _rows(rows, ["Name", "Age", "Allergies", "Dietary", "Emergency Contact"])
                + f"<p><strong>Group Leader:</strong> {escape(booking.group_leader_name)} "
                  f"({escape(booking.group_leader_email)})</p>"
                + f"<p><strong>Booking Reference:</strong> {escape(booking.booking_reference)}</p>"
            )
            if self._deliver(EmailMessage(
                to=[leader_email],
                subject=f"New Child Registration - {snapshot.conference_title}",
                html=_page(f"New Child Registration - {label}", body),
                tags=["child-registration"],
            )):
                sent += 1
        return sent

    def send_verification_code(self, email: str, code: str, name: Optional[str] = None) -> bool:
        body = (
            f"<p>Hello {escape(name or 'there')},</p>"
            "<p>Use this code to verify your email address and finish setting up your account:</p>"
            f"<p style=\"font-size: 28px; letter-spacing: 6px;\"><strong>{escape(code)}</strong></p>"
            f"<p>The code expires in {settings.VERIFICATION_CODE_TTL_HOURS} hours.</p>"
        )
        return self._deliver(EmailMessage(
            to=[email],
            subject="Verify your email address",
            html=_page("Verify your email", body),
            tags=["verification-code"],
        ))

    def send_password_reset(self, email: str, token: str) -> bool:
        link = f"{settings.PUBLIC_SITE_URL}/my-account/reset-password?token={token}&email={email}"
        body = (
            "<p>We received a request to reset your password.</p>"
            f"<p><a href=\"{escape(link)}\">Reset your password</a></p>"
            f"<p>The link expires in {settings.PASSWORD_RESET_TTL_HOURS} hour(s). "
            "If you did not ask for this, you can ignore this email.</p>"
        )
        return self._deliver(EmailMessage(
            to=[email],
            subject="Reset your password",
            html=_page("Password reset", body),
            tags=["password-reset"],
        ))

    def send_payment_confirmation(self, snapshot: BookingSnapshot, amount_paid: Decimal) -> bool:
        booking = snapshot.booking
        body = (
            f"<p>Dear {escape(booking.group_leader_name)},</p>"
            f"<p>We have received your payment of <strong>{format_money(amount_paid)}</strong> "
            f"for booking {escape(booking.booking_reference)}.</p>"
            f"<p>Total paid: {format_money(booking.paid_amount)} of {format_money(booking.total_amount)}</p>"
        )
        if to_money(booking.balance_due) > 0:
            body += f"<p>Remaining balance: {format_money(booking.balance_due)}</p>"
            pending = [s for s in booking.payment_schedules if s.status == "pending"]
            if pending:
                body += _rows(
                    [[s.installment_number, s.due_date.isoformat(), format_money(s.amount)] for s in pending],
                    ["Installment", "Due", "Amount"],
                )
        else:
            body += "<p>Your booking is now fully paid.</p>"
        return self._deliver(EmailMessage(
            to=[booking.group_leader_email],
            subject=f"Payment received: {snapshot.conference_title}",
            html=_page("Payment Received", body),
            tags=["payment-confirmation"],
        ))

    def send_admin_payment_notification(self, snapshot: BookingSnapshot, amount_paid: Decimal) -> bool:
        if not self.admin_email:
            return False
        booking = snapshot.booking
        body = (
            f"<p>{escape(booking.group_leader_name)} ({escape(booking.group_leader_email)}) paid "
            f"{format_money(amount_paid)} on booking {escape(booking.booking_reference)}.</p>"
            f"<p>Status: {escape(booking.payment_status.value)}, paid {format_money(booking.paid_amount)} "
            f"of {format_money(booking.total_amount)}</p>"
        )
        return self._deliver(EmailMessage(
            to=[self.admin_email],
            subject=f"Payment received: {booking.booking_reference}",
            html=_page("Payment Received", body),
            tags=["admin-payment"],
        ))

@lru_cache()
def get_notifier() -> ConferenceNotifier:
    """FastAPI dependency returning the configured notifier"""
    return ConferenceNotifier(build_provider())
