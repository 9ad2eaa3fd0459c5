import logging
from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from typing import Any, Dict

from conference_booking.config import settings
from conference_booking.database import get_db
from conference_booking.payments.schemas import (
    PaymentOrderRequest, PaymentOrderResponse, CaptureRequest, CaptureResponse, WebhookAck
)
from conference_booking.payments.ledger_service import PaymentLedgerService, balance_due
from conference_booking.payments.paypal_gateway import (
    COMPLETED, PaymentGateway, get_payment_gateway, parse_capture, parse_webhook_capture
)
from conference_booking.bookings.booking_service import BookingService
from conference_booking.accounts.linker_service import link_or_create_account
from conference_booking.exceptions import (
    ConferenceBookingError, PaymentGatewayError, PaymentNotCompleted, BookingNotFound, WebhookSignatureInvalid
)
from conference_booking.notifications import ConferenceNotifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()

CAPTURE_COMPLETED = "PAYMENT.CAPTURE.COMPLETED"
CAPTURE_DENIED = "PAYMENT.CAPTURE.DENIED"
CAPTURE_REFUNDED = "PAYMENT.CAPTURE.REFUNDED"

def _gateway_failure(e: PaymentGatewayError) -> HTTPException:
    # Gateway details stay in the log
    logger.error("Payment gateway error: %s", e.message)
    return HTTPException(
        status_code=e.status_code,
        detail={"error": e.code, "message": PaymentNotCompleted().message}
    )

def _schedule_payment_emails(background_tasks, notifier, booking_service, booking, amount_paid):
    snapshot = booking_service.build_snapshot(booking)
    background_tasks.add_task(notifier.send_payment_confirmation, snapshot, amount_paid)
    background_tasks.add_task(notifier.send_admin_payment_notification, snapshot, amount_paid)

@router.post("/order", response_model=PaymentOrderResponse)
def create_payment_order(
    request: PaymentOrderRequest,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway)
):
    """Create a gateway order for the next payment on a booking"""
    booking_service = BookingService(db)
    ledger = PaymentLedgerService(db)

    try:
        booking = booking_service.get_booking_or_404(request.booking_id)
        if request.payment_method is not None:
            booking.payment_method = request.payment_method.value
        amount = ledger.resolve_payment_amount(booking, booking.payment_method, request.amount)
        order = gateway.create_order(amount, settings.CURRENCY, booking.id, booking.booking_reference)
    except PaymentGatewayError as e:
        db.rollback()
        raise _gateway_failure(e)
    except ConferenceBookingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    booking.paypal_order_id = order["id"]
    booking.paypal_order_status = order.get("status")
    db.commit()
    logger.info("Created order %s for %s on booking %s", order["id"], amount, booking.booking_reference)

    return PaymentOrderResponse(
        order_id=order["id"],
        status=order.get("status", ""),
        amount=amount,
        currency=settings.CURRENCY,
        links=order.get("links", [])
    )

@router.post("/capture", response_model=CaptureResponse)
def capture_payment(
    request: CaptureRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    """Capture an approved order and add it to the booking's paid amount"""
    booking_service = BookingService(db)

    try:
        result = gateway.capture_order(request.order_id)
        if result.get("status") != COMPLETED:
            logger.warning("Order %s captured with status %s", request.order_id, result.get("status"))
            raise PaymentNotCompleted()
        captured = parse_capture(result)
    except PaymentGatewayError as e:
        raise _gateway_failure(e)
    except ConferenceBookingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    booking = booking_service.get_booking_by_order_id(request.order_id)
    if booking is None and captured.booking_id:
        booking = booking_service.get_booking(captured.booking_id)
    if booking is None:
        logger.error("Captured order %s matches no booking", request.order_id)
        e = BookingNotFound()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    booking.paypal_order_status = result.get("status")
    try:
        booking, applied = PaymentLedgerService(db).record_payment(
            booking.id, captured.amount, captured.capture_id, request.order_id, source="capture"
        )
    except ConferenceBookingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    link = link_or_create_account(
        db, booking.group_leader_email, booking.id, booking.payment_status, booking.group_leader_name
    )
    if link.verification_code:
        background_tasks.add_task(
            notifier.send_verification_code,
            booking.group_leader_email,
            link.verification_code,
            booking.group_leader_name
        )
    if applied:
        _schedule_payment_emails(background_tasks, notifier, booking_service, booking, captured.amount)

    return CaptureResponse(
        booking_id=booking.id,
        status=booking.payment_status,
        amount_paid=captured.amount,
        paid_amount=booking.paid_amount,
        balance_due=balance_due(booking),
        account_exists=link.account_exists,
        account_verified=link.account_verified
    )

@router.post("/webhook", response_model=WebhookAck)
def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    event: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    """Gateway-signed payment events"""
    if not gateway.verify_webhook_signature(request.headers, event):
        logger.warning("Rejected webhook %s with invalid signature", event.get("id"))
        e = WebhookSignatureInvalid()
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    event_type = event.get("event_type")
    resource = event.get("resource") or {}
    booking_service = BookingService(db)

    if event_type not in (CAPTURE_COMPLETED, CAPTURE_DENIED, CAPTURE_REFUNDED):
        logger.info("Ignoring webhook event type %s", event_type)
        return WebhookAck(event_type=event_type)

    captured = parse_webhook_capture(resource)
    booking = None
    if captured.booking_id:
        booking = booking_service.get_booking(captured.booking_id)
    if booking is None and captured.order_id:
        booking = booking_service.get_booking_by_order_id(captured.order_id)
    if booking is None:
        logger.warning("Webhook %s for capture %s matches no booking", event_type, captured.capture_id)
        return WebhookAck(event_type=event_type)

    if event_type != CAPTURE_COMPLETED:
        # Refund and denial handling is manual; the ledger is left as it is
        booking.paypal_order_status = captured.status or event_type.rsplit(".", 1)[-1]
        db.commit()
        logger.warning("Booking %s received %s for capture %s",
                       booking.booking_reference, event_type, captured.capture_id)
        return WebhookAck(event_type=event_type)

    if not captured.capture_id or captured.amount <= 0:
        logger.warning("Webhook capture for booking %s has no id or amount", booking.booking_reference)
        return WebhookAck(event_type=event_type)

    try:
        booking, applied = PaymentLedgerService(db).record_payment(
            booking.id, captured.amount, captured.capture_id, captured.order_id, source="webhook"
        )
    except ConferenceBookingError as e:
        # Acknowledge so the gateway stops retrying a payment we cannot apply
        logger.error("Webhook capture %s not applied: %s", captured.capture_id, e.message)
        return WebhookAck(event_type=event_type)

    if applied:
        _schedule_payment_emails(background_tasks, notifier, booking_service, booking, captured.amount)
    return WebhookAck(event_type=event_type, applied=applied)
