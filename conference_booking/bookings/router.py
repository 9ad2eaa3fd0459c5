import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from conference_booking.database import get_db
from conference_booking.bookings.schemas import BookingRequest, BookingResponse, BookingSummary, PaymentStatus
from conference_booking.bookings.booking_service import BookingService
from conference_booking.accounts.linker_service import link_or_create_account
from conference_booking.exceptions import ConferenceBookingError
from conference_booking.notifications import ConferenceNotifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/booking", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    request: BookingRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    """Book attendees onto a conference"""
    booking_service = BookingService(db)

    try:
        booking = booking_service.create_booking(request)
    except ConferenceBookingError as e:
        logger.info("Booking rejected for conference %s: %s", request.conference_id, e.code)
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    link = link_or_create_account(
        db,
        booking.group_leader_email,
        booking.id,
        booking.payment_status,
        booking.group_leader_name
    )

    # Emails go out after the response, once the booking is committed
    snapshot = booking_service.build_snapshot(booking)
    background_tasks.add_task(notifier.send_booking_confirmation, snapshot)
    background_tasks.add_task(notifier.send_admin_booking_notification, snapshot)
    background_tasks.add_task(notifier.send_child_registration_notifications, snapshot)
    if link.verification_code:
        background_tasks.add_task(
            notifier.send_verification_code,
            booking.group_leader_email,
            link.verification_code,
            booking.group_leader_name
        )

    return BookingResponse(
        booking_id=booking.id,
        booking_reference=booking.booking_reference,
        subtotal=booking.subtotal,
        discount_amount=booking.discount_amount,
        total_amount=booking.total_amount,
        payment_status=booking.payment_status,
        account_needs_setup=booking.payment_status != PaymentStatus.PAID.value and link.needs_setup,
        account_exists=link.account_exists,
        account_verified=link.account_verified
    )

@router.get("/booking/{booking_id}", response_model=BookingSummary)
def get_booking(booking_id: str, db: Session = Depends(get_db)):
    """Get booking with attendees and payment schedule"""
    booking_service = BookingService(db)
    try:
        booking = booking_service.get_booking_or_404(booking_id)
    except ConferenceBookingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    return BookingSummary(**BookingService.to_detail(booking).model_dump())
