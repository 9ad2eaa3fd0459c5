from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List
from datetime import timedelta

from conference_booking.config import settings
from conference_booking.database import get_db
from conference_booking.accounts.schemas import (
    RegisterRequest, VerifyEmailRequest, VerifyEmailResponse, EmailRequest, SetPasswordRequest,
    LoginRequest, ResetPasswordRequest, ChangePasswordRequest, AuthResponse, MessageResponse,
    AccountStatus, AccountBookingSummary, UserAccount as UserAccountSchema
)
from conference_booking.accounts.service import AccountService
from conference_booking.accounts.utils import create_access_token
from conference_booking.accounts.dependencies import get_current_account
from conference_booking.exceptions import ConferenceBookingError
from conference_booking.notifications import ConferenceNotifier, get_notifier

router = APIRouter()

def _http_error(e: ConferenceBookingError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if e.status_code == status.HTTP_401_UNAUTHORIZED else None
    return HTTPException(status_code=e.status_code, detail=e.to_detail(), headers=headers)

def _auth_response(account) -> AuthResponse:
    access_token = create_access_token(
        data={"sub": account.id, "email": account.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    return AuthResponse(access_token=access_token, token_type="bearer",
                        user=UserAccountSchema.model_validate(account))

@router.post("/register", response_model=MessageResponse)
def register_account(
    request: RegisterRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    """Create an account and email a verification code"""
    try:
        account, code = AccountService.register(db, request.email, request.booking_id, request.name)
    except ConferenceBookingError as e:
        raise _http_error(e)

    background_tasks.add_task(notifier.send_verification_code, account.email, code, account.name)
    return MessageResponse(message="Please check your email for the verification code.")

@router.post("/verify", response_model=VerifyEmailResponse)
def verify_email(request: VerifyEmailRequest, db: Session = Depends(get_db)):
    """Consume a verification code; a password must be set next"""
    try:
        AccountService.verify_email(db, request.email, request.code)
    except ConferenceBookingError as e:
        raise _http_error(e)
    return VerifyEmailResponse(message="Email verified successfully. Please set your password.")

@router.post("/resend-code", response_model=MessageResponse)
def resend_code(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    try:
        account, code = AccountService.resend_code(db, request.email)
    except ConferenceBookingError as e:
        raise _http_error(e)

    background_tasks.add_task(notifier.send_verification_code, account.email, code, account.name)
    return MessageResponse(message="Verification code sent to your email")

@router.post("/set-password", response_model=AuthResponse)
def set_password(request: SetPasswordRequest, db: Session = Depends(get_db)):
    """Set the first password and log the account in"""
    try:
        account = AccountService.set_password(db, request.email, request.password)
    except ConferenceBookingError as e:
        raise _http_error(e)
    return _auth_response(account)

@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    try:
        account = AccountService.authenticate(db, request.email, request.password)
    except ConferenceBookingError as e:
        raise _http_error(e)
    return _auth_response(account)

@router.get("/check-account", response_model=AccountStatus)
def check_account(
    email: str = Query(..., min_length=3, description="Email address to look up"),
    db: Session = Depends(get_db)
):
    return AccountService.check_account(db, email)

@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    request: EmailRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: ConferenceNotifier = Depends(get_notifier)
):
    """Email a reset link; answers the same whether or not the account exists"""
    token = AccountService.forgot_password(db, request.email)
    if token:
        background_tasks.add_task(notifier.send_password_reset, str(request.email).lower(), token)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent.")

@router.post("/reset-password", response_model=MessageResponse)
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        AccountService.reset_password(db, request.email, request.token, request.new_password)
    except ConferenceBookingError as e:
        raise _http_error(e)
    return MessageResponse(message="Password reset successfully")

@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    current_account=Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        AccountService.change_password(db, current_account, request.current_password, request.new_password)
    except ConferenceBookingError as e:
        raise _http_error(e)
    return MessageResponse(message="Password changed successfully")

@router.get("/me", response_model=UserAccountSchema)
def read_current_account(current_account=Depends(get_current_account)):
    """Get the logged in account"""
    return current_account

@router.get("/bookings", response_model=List[AccountBookingSummary])
def list_account_bookings(current_account=Depends(get_current_account), db: Session = Depends(get_db)):
    """Bookings linked to the logged in account"""
    return AccountService.get_account_bookings(db, current_account)
