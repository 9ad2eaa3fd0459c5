import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conference_booking.accounts.schemas import AccountBookingSummary, AccountStatus
from conference_booking.accounts.utils import get_password_hash, verify_password
from conference_booking.config import settings
from conference_booking.exceptions import (
    AccountAlreadyExists, AccountNotFound, AccountStateError, EmailNotVerified, InvalidCredentials,
    InvalidPassword, PasswordNotSet, TokenExpiredOrUsed
)
from conference_booking.models import (
    AccountBooking, Booking, EmailVerificationCode, PasswordResetToken, UserAccount
)
from conference_booking.money import to_money, ZERO

logger = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    return str(email).strip().lower()

def generate_verification_code() -> str:
    """Six random decimal digits"""
    return f"{secrets.randbelow(900000) + 100000}"

class AccountService:
    @staticmethod
    def get_account_by_email(db: Session, email: str) -> Optional[UserAccount]:
        """Get account by email, ignoring case"""
        return db.query(UserAccount).filter(UserAccount.email == normalize_email(email)).first()

    @staticmethod
    def get_account_by_id(db: Session, account_id: str) -> Optional[UserAccount]:
        return db.query(UserAccount).filter(UserAccount.id == account_id).first()

    @staticmethod
    def create_account(db: Session, email: str, name: Optional[str] = None) -> UserAccount:
        """Create an unverified account with no password; the caller commits"""
        account = UserAccount(
            id=f"user-{uuid.uuid4()}",
            email=normalize_email(email),
            name=name,
            email_verified=False,
            verified=False,
            password_hash=None
        )
        db.add(account)
        db.flush()
        return account

    @staticmethod
    def link_booking(db: Session, account: UserAccount, booking_id: str) -> bool:
        """Add ``booking_id`` to the account's linked set; False when already linked"""
        if booking_id in account.booking_ids:
            return False
        account.booking_links.append(AccountBooking(booking_id=booking_id))
        return True

    @staticmethod
    def issue_verification_code(db: Session, email: str, now: Optional[datetime] = None) -> str:
        """Store a fresh single-use code for ``email``; the caller commits"""
        code = generate_verification_code()
        db.add(EmailVerificationCode(
            email=normalize_email(email),
            code=code,
            used=False,
            created_at=now or datetime.now()
        ))
        return code

    @staticmethod
    def register(
        db: Session,
        email: str,
        booking_id: Optional[str] = None,
        name: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Tuple[UserAccount, str]:
        """Create an account, or re-issue a code for one that is not fully set up.

        Returns the account and the verification code to email.
        """
        account = AccountService.get_account_by_email(db, email)
        if account and account.verified and account.password_hash:
            raise AccountAlreadyExists()

        try:
            if not account:
                account = AccountService.create_account(db, email, name)
            elif name and not account.name:
                account.name = name
            if booking_id:
                AccountService.link_booking(db, account, booking_id)
            code = AccountService.issue_verification_code(db, email, now)
            db.commit()
        except IntegrityError:
            db.rollback()
            raise AccountAlreadyExists()

        db.refresh(account)
        return account, code

    @staticmethod
    def verify_email(db: Session, email: str, code: str, now: Optional[datetime] = None) -> UserAccount:
        """Consume a verification code.

        The email becomes verified but the account stays unverified until a
        password is set, so no session can exist before credentials do.
        """
        now = now or datetime.now()
        verification = (
            db.query(EmailVerificationCode)
            .filter(EmailVerificationCode.email == normalize_email(email),
                    EmailVerificationCode.code == code)
            .order_by(EmailVerificationCode.created_at.desc())
            .first()
        )
        if not verification:
            raise TokenExpiredOrUsed("Invalid or expired verification code")
        if verification.used:
            raise TokenExpiredOrUsed("This verification code has already been used")
        if now - verification.created_at > timedelta(hours=settings.VERIFICATION_CODE_TTL_HOURS):
            raise TokenExpiredOrUsed("Verification code has expired. Please request a new one.")

        account = AccountService.get_account_by_email(db, email)
        if not account:
            raise AccountNotFound()

        verification.used = True
        account.email_verified = True
        account.email_verified_at = now
        if not account.password_hash:
            account.verified = False
        db.commit()
        db.refresh(account)
        logger.info("Email verified for account %s", account.id)
        return account

    @staticmethod
    def resend_code(db: Session, email: str, now: Optional[datetime] = None) -> Tuple[UserAccount, str]:
        account = AccountService.get_account_by_email(db, email)
        if not account:
            raise AccountNotFound("Account not found")
        if account.verified:
            raise AccountStateError("Email is already verified")
        code = AccountService.issue_verification_code(db, email, now)
        db.commit()
        return account, code

    @staticmethod
    def _check_password_length(password: str, label: str = "Password"):
        if len(password) < settings.PASSWORD_MIN_LENGTH:
            raise InvalidPassword(f"{label} must be at least {settings.PASSWORD_MIN_LENGTH} characters")

    @staticmethod
    def set_password(db: Session, email: str, password: str, now: Optional[datetime] = None) -> UserAccount:
        """Set the first password; the account becomes fully verified"""
        AccountService._check_password_length(password)
        account = AccountService.get_account_by_email(db, email)
        if not account:
            raise AccountNotFound()
        if not account.email_verified:
            raise AccountStateError("Email must be verified before setting password")

        now = now or datetime.now()
        account.password_hash = get_password_hash(password)
        account.password_changed_at = now
        account.verified = True
        account.verified_at = now
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def authenticate(db: Session, email: str, password: str, now: Optional[datetime] = None) -> UserAccount:
        """Check login credentials.

        Unknown email and wrong password share one generic error; an
        unverified email or a missing password get their own.
        """
        account = AccountService.get_account_by_email(db, email)
        if not account:
            raise InvalidCredentials()
        if not account.email_verified:
            raise EmailNotVerified()
        if not account.password_hash:
            raise PasswordNotSet()
        if not verify_password(password, account.password_hash):
            raise InvalidCredentials()

        if not account.verified:
            account.verified = True
            account.verified_at = now or datetime.now()
            db.commit()
            db.refresh(account)
        return account

    @staticmethod
    def check_account(db: Session, email: str) -> AccountStatus:
        account = AccountService.get_account_by_email(db, email)
        if not account:
            return AccountStatus(exists=False, verified=False, email=normalize_email(email))
        return AccountStatus(exists=True, verified=bool(account.verified), email=account.email)

    @staticmethod
    def forgot_password(db: Session, email: str, now: Optional[datetime] = None) -> Optional[str]:
        """Store a reset token for a known account.

        Returns the token to email, or None for unknown addresses; callers
        answer the same either way.
        """
        account = AccountService.get_account_by_email(db, email)
        if not account:
            logger.info("Password reset requested for unknown email")
            return None
        token = secrets.token_hex(32)
        db.add(PasswordResetToken(
            email=account.email,
            token=token,
            used=False,
            created_at=now or datetime.now()
        ))
        db.commit()
        return token

    @staticmethod
    def reset_password(
        db: Session,
        email: str,
        token: str,
        new_password: str,
        now: Optional[datetime] = None
    ) -> UserAccount:
        AccountService._check_password_length(new_password)
        now = now or datetime.now()
        reset = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.email == normalize_email(email),
                    PasswordResetToken.token == token,
                    PasswordResetToken.used.is_(False))
            .first()
        )
        if not reset or now - reset.created_at > timedelta(hours=settings.PASSWORD_RESET_TTL_HOURS):
            raise TokenExpiredOrUsed("Invalid or expired reset token")

        account = AccountService.get_account_by_email(db, email)
        if not account:
            raise AccountNotFound("User not found")

        account.password_hash = get_password_hash(new_password)
        account.password_changed_at = now
        # Reaching the reset link proves control of the mailbox
        account.email_verified = True
        account.verified = True
        reset.used = True
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def change_password(
        db: Session,
        account: UserAccount,
        current_password: str,
        new_password: str,
        now: Optional[datetime] = None
    ) -> UserAccount:
        AccountService._check_password_length(new_password, "New password")
        if not verify_password(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        if verify_password(new_password, account.password_hash):
            raise InvalidPassword("New password must be different from current password")

        account.password_hash = get_password_hash(new_password)
        account.password_changed_at = now or datetime.now()
        db.commit()
        db.refresh(account)
        return account

    @staticmethod
    def get_account_bookings(db: Session, account: UserAccount) -> List[AccountBookingSummary]:
        """Non-archived bookings linked to the account, newest first"""
        ids = account.booking_ids
        if not ids:
            return []
        bookings = (
            db.query(Booking)
            .filter(Booking.id.in_(ids), Booking.archived.is_(False))
            .order_by(Booking.created_at.desc())
            .all()
        )
        return [
            AccountBookingSummary(
                id=b.id,
                booking_reference=b.booking_reference,
                conference_id=b.conference_id,
                conference_title=b.conference.title if b.conference else None,
                conference_start_date=b.conference.start_date if b.conference else None,
                attendee_count=b.attendee_count,
                total_amount=to_money(b.total_amount),
                paid_amount=to_money(b.paid_amount),
                balance_due=max(ZERO, to_money(b.total_amount) - to_money(b.paid_amount)),
                payment_status=b.payment_status,
                payment_method=b.payment_method,
                created_at=b.created_at
            )
            for b in bookings
        ]
