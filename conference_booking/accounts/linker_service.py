"""Links a booking's group leader to a user account.

Only bookings with a balance left to manage need an account. For those,
an unknown email gets a fresh unverified account and a verification code,
and an account still awaiting verification gets a new code. Verified
accounts, and any paid booking, just have the booking id added to their
linked set.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from conference_booking.accounts.service import AccountService
from conference_booking.bookings.schemas import PaymentStatus

logger = logging.getLogger(__name__)

@dataclass
class LinkResult:
    account_exists: bool
    account_verified: bool
    account_created: bool = False
    # Set when a code was issued and must be emailed to the group leader
    verification_code: Optional[str] = None

    @property
    def needs_setup(self) -> bool:
        return not self.account_verified

def link_or_create_account(
    db: Session,
    email: str,
    booking_id: str,
    payment_status: str,
    name: Optional[str] = None
) -> LinkResult:
    """Associate ``booking_id`` with the account for ``email``"""
    account = AccountService.get_account_by_email(db, email)
    fully_paid = payment_status == PaymentStatus.PAID.value

    if account is None and fully_paid:
        # Nothing left to pay online, so no account is needed
        return LinkResult(account_exists=False, account_verified=False)

    try:
        if account is None:
            account = AccountService.create_account(db, email, name)
            AccountService.link_booking(db, account, booking_id)
            code = AccountService.issue_verification_code(db, email)
            db.commit()
            logger.info("Created account %s for booking %s", account.id, booking_id)
            return LinkResult(
                account_exists=True,
                account_verified=False,
                account_created=True,
                verification_code=code
            )

        AccountService.link_booking(db, account, booking_id)
        code = None
        if not account.verified and not fully_paid:
            code = AccountService.issue_verification_code(db, email)
        db.commit()
    except IntegrityError:
        # A concurrent request created or linked the same account first
        db.rollback()
        logger.warning("Account link for booking %s raced another request", booking_id)
        account = AccountService.get_account_by_email(db, email)
        return LinkResult(
            account_exists=account is not None,
            account_verified=bool(account and account.verified)
        )

    return LinkResult(
        account_exists=True,
        account_verified=bool(account.verified),
        verification_code=code
    )
