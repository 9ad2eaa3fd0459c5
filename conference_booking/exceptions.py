"""Exceptions raised by the conference booking services.

Every error carries a machine-readable ``code`` and the HTTP status the
routers answer with. Routers translate them into ``HTTPException`` with
``to_detail()`` as the response body.
"""


class ConferenceBookingError(Exception):
    """Base exception for booking, payment and account errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"error": self.code, "message": self.message}


# Booking

class ConferenceUnavailable(ConferenceBookingError):
    """Conference missing, unpublished or closed for registration."""

    code = "conference_unavailable"

    def __init__(self, message: str = "Conference not available for registration"):
        super().__init__(message)


class InvalidDiscountCode(ConferenceBookingError):
    """Discount code not found, disabled, expired or used up."""

    code = "invalid_discount_code"

    NOT_FOUND = "not_found"
    DISABLED = "disabled"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"

    MESSAGES = {
        NOT_FOUND: "Invalid discount code",
        DISABLED: "Invalid or disabled discount code",
        EXPIRED: "Discount code has expired",
        USAGE_LIMIT_REACHED: "Discount code has reached its usage limit",
    }

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(self.MESSAGES.get(kind, "Invalid discount code"))

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["reason"] = self.kind
        return detail


class InvalidTicketType(ConferenceBookingError):
    code = "invalid_ticket_type"


class SoldOut(ConferenceBookingError):
    code = "sold_out"

    def __init__(self, ticket_type_name: str):
        self.ticket_type_name = ticket_type_name
        super().__init__(f"Ticket type {ticket_type_name} is sold out")


class SubtotalMismatch(ConferenceBookingError):
    code = "subtotal_mismatch"


class BookingNotFound(ConferenceBookingError):
    code = "booking_not_found"
    status_code = 404

    def __init__(self, message: str = "Booking not found"):
        super().__init__(message)


# Payments

class PaymentNotCompleted(ConferenceBookingError):
    code = "payment_not_completed"

    def __init__(self, message: str = "Payment not completed, please try again"):
        super().__init__(message)


class InvalidPaymentAmount(ConferenceBookingError):
    code = "invalid_payment_amount"


class PaymentGatewayError(ConferenceBookingError):
    """The payment gateway could not be reached or answered with an error."""

    code = "payment_gateway_error"
    status_code = 502

    def __init__(self, message: str, status: int = None):
        self.status = status
        super().__init__(message)


class WebhookSignatureInvalid(ConferenceBookingError):
    code = "invalid_signature"
    status_code = 401

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)


# Accounts

class AccountNotFound(ConferenceBookingError):
    code = "account_not_found"
    status_code = 404

    def __init__(self, message: str = "User account not found"):
        super().__init__(message)


class AccountAlreadyExists(ConferenceBookingError):
    code = "account_exists"

    def __init__(self, message: str = "An account with this email already exists"):
        super().__init__(message)


class InvalidCredentials(ConferenceBookingError):
    code = "invalid_credentials"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class EmailNotVerified(ConferenceBookingError):
    code = "email_not_verified"
    status_code = 401

    def __init__(self, message: str = "Please verify your email address first. "
                                      "Check your email for the verification code."):
        super().__init__(message)


class PasswordNotSet(ConferenceBookingError):
    code = "password_not_set"
    status_code = 401

    def __init__(self, message: str = "Please set your password first."):
        super().__init__(message)


class TokenExpiredOrUsed(ConferenceBookingError):
    code = "token_expired_or_used"


class InvalidPassword(ConferenceBookingError):
    """New password too short or the same as the current one."""

    code = "invalid_password"


class AccountStateError(ConferenceBookingError):
    """Operation not allowed in the account's current verification state."""

    code = "account_state"
