"""
Payments.

- ledger_service.py: payment amounts, cumulative paid amount and installment schedules
- paypal_gateway.py: PayPal orders, captures and webhook verification
- router.py: order, capture and webhook endpoints
"""

from .router import router
from .ledger_service import PaymentLedgerService
from .paypal_gateway import PaymentGateway, PayPalGateway, get_payment_gateway

__all__ = [
    "router",
    "PaymentLedgerService",
    "PaymentGateway",
    "PayPalGateway",
    "get_payment_gateway",
]
