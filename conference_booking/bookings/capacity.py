from typing import Dict, Optional
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from conference_booking.models import TicketType
from conference_booking.exceptions import SoldOut

def remaining_capacity(ticket_type, pending: int = 0) -> Optional[int]:
    """Tickets still available, or None when the ticket type is unlimited"""
    if not ticket_type.capacity or ticket_type.capacity <= 0:
        return None
    return max(0, ticket_type.capacity - (ticket_type.sold or 0) - pending)

def check_capacity(ticket_type, pending: int = 0) -> None:
    """Raise ``SoldOut`` when no ticket is left for one more attendee.

    ``pending`` counts tickets of this type already claimed earlier in the
    same booking.
    """
    left = remaining_capacity(ticket_type, pending)
    if left is not None and left <= 0:
        raise SoldOut(ticket_type.name)

class CapacityGuard:
    """Tracks claims of a single booking and commits them atomically"""

    def __init__(self, db: Session):
        self.db = db
        self._pending: Dict[str, int] = {}

    def admit(self, ticket_type) -> None:
        check_capacity(ticket_type, self._pending.get(ticket_type.id, 0))
        self._pending[ticket_type.id] = self._pending.get(ticket_type.id, 0) + 1

    def claim(self, ticket_type) -> None:
        """Increment ``sold`` by one unless that would pass capacity.

        A single conditional UPDATE, so two concurrent bookings cannot both
        take the last ticket. Runs inside the caller's transaction.
        """
        result = self.db.execute(
            update(TicketType)
            .where(
                TicketType.id == ticket_type.id,
                or_(TicketType.capacity == 0, TicketType.sold < TicketType.capacity)
            )
            .values(sold=TicketType.sold + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise SoldOut(ticket_type.name)
