"""Unit price resolution for conference tickets.

Prices are resolved by an ordered cascade of rules. Each rule looks at the
ticket type, its conference and the moment of pricing and either returns a
price or ``None``. The first rule that returns a price wins, so a rule never
stacks on top of another one. The order is:

1. conference-wide early bird (flat amount off the standard price)
2. ticket early bird price
3. ticket late price
4. standard price

Rules read plain attributes, so ORM rows and pydantic schemas both work.
"""

from typing import Callable, List, Optional, Tuple
from datetime import datetime, date, time
from decimal import Decimal

from conference_booking.conferences.schemas import PriceRule, ResolvedPrice
from conference_booking.money import to_money, ZERO

def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)

def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)

def _as_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return start_of_day(value)

def conference_early_bird_active(conference, now: datetime) -> bool:
    """Conference-wide early bird window is inclusive of its whole last day"""
    if conference is None:
        return False
    start = conference.early_bird_start_date
    end = conference.early_bird_end_date
    discount = to_money(conference.early_bird_discount_amount)
    if not start or not end or discount <= ZERO:
        return False
    return _as_datetime(start) <= now <= end_of_day(end)

def _conference_early_bird(ticket_type, conference, now: datetime) -> Optional[Decimal]:
    if not conference_early_bird_active(conference, now):
        return None
    return to_money(ticket_type.price) - to_money(conference.early_bird_discount_amount)

def _ticket_early_bird(ticket_type, conference, now: datetime) -> Optional[Decimal]:
    ends = _as_datetime(ticket_type.early_bird_end_date)
    if ends is None or now >= ends:
        return None
    price = to_money(ticket_type.early_bird_price)
    return price if price > ZERO else None

def _late_price(ticket_type, conference, now: datetime) -> Optional[Decimal]:
    starts = _as_datetime(ticket_type.late_price_start_date)
    if starts is None or now < starts:
        return None
    price = to_money(ticket_type.late_price)
    return price if price > ZERO else None

def _standard_price(ticket_type, conference, now: datetime) -> Optional[Decimal]:
    return to_money(ticket_type.price)

PriceRuleFn = Callable[[object, object, datetime], Optional[Decimal]]

# Evaluation order matters: first match wins
PRICING_RULES: List[Tuple[PriceRule, PriceRuleFn]] = [
    (PriceRule.CONFERENCE_EARLY_BIRD, _conference_early_bird),
    (PriceRule.TICKET_EARLY_BIRD, _ticket_early_bird),
    (PriceRule.LATE_PRICE, _late_price),
    (PriceRule.STANDARD, _standard_price),
]

def resolve_price(ticket_type, conference, now: Optional[datetime] = None) -> ResolvedPrice:
    """Resolve the unit price and report which rule produced it"""
    now = now or datetime.now()
    for rule, fn in PRICING_RULES:
        price = fn(ticket_type, conference, now)
        if price is not None:
            return ResolvedPrice(amount=to_money(max(ZERO, price)), rule=rule)
    return ResolvedPrice(amount=ZERO, rule=PriceRule.STANDARD)

def resolve_unit_price(ticket_type, conference, now: Optional[datetime] = None) -> Decimal:
    """Unit price of ``ticket_type`` at ``now``, never negative"""
    return resolve_price(ticket_type, conference, now).amount
