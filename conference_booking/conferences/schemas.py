from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from datetime import datetime, date
from decimal import Decimal
from enum import Enum

class TicketCategory(str, Enum):
    """Known ticket categories (the stored value is open-ended)"""
    ADULT = "adult"
    TEEN = "teen"
    CHILD = "child"
    UNDER_2S = "under-2s"

class PriceRule(str, Enum):
    """Which pricing rule produced a unit price"""
    CONFERENCE_EARLY_BIRD = "conference_early_bird"
    TICKET_EARLY_BIRD = "ticket_early_bird"
    LATE_PRICE = "late_price"
    STANDARD = "standard"

class PaymentSettings(BaseModel):
    """Deposit and installment configuration of a conference"""
    deposit_amount: Optional[Decimal] = None
    deposit_percentage: Optional[Decimal] = None
    installment_count: int = 3
    installment_interval: int = 30  # days

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class ResolvedPrice(BaseModel):
    amount: Decimal
    rule: PriceRule

class ConferenceBase(BaseModel):
    title: str
    slug: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    venue: Optional[Dict[str, Any]] = None
    published: bool = False
    registration_open: bool = False
    early_bird_start_date: Optional[date] = None
    early_bird_end_date: Optional[date] = None
    early_bird_discount_amount: Decimal = Decimal("0")
    payment_settings: Optional[PaymentSettings] = None
    child_group_leaders: Optional[Dict[str, Optional[str]]] = None

class ConferenceCreate(ConferenceBase):
    id: Optional[str] = None

class Conference(ConferenceBase):
    id: str
    slug: str

    class Config:
        from_attributes = True

class TicketTypeBase(BaseModel):
    name: str
    description: Optional[str] = None
    type: str = TicketCategory.ADULT.value
    camping: bool = False
    price: Decimal = Decimal("0")
    early_bird_price: Optional[Decimal] = None
    early_bird_end_date: Optional[date] = None
    late_price: Optional[Decimal] = None
    late_price_start_date: Optional[date] = None
    capacity: int = Field(0, ge=0)
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    enabled: bool = True

class TicketTypeCreate(TicketTypeBase):
    id: Optional[str] = None
    conference_id: str

class TicketType(TicketTypeBase):
    id: str
    conference_id: str
    sold: int = 0

    class Config:
        from_attributes = True

class TicketTypeOffer(TicketType):
    """Ticket type with the unit price that applies right now"""
    current_price: Decimal
    price_rule: PriceRule
    available: Optional[int] = None  # None = unlimited

class ConferenceDetail(BaseModel):
    conference: Conference
    ticket_types: List[TicketTypeOffer]
    priced_at: datetime
