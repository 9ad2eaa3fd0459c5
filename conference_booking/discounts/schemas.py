from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum

class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"

class DiscountCodeBase(BaseModel):
    code: str
    description: Optional[str] = None
    type: DiscountType = DiscountType.PERCENTAGE
    value: Decimal = Field(Decimal("0"), ge=0)
    applicable_ticket_types: List[str] = []
    max_usage: int = Field(0, ge=0)
    expiry_date: Optional[datetime] = None
    enabled: bool = True

class DiscountCodeCreate(DiscountCodeBase):
    id: Optional[str] = None
    conference_id: str

class DiscountCode(DiscountCodeBase):
    id: str
    conference_id: str
    used_count: int = 0

    class Config:
        from_attributes = True

class DiscountLine(BaseModel):
    """A priced line item the discount may apply to"""
    ticket_type_id: str
    amount: Decimal
