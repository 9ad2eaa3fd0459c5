from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional

from conference_booking.database import get_db
from conference_booking.discounts.schemas import DiscountCode
from conference_booking.discounts.service import DiscountService
from conference_booking.exceptions import InvalidDiscountCode

router = APIRouter()

@router.get("/discount-code", response_model=DiscountCode)
def check_discount_code(
    code: str = Query(..., min_length=1, description="Discount code as typed by the customer"),
    conference_id: Optional[str] = Query(None, alias="conferenceId", description="Conference scope"),
    db: Session = Depends(get_db)
):
    """Validate a discount code before booking"""
    try:
        return DiscountService.validate_discount_code(db, code, conference_id)
    except InvalidDiscountCode as e:
        # A code that cannot be looked up is a 404 here, a bad request everywhere else
        missing = e.kind in (InvalidDiscountCode.NOT_FOUND, InvalidDiscountCode.DISABLED)
        raise HTTPException(status_code=404 if missing else e.status_code, detail=e.to_detail())
