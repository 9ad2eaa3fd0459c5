import logging
import uuid
from typing import Iterable, Optional
from datetime import datetime
from decimal import Decimal
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from conference_booking.models import DiscountCode
from conference_booking.discounts.schemas import DiscountCodeCreate, DiscountLine, DiscountType
from conference_booking.exceptions import InvalidDiscountCode
from conference_booking.money import to_money, ZERO

logger = logging.getLogger(__name__)

class DiscountService:
    """Lookup, validation and application of conference discount codes"""

    @staticmethod
    def find_code(db: Session, code: str, conference_id: Optional[str]) -> Optional[DiscountCode]:
        """Case-insensitive exact match, scoped to the conference when given"""
        query = db.query(DiscountCode).filter(func.lower(DiscountCode.code) == code.strip().lower())
        if conference_id:
            query = query.filter(DiscountCode.conference_id == conference_id)
        return query.first()

    @staticmethod
    def validate_discount_code(
        db: Session,
        code: str,
        conference_id: Optional[str],
        now: Optional[datetime] = None
    ) -> DiscountCode:
        """Return the usable discount code or raise ``InvalidDiscountCode``"""
        now = now or datetime.now()
        discount = DiscountService.find_code(db, code, conference_id)

        if discount is None:
            raise InvalidDiscountCode(InvalidDiscountCode.NOT_FOUND)
        if not discount.enabled:
            raise InvalidDiscountCode(InvalidDiscountCode.DISABLED)
        if discount.expiry_date and now > discount.expiry_date:
            raise InvalidDiscountCode(InvalidDiscountCode.EXPIRED)
        if discount.max_usage > 0 and (discount.used_count or 0) >= discount.max_usage:
            raise InvalidDiscountCode(InvalidDiscountCode.USAGE_LIMIT_REACHED)
        return discount

    @staticmethod
    def discountable_subtotal(discount, lines: Iterable[DiscountLine]) -> Decimal:
        """Sum of the lines the code applies to (all of them when unrestricted)"""
        applicable = set(discount.applicable_ticket_types or [])
        total = ZERO
        for line in lines:
            if not applicable or line.ticket_type_id in applicable:
                total += to_money(line.amount)
        return to_money(total)

    @staticmethod
    def apply_discount(subtotal: Decimal, discount) -> Decimal:
        """Discount amount for ``subtotal``; fixed codes never exceed it"""
        subtotal = to_money(subtotal)
        value = to_money(discount.value)
        if DiscountType(discount.type) == DiscountType.PERCENTAGE:
            return to_money(subtotal * value / Decimal("100"))
        return min(value, subtotal)

    @staticmethod
    def calculate_discount(discount, lines: Iterable[DiscountLine]) -> Decimal:
        lines = list(lines)
        return DiscountService.apply_discount(DiscountService.discountable_subtotal(discount, lines), discount)

    @staticmethod
    def claim_usage(db: Session, discount_id: str) -> None:
        """Atomically count one use; raises if the usage cap was reached meanwhile.

        Runs inside the caller's transaction, which must roll back on error.
        """
        result = db.execute(
            update(DiscountCode)
            .where(
                DiscountCode.id == discount_id,
                or_(DiscountCode.max_usage == 0, DiscountCode.used_count < DiscountCode.max_usage)
            )
            .values(used_count=DiscountCode.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Discount code %s hit its usage limit during booking", discount_id)
            raise InvalidDiscountCode(InvalidDiscountCode.USAGE_LIMIT_REACHED)

    @staticmethod
    def create_discount_code(db: Session, discount_code: DiscountCodeCreate) -> DiscountCode:
        data = discount_code.model_dump()
        data["id"] = data.get("id") or str(uuid.uuid4())
        data["type"] = discount_code.type.value
        db_code = DiscountCode(used_count=0, **data)
        try:
            db.add(db_code)
            db.commit()
            db.refresh(db_code)
            return db_code
        except IntegrityError:
            db.rollback()
            raise ValueError(f"Discount code '{discount_code.code}' already exists for this conference")
