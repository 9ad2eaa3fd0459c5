"""Import and export of the single-document JSON database.

The document holds one named array per collection, each entry a flat
camelCase object keyed by ``id``. Importing upserts by id, so running it
twice over the same file leaves the tables unchanged.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Union

from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy import Date, DateTime, Numeric, inspect
from sqlalchemy.orm import Session

from conference_booking.models import (
    AccountBooking, Attendee, Booking, Conference, DiscountCode, PaymentCapture, PaymentSchedule, TicketType,
    UserAccount
)
from conference_booking.money import to_money

logger = logging.getLogger(__name__)

# Parents before children so foreign keys resolve on insert
COLLECTIONS = [
    ("conferences", Conference),
    ("conferenceTicketTypes", TicketType),
    ("conferenceDiscountCodes", DiscountCode),
    ("conferenceBookings", Booking),
    ("conferenceAttendees", Attendee),
    ("conferencePaymentSchedules", PaymentSchedule),
    ("userAccounts", UserAccount),
]

def _columns(model):
    return {column.key: column for column in inspect(model).columns}

def _to_json_value(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value

def _parse_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

def _from_json_value(column, value):
    if value is None or value == "":
        return None
    column_type = column.type
    if isinstance(column_type, DateTime):
        return _parse_datetime(value) if isinstance(value, str) else value
    if isinstance(column_type, Date):
        return date.fromisoformat(value[:10]) if isinstance(value, str) else value
    if isinstance(column_type, Numeric):
        return to_money(value)
    return value

def _row_to_record(row) -> Dict[str, Any]:
    return {to_camel(key): _to_json_value(getattr(row, key)) for key in _columns(type(row))}

def export_document(db: Session) -> Dict[str, list]:
    """Dump every collection into the legacy document shape"""
    document = {}
    for name, model in COLLECTIONS:
        rows = db.query(model).order_by(model.id).all()
        records = []
        for row in rows:
            record = _row_to_record(row)
            if model is UserAccount:
                record["bookingIds"] = row.booking_ids
            records.append(record)
        document[name] = records
    return document

def _record_to_fields(model, record: Dict[str, Any]) -> Dict[str, Any]:
    columns = _columns(model)
    fields = {}
    for key, value in record.items():
        attr = to_snake(key)
        if attr in columns:
            fields[attr] = _from_json_value(columns[attr], value)
    return fields

def _prepare(model, fields: Dict[str, Any]) -> Dict[str, Any]:
    if model is Booking and fields.get("created_at") is None:
        fields["created_at"] = datetime.now()
    if model is Attendee and not fields.get("ticket_id"):
        fields["ticket_id"] = f"TICKET-{fields['id']}"
    if model is UserAccount and fields.get("email"):
        fields["email"] = fields["email"].strip().lower()
    if model is UserAccount and fields.get("email_verified") is None:
        # Older accounts predate the separate email check
        fields["email_verified"] = bool(fields.get("verified"))
    return fields

def _record_legacy_capture(db: Session, booking: Booking):
    """Register an already-applied capture so gateway retries of it are ignored"""
    if not booking.paypal_capture_id:
        return
    exists = db.query(PaymentCapture).filter(
        PaymentCapture.booking_id == booking.id,
        PaymentCapture.capture_id == booking.paypal_capture_id
    ).first()
    if exists:
        return
    db.add(PaymentCapture(
        booking_id=booking.id,
        capture_id=booking.paypal_capture_id,
        order_id=booking.paypal_order_id,
        amount=to_money(booking.paid_amount or 0),
        source="import",
        created_at=booking.payment_date or booking.created_at
    ))

def import_document(db: Session, document: Dict[str, list]) -> Dict[str, int]:
    """Upsert every collection of ``document``; returns the number of records per collection"""
    counts = {}
    for name, model in COLLECTIONS:
        records = document.get(name) or []
        for record in records:
            if not record.get("id"):
                logger.warning("Skipping %s record without id", name)
                continue
            fields = _prepare(model, _record_to_fields(model, record))
            instance = db.merge(model(**fields))
            if model is Booking:
                _record_legacy_capture(db, instance)
            if model is UserAccount:
                linked = set(instance.booking_ids)
                for booking_id in record.get("bookingIds") or []:
                    if booking_id not in linked:
                        instance.booking_links.append(AccountBooking(booking_id=booking_id))
                        linked.add(booking_id)
        counts[name] = len(records)
        db.flush()
    db.commit()
    logger.info("Imported document: %s", counts)
    return counts

def load_document(path: Union[str, Path]) -> Dict[str, list]:
    with open(path, encoding="utf-8") as f:
        return json.load(f)

def dump_document(db: Session, path: Union[str, Path]) -> Dict[str, list]:
    document = export_document(db)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    return document
