#!/usr/bin/env python3
"""Seed the conference database.

    python seed_data.py                  # demo conference, tickets and codes
    python seed_data.py database.json    # import an existing JSON database
"""

import sys
from datetime import date, datetime, timedelta
from decimal import Decimal

from conference_booking.database import SessionLocal, init_db
from conference_booking.document_store import import_document, load_document
from conference_booking.conferences.schemas import ConferenceCreate, PaymentSettings, TicketTypeCreate
from conference_booking.conferences.service import ConferenceService
from conference_booking.discounts.schemas import DiscountCodeCreate, DiscountType
from conference_booking.discounts.service import DiscountService

def import_legacy_database(path: str):
    db = SessionLocal()

    try:
        print(f"📦 Importing {path}...")
        counts = import_document(db, load_document(path))
        print("✅ Import finished:")
        for name, count in counts.items():
            print(f"  - {count} {name}")

    except Exception as e:
        print(f"❌ Error importing database: {e}")
        db.rollback()
        raise
    finally:
        db.close()

def create_seed_data():
    db = SessionLocal()

    try:
        print("🚀 Creating demo conference data...")
        today = date.today()

        # 1. Conference
        print("Creating conference...")
        conference = ConferenceService.create_conference(db, ConferenceCreate(
            title=f"Summer Family Conference {today.year}",
            description="Four days of worship, teaching and camping for the whole family.",
            start_date=today + timedelta(days=120),
            end_date=today + timedelta(days=123),
            venue={"name": "Riverside Showground", "address": "Riverside Lane"},
            published=True,
            registration_open=True,
            early_bird_start_date=today - timedelta(days=7),
            early_bird_end_date=today + timedelta(days=30),
            early_bird_discount_amount=Decimal("25"),
            payment_settings=PaymentSettings(deposit_percentage=Decimal("25"), installment_count=3,
                                             installment_interval=30),
            child_group_leaders={"0-5": "little-ones@example.org", "6-8": "juniors@example.org",
                                 "9-12": "explorers@example.org"}
        ))

        # 2. Ticket types
        print("Creating ticket types...")
        ticket_types = [
            TicketTypeCreate(conference_id=conference.id, name="Adult (Camping)", type="adult",
                             camping=True, price=Decimal("120"), capacity=300, age_min=18),
            TicketTypeCreate(conference_id=conference.id, name="Adult (Day)", type="adult",
                             price=Decimal("85"), late_price=Decimal("95"),
                             late_price_start_date=today + timedelta(days=90)),
            TicketTypeCreate(conference_id=conference.id, name="Teen", type="teen", price=Decimal("70"),
                             early_bird_price=Decimal("60"), early_bird_end_date=today + timedelta(days=45),
                             capacity=120, age_min=13, age_max=17),
            TicketTypeCreate(conference_id=conference.id, name="Child", type="child", price=Decimal("50"),
                             capacity=150, age_min=2, age_max=12),
            TicketTypeCreate(conference_id=conference.id, name="Under 2s", type="under-2s",
                             price=Decimal("0"), age_max=1),
        ]
        for ticket_type in ticket_types:
            ConferenceService.create_ticket_type(db, ticket_type)

        # 3. Discount codes
        print("Creating discount codes...")
        discount_codes = [
            DiscountCodeCreate(conference_id=conference.id, code="FAMILY2024", type=DiscountType.PERCENTAGE,
                               value=Decimal("15"), description="Family discount"),
            DiscountCodeCreate(conference_id=conference.id, code="VOLUNTEER", type=DiscountType.FIXED,
                               value=Decimal("40"), max_usage=50,
                               expiry_date=datetime.combine(today + timedelta(days=60), datetime.min.time())),
        ]
        for discount_code in discount_codes:
            DiscountService.create_discount_code(db, discount_code)

        print("✅ Successfully created demo data!")
        print(f"Created:")
        print(f"  - 1 conference ({conference.slug})")
        print(f"  - {len(ticket_types)} ticket types")
        print(f"  - {len(discount_codes)} discount codes")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    init_db()
    if len(sys.argv) > 1:
        import_legacy_database(sys.argv[1])
    else:
        create_seed_data()
