import re
import uuid
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from conference_booking.models import Conference, TicketType
from conference_booking.conferences.schemas import (
    ConferenceCreate, TicketTypeCreate, ConferenceDetail, TicketTypeOffer,
    Conference as ConferenceSchema, TicketType as TicketTypeSchema
)
from conference_booking.conferences.pricing_service import resolve_price

def slugify(title: str) -> str:
    """URL-safe slug: lower-case, non-alphanumeric runs collapsed to '-'"""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")

class ConferenceService:
    @staticmethod
    def get_conference(db: Session, conference_id: str) -> Optional[Conference]:
        """Get conference by ID"""
        return db.query(Conference).filter(Conference.id == conference_id).first()

    @staticmethod
    def get_conference_by_slug(db: Session, slug: str) -> Optional[Conference]:
        """Get conference by slug"""
        return db.query(Conference).filter(Conference.slug == slug).first()

    @staticmethod
    def get_ticket_type(db: Session, ticket_type_id: str) -> Optional[TicketType]:
        return db.query(TicketType).filter(TicketType.id == ticket_type_id).first()

    @staticmethod
    def get_ticket_types(db: Session, conference_id: str, enabled_only: bool = False) -> List[TicketType]:
        """Get the ticket types of a conference"""
        query = db.query(TicketType).filter(TicketType.conference_id == conference_id)
        if enabled_only:
            query = query.filter(TicketType.enabled.is_(True))
        return query.order_by(TicketType.name).all()

    @staticmethod
    def create_conference(db: Session, conference: ConferenceCreate) -> Conference:
        """Create a conference, deriving the slug from the title when missing"""
        data = conference.model_dump(exclude={"payment_settings"})
        data["id"] = data.get("id") or str(uuid.uuid4())
        data["slug"] = data.get("slug") or slugify(conference.title)
        if conference.payment_settings is not None:
            data["payment_settings"] = conference.payment_settings.model_dump(mode="json")

        db_conference = Conference(**data)
        try:
            db.add(db_conference)
            db.commit()
            db.refresh(db_conference)
            return db_conference
        except IntegrityError:
            db.rollback()
            raise ValueError(f"Conference slug '{data['slug']}' already exists")

    @staticmethod
    def create_ticket_type(db: Session, ticket_type: TicketTypeCreate) -> TicketType:
        """Create a ticket type for an existing conference"""
        if not ConferenceService.get_conference(db, ticket_type.conference_id):
            raise ValueError("Conference not found")

        data = ticket_type.model_dump()
        data["id"] = data.get("id") or str(uuid.uuid4())
        db_ticket_type = TicketType(sold=0, **data)
        db.add(db_ticket_type)
        db.commit()
        db.refresh(db_ticket_type)
        return db_ticket_type

    @staticmethod
    def get_conference_detail(db: Session, slug: str, now: Optional[datetime] = None) -> Optional[ConferenceDetail]:
        """Published conference with its enabled ticket types priced for ``now``"""
        conference = ConferenceService.get_conference_by_slug(db, slug)
        if not conference or not conference.published:
            return None

        now = now or datetime.now()
        offers = []
        for ticket_type in ConferenceService.get_ticket_types(db, conference.id, enabled_only=True):
            resolved = resolve_price(ticket_type, conference, now)
            available = None
            if ticket_type.capacity > 0:
                available = max(0, ticket_type.capacity - (ticket_type.sold or 0))
            offers.append(TicketTypeOffer(
                **TicketTypeSchema.model_validate(ticket_type).model_dump(),
                current_price=resolved.amount,
                price_rule=resolved.rule,
                available=available
            ))

        return ConferenceDetail(
            conference=ConferenceSchema.model_validate(conference),
            ticket_types=offers,
            priced_at=now
        )
