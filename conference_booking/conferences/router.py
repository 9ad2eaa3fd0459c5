from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from conference_booking.database import get_db
from conference_booking.conferences.schemas import ConferenceDetail
from conference_booking.conferences.service import ConferenceService

router = APIRouter()

@router.get("/{slug}", response_model=ConferenceDetail)
def get_conference(slug: str, db: Session = Depends(get_db)):
    """Published conference with its bookable ticket types and current prices"""
    detail = ConferenceService.get_conference_detail(db, slug)
    if not detail:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "conference_not_found", "message": "Conference not found"}
        )
    return detail
