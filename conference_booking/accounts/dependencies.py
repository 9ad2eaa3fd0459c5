from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from conference_booking.config import settings
from conference_booking.database import get_db
from conference_booking.accounts.utils import verify_token
from conference_booking.accounts.service import AccountService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/user/login")

def get_current_account(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
    """Get the account the bearer token was issued to"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = verify_token(token, credentials_exception)

    account = AccountService.get_account_by_id(db, token_data["account_id"])
    if account is None or not account.verified:
        raise credentials_exception

    return account
