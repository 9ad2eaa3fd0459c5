from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from conference_booking.config import settings

connect_args = {"check_same_thread": False} if settings.is_sqlite else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """Yield a database session for the lifetime of a request"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create all tables that do not exist yet"""
    from conference_booking import models  # noqa: F401 - registers the mappers
    Base.metadata.create_all(bind=engine)
