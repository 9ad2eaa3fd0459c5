import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from conference_booking.config import settings
from conference_booking.database import init_db
from conference_booking.conferences import router as conferences_router
from conference_booking.discounts import router as discounts_router
from conference_booking.bookings import router as bookings_router
from conference_booking.payments import router as payments_router
from conference_booking.accounts import router as accounts_router

def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

configure_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Conference booking and payments API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers; fixed conference paths go before the /{slug} catch-all
app.include_router(
    discounts_router,
    prefix=f"{settings.API_PREFIX}/conference",
    tags=["Discount Codes"]
)

app.include_router(
    bookings_router,
    prefix=f"{settings.API_PREFIX}/conference",
    tags=["Bookings"]
)

app.include_router(
    conferences_router,
    prefix=f"{settings.API_PREFIX}/conference",
    tags=["Conferences"]
)

app.include_router(
    payments_router,
    prefix=f"{settings.API_PREFIX}/payment",
    tags=["Payments"]
)

app.include_router(
    accounts_router,
    prefix=f"{settings.API_PREFIX}/user",
    tags=["User Accounts"]
)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": f"{settings.PROJECT_NAME} API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("conference_booking.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
