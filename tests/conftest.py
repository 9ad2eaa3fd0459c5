"""
Pytest configuration and shared fixtures for the conference booking tests.
"""

import os

# Settings are read at import time; keep tests away from real services
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_PROVIDER", "console")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("STRICT_CLIENT_TOTALS", "false")

from datetime import date, datetime, timedelta
from decimal import Decimal
import itertools

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conference_booking.database import Base, get_db
from conference_booking.main import app
from conference_booking.models import Conference, DiscountCode, TicketType
from conference_booking.notifications.notifier import ConferenceNotifier, get_notifier
from conference_booking.notifications.providers import ConsoleEmailProvider
from conference_booking.payments.paypal_gateway import PaymentGateway, get_payment_gateway


class FakeGateway(PaymentGateway):
    """In-memory stand-in for PayPal"""

    def __init__(self):
        self.orders = {}
        self.capture_status = "COMPLETED"
        self.signature_valid = True
        self._ids = itertools.count(1)

    def create_order(self, amount, currency, booking_id, booking_reference, description=None):
        order_id = f"ORDER-{next(self._ids)}"
        self.orders[order_id] = {"amount": Decimal(amount), "currency": currency, "booking_id": booking_id}
        return {
            "id": order_id,
            "status": "CREATED",
            "links": [{"rel": "approve", "href": f"https://paypal.test/approve/{order_id}"}],
        }

    def capture_order(self, order_id):
        order = self.orders[order_id]
        return capture_result(order_id, f"CAPTURE-{order_id}", order["amount"], order["booking_id"],
                              status=self.capture_status)

    def get_order(self, order_id):
        return {"id": order_id, "status": "APPROVED"}

    def verify_webhook_signature(self, headers, event):
        return self.signature_valid


def capture_result(order_id, capture_id, amount, booking_id, status="COMPLETED"):
    """Order capture response in the gateway's shape"""
    return {
        "id": order_id,
        "status": status,
        "purchase_units": [{
            "reference_id": booking_id,
            "payments": {"captures": [{
                "id": capture_id,
                "status": status,
                "custom_id": booking_id,
                "amount": {"currency_code": "GBP", "value": f"{Decimal(amount):.2f}"},
            }]},
        }],
    }


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Session for arranging data and checking results"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_provider():
    return ConsoleEmailProvider()


@pytest.fixture
def notifier(email_provider):
    return ConferenceNotifier(email_provider, admin_email="admin@example.org")


@pytest.fixture
def client(session_factory, gateway, notifier):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def conference(db_session):
    """Published conference open for registration, no early bird"""
    conference = Conference(
        id="conf-1",
        slug="summer-conference",
        title="Summer Conference",
        start_date=date.today() + timedelta(days=90),
        end_date=date.today() + timedelta(days=93),
        venue={"name": "Riverside Showground"},
        published=True,
        registration_open=True,
        early_bird_discount_amount=Decimal("0"),
        payment_settings={"depositPercentage": 25, "installmentCount": 3, "installmentInterval": 30},
        child_group_leaders={"0-5": "little-ones@example.org", "6-8": "juniors@example.org"},
    )
    db_session.add(conference)
    db_session.commit()
    return conference


@pytest.fixture
def adult_ticket(db_session, conference):
    ticket = TicketType(id="tt-adult", conference_id=conference.id, name="Adult", type="adult",
                        price=Decimal("120"), capacity=0, sold=0, enabled=True)
    db_session.add(ticket)
    db_session.commit()
    return ticket


@pytest.fixture
def child_ticket(db_session, conference):
    ticket = TicketType(id="tt-child", conference_id=conference.id, name="Child", type="child",
                        price=Decimal("50"), capacity=0, sold=0, enabled=True)
    db_session.add(ticket)
    db_session.commit()
    return ticket


@pytest.fixture
def family_code(db_session, conference):
    code = DiscountCode(id="dc-family", conference_id=conference.id, code="FAMILY2024", type="percentage",
                        value=Decimal("15"), applicable_ticket_types=[], max_usage=0, used_count=0,
                        enabled=True)
    db_session.add(code)
    db_session.commit()
    return code


@pytest.fixture
def booking_payload(conference, adult_ticket):
    def build(attendees=1, **overrides):
        payload = {
            "conference_id": conference.id,
            "group_leader_name": "Grace Leader",
            "group_leader_email": "Grace@Example.org",
            "group_leader_phone": "07000 000000",
            "payment_method": "full",
            "attendees": [
                {"ticket_type_id": adult_ticket.id, "full_name": f"Attendee {i + 1}",
                 "date_of_birth": "1985-06-15"}
                for i in range(attendees)
            ],
        }
        payload.update(overrides)
        return payload
    return build


@pytest.fixture
def now():
    return datetime(2024, 5, 10, 12, 0, 0)
