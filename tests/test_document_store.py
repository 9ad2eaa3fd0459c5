import pytest
from datetime import date, datetime
from decimal import Decimal

from conference_booking.document_store import dump_document, export_document, import_document, load_document
from conference_booking.models import (
    Attendee, Booking, Conference, PaymentCapture, PaymentSchedule, TicketType, UserAccount
)


@pytest.fixture
def document():
    return {
        "conferences": [{
            "id": "conf-legacy",
            "slug": "family-camp-2024",
            "title": "Family Camp 2024",
            "startDate": "2024-08-01",
            "endDate": "2024-08-04",
            "venue": {"name": "Riverside Showground"},
            "published": True,
            "registrationOpen": True,
            "earlyBirdDiscountAmount": 25,
            "paymentSettings": {"depositPercentage": 20, "installmentCount": 3, "installmentInterval": 30},
            "childGroupLeaders": {"0-5": "little-ones@example.org"},
        }],
        "conferenceTicketTypes": [{
            "id": "tt-legacy",
            "conferenceId": "conf-legacy",
            "name": "Adult",
            "type": "adult",
            "price": 120.5,
            "capacity": 100,
            "sold": 2,
            "enabled": True,
        }],
        "conferenceDiscountCodes": [],
        "conferenceBookings": [{
            "id": "booking-legacy",
            "conferenceId": "conf-legacy",
            "bookingReference": "CONF-LEGACY01",
            "groupLeaderName": "Grace Leader",
            "groupLeaderEmail": "grace@example.org",
            "attendeeCount": 1,
            "subtotal": 120.5,
            "discountAmount": 0,
            "totalAmount": 120.5,
            "paymentMethod": "deposit",
            "paymentStatus": "partial",
            "paidAmount": 24.1,
            "paypalOrderId": "ORDER-OLD",
            "archived": False,
            "createdAt": "2024-03-01T09:30:00.000Z",
        }],
        "conferenceAttendees": [{
            "id": "att-legacy",
            "bookingId": "booking-legacy",
            "ticketTypeId": "tt-legacy",
            "fullName": "Grace Leader",
            "dateOfBirth": "1985-06-15",
            "age": 38,
            "unitPrice": 120.5,
        }],
        "conferencePaymentSchedules": [{
            "id": "schedule-legacy-1",
            "bookingId": "booking-legacy",
            "conferenceId": "conf-legacy",
            "amount": 48.2,
            "dueDate": "2024-04-01",
            "status": "pending",
            "installmentNumber": 2,
        }],
        "userAccounts": [{
            "id": "user-legacy",
            "email": "Grace@Example.org",
            "name": "Grace Leader",
            "verified": True,
            "bookingIds": ["booking-legacy"],
        }],
    }


@pytest.mark.documents
class TestImportDocument:

    def test_import_maps_camel_case_records(self, db_session, document):
        counts = import_document(db_session, document)

        assert counts["conferenceBookings"] == 1
        conference = db_session.query(Conference).one()
        assert conference.registration_open is True
        assert conference.early_bird_discount_amount == Decimal("25.00")
        assert conference.start_date == date(2024, 8, 1)
        assert conference.payment_settings["depositPercentage"] == 20

        booking = db_session.query(Booking).one()
        assert booking.booking_reference == "CONF-LEGACY01"
        assert booking.paid_amount == Decimal("24.10")
        assert booking.total_amount == Decimal("120.50")
        assert booking.created_at == datetime(2024, 3, 1, 9, 30)
        assert booking.paypal_order_id == "ORDER-OLD"

        attendee = db_session.query(Attendee).one()
        assert attendee.ticket_id == "TICKET-att-legacy"
        assert attendee.unit_price == Decimal("120.50")

        schedule = db_session.query(PaymentSchedule).one()
        assert schedule.due_date == date(2024, 4, 1)

    def test_accounts_keep_links_and_lower_cased_email(self, db_session, document):
        import_document(db_session, document)

        account = db_session.query(UserAccount).one()
        assert account.email == "grace@example.org"
        assert account.email_verified is True
        assert account.booking_ids == ["booking-legacy"]

    def test_reimport_is_idempotent(self, db_session, document):
        import_document(db_session, document)
        document["conferenceTicketTypes"][0]["sold"] = 3

        import_document(db_session, document)

        assert db_session.query(Booking).count() == 1
        assert db_session.query(Attendee).count() == 1
        assert db_session.query(TicketType).one().sold == 3
        assert db_session.query(UserAccount).one().booking_ids == ["booking-legacy"]

    def test_records_without_id_are_skipped(self, db_session, document):
        document["conferenceTicketTypes"].append({"conferenceId": "conf-legacy", "name": "No id"})

        import_document(db_session, document)

        assert db_session.query(TicketType).count() == 1


@pytest.mark.documents
class TestExportDocument:

    def test_export_uses_camel_case_and_plain_numbers(self, db_session, document):
        import_document(db_session, document)

        exported = export_document(db_session)

        booking = exported["conferenceBookings"][0]
        assert booking["bookingReference"] == "CONF-LEGACY01"
        assert booking["paidAmount"] == 24.1
        assert booking["createdAt"] == "2024-03-01T09:30:00"
        assert exported["conferences"][0]["startDate"] == "2024-08-01"
        assert exported["userAccounts"][0]["bookingIds"] == ["booking-legacy"]
        assert "passwordHash" in exported["userAccounts"][0]

    def test_dump_and_load_file(self, db_session, document, tmp_path):
        import_document(db_session, document)
        path = tmp_path / "conference-db.json"

        dump_document(db_session, path)
        loaded = load_document(path)

        assert [c["id"] for c in loaded["conferences"]] == ["conf-legacy"]
        assert loaded["conferenceAttendees"][0]["fullName"] == "Grace Leader"


@pytest.mark.documents
class TestImportedCaptures:

    @pytest.fixture
    def paid_document(self, document):
        booking = document["conferenceBookings"][0]
        booking.update({"totalAmount": 120, "paidAmount": 50, "paymentStatus": "partial",
                        "paypalCaptureId": "CAP-LEGACY", "paymentDate": "2024-03-02T10:00:00Z"})
        return document

    def test_capture_id_is_recorded_on_import(self, db_session, paid_document):
        import_document(db_session, paid_document)
        import_document(db_session, paid_document)

        capture = db_session.query(PaymentCapture).one()
        assert capture.capture_id == "CAP-LEGACY"
        assert capture.order_id == "ORDER-OLD"
        assert capture.amount == Decimal("50.00")
        assert capture.source == "import"
        assert capture.created_at == datetime(2024, 3, 2, 10, 0)

    def test_webhook_retry_of_imported_capture_is_ignored(self, client, db_session, paid_document):
        import_document(db_session, paid_document)
        event = {
            "id": "WH-LEGACY",
            "event_type": "PAYMENT.CAPTURE.COMPLETED",
            "resource": {
                "id": "CAP-LEGACY",
                "status": "COMPLETED",
                "custom_id": "booking-legacy",
                "amount": {"currency_code": "GBP", "value": "50.00"},
                "supplementary_data": {"related_ids": {"order_id": "ORDER-OLD"}},
            },
        }

        response = client.post("/api/payment/webhook", json=event)

        assert response.status_code == 200
        assert response.json()["applied"] is False
        db_session.expire_all()
        booking = db_session.query(Booking).one()
        assert booking.paid_amount == Decimal("50.00")
        assert db_session.query(PaymentCapture).count() == 1
