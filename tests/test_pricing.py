import pytest
from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

from conference_booking.conferences.pricing_service import (
    conference_early_bird_active, resolve_price, resolve_unit_price
)
from conference_booking.conferences.schemas import PriceRule


def make_conference(**kwargs):
    values = dict(early_bird_start_date=None, early_bird_end_date=None, early_bird_discount_amount=Decimal("0"))
    values.update(kwargs)
    return SimpleNamespace(**values)


def make_ticket(**kwargs):
    values = dict(price=Decimal("120"), early_bird_price=None, early_bird_end_date=None,
                  late_price=None, late_price_start_date=None)
    values.update(kwargs)
    return SimpleNamespace(**values)


EARLY_BIRD_CONFERENCE = dict(
    early_bird_start_date=date(2024, 5, 1),
    early_bird_end_date=date(2024, 5, 31),
    early_bird_discount_amount=Decimal("25"),
)


@pytest.mark.pricing
class TestPricingCascade:
    """Unit price resolution order"""

    def test_conference_early_bird_takes_25_off(self, now):
        resolved = resolve_price(make_ticket(), make_conference(**EARLY_BIRD_CONFERENCE), now)

        assert resolved.amount == Decimal("95.00")
        assert resolved.rule == PriceRule.CONFERENCE_EARLY_BIRD

    def test_conference_early_bird_overrides_ticket_prices(self, now):
        ticket = make_ticket(early_bird_price=Decimal("80"), early_bird_end_date=date(2024, 6, 1),
                             late_price=Decimal("150"), late_price_start_date=date(2024, 1, 1))

        resolved = resolve_price(ticket, make_conference(**EARLY_BIRD_CONFERENCE), now)

        assert resolved.amount == Decimal("95.00")
        assert resolved.rule == PriceRule.CONFERENCE_EARLY_BIRD

    def test_conference_early_bird_includes_whole_last_day(self):
        conference = make_conference(**EARLY_BIRD_CONFERENCE)

        assert conference_early_bird_active(conference, datetime(2024, 5, 31, 23, 59, 59))
        assert not conference_early_bird_active(conference, datetime(2024, 6, 1, 0, 0, 0))
        assert not conference_early_bird_active(conference, datetime(2024, 4, 30, 23, 59, 59))

    def test_conference_early_bird_needs_positive_discount(self, now):
        conference = make_conference(early_bird_start_date=date(2024, 5, 1),
                                     early_bird_end_date=date(2024, 5, 31),
                                     early_bird_discount_amount=Decimal("0"))

        assert resolve_price(make_ticket(), conference, now).rule == PriceRule.STANDARD

    def test_conference_early_bird_never_negative(self, now):
        ticket = make_ticket(price=Decimal("10"))

        assert resolve_unit_price(ticket, make_conference(**EARLY_BIRD_CONFERENCE), now) == Decimal("0.00")

    def test_ticket_early_bird_before_end_date(self, now):
        ticket = make_ticket(early_bird_price=Decimal("100"), early_bird_end_date=date(2024, 5, 20))

        resolved = resolve_price(ticket, make_conference(), now)

        assert resolved.amount == Decimal("100.00")
        assert resolved.rule == PriceRule.TICKET_EARLY_BIRD

    def test_ticket_early_bird_ends_at_start_of_end_date(self):
        ticket = make_ticket(early_bird_price=Decimal("100"), early_bird_end_date=date(2024, 5, 20))

        assert resolve_unit_price(ticket, make_conference(), datetime(2024, 5, 20, 0, 0, 1)) == Decimal("120.00")

    def test_zero_early_bird_price_is_ignored(self, now):
        ticket = make_ticket(early_bird_price=Decimal("0"), early_bird_end_date=date(2024, 5, 20))

        assert resolve_price(ticket, make_conference(), now).rule == PriceRule.STANDARD

    def test_late_price_from_start_date(self, now):
        ticket = make_ticket(late_price=Decimal("140"), late_price_start_date=date(2024, 5, 10))

        resolved = resolve_price(ticket, make_conference(), now)

        assert resolved.amount == Decimal("140.00")
        assert resolved.rule == PriceRule.LATE_PRICE

    def test_late_price_not_yet_started(self, now):
        ticket = make_ticket(late_price=Decimal("140"), late_price_start_date=date(2024, 5, 11))

        assert resolve_unit_price(ticket, make_conference(), now) == Decimal("120.00")

    def test_ticket_early_bird_beats_late_price(self, now):
        ticket = make_ticket(early_bird_price=Decimal("100"), early_bird_end_date=date(2024, 5, 20),
                             late_price=Decimal("140"), late_price_start_date=date(2024, 5, 1))

        assert resolve_price(ticket, make_conference(), now).rule == PriceRule.TICKET_EARLY_BIRD

    def test_standard_price(self, now):
        resolved = resolve_price(make_ticket(price=Decimal("49.99")), make_conference(), now)

        assert resolved.amount == Decimal("49.99")
        assert resolved.rule == PriceRule.STANDARD


@pytest.mark.pricing
class TestConferenceEndpoint:
    """Public conference page with current prices"""

    def test_get_conference_with_prices(self, client, conference, adult_ticket, child_ticket):
        response = client.get("/api/conference/summer-conference")

        assert response.status_code == 200
        data = response.json()
        assert data["conference"]["slug"] == "summer-conference"
        prices = {t["id"]: Decimal(str(t["current_price"])) for t in data["ticket_types"]}
        assert prices == {"tt-adult": Decimal("120"), "tt-child": Decimal("50")}
        assert all(t["price_rule"] == "standard" for t in data["ticket_types"])

    def test_disabled_ticket_types_are_hidden(self, client, db_session, conference, adult_ticket):
        adult_ticket.enabled = False
        db_session.commit()

        response = client.get("/api/conference/summer-conference")

        assert response.json()["ticket_types"] == []

    def test_unpublished_conference_is_404(self, client, db_session, conference):
        conference.published = False
        db_session.commit()

        response = client.get("/api/conference/summer-conference")

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "conference_not_found"

    def test_unknown_slug_is_404(self, client):
        assert client.get("/api/conference/no-such-conference").status_code == 404


@pytest.mark.pricing
class TestConferenceService:

    def test_slug_derived_from_title(self, db_session):
        from conference_booking.conferences.schemas import ConferenceCreate
        from conference_booking.conferences.service import ConferenceService

        created = ConferenceService.create_conference(
            db_session, ConferenceCreate(title="  Winter Retreat: 2025!  ")
        )

        assert created.slug == "winter-retreat-2025"

    def test_duplicate_slug_rejected(self, db_session, conference):
        from conference_booking.conferences.schemas import ConferenceCreate
        from conference_booking.conferences.service import ConferenceService

        with pytest.raises(ValueError):
            ConferenceService.create_conference(db_session, ConferenceCreate(title="Summer Conference"))
