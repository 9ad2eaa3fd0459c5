import pytest
from datetime import datetime, timedelta

from conference_booking.accounts.linker_service import link_or_create_account
from conference_booking.accounts.service import AccountService, generate_verification_code
from conference_booking.accounts.utils import create_access_token, get_password_hash, verify_password
from conference_booking.exceptions import TokenExpiredOrUsed
from conference_booking.models import EmailVerificationCode, PasswordResetToken, UserAccount

EMAIL = "leader@example.org"
PASSWORD = "correct horse"


def latest_code(db_session, email=EMAIL):
    db_session.expire_all()
    return (db_session.query(EmailVerificationCode)
            .filter(EmailVerificationCode.email == email)
            .order_by(EmailVerificationCode.id.desc())
            .first().code)


@pytest.fixture
def registered(client, db_session):
    """Account that has registered but not verified its email"""
    response = client.post("/api/user/register", json={"email": EMAIL, "name": "Leader", "bookingId": "b-1"})
    assert response.status_code == 200
    return latest_code(db_session)


@pytest.fixture
def verified_account(client, db_session, registered):
    client.post("/api/user/verify", json={"email": EMAIL, "code": registered})
    response = client.post("/api/user/set-password", json={"email": EMAIL, "password": PASSWORD})
    assert response.status_code == 200
    return response.json()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.accounts
class TestPasswordUtils:

    def test_hash_and_verify(self):
        hashed = get_password_hash(PASSWORD)

        assert hashed != PASSWORD
        assert verify_password(PASSWORD, hashed)
        assert not verify_password("wrong", hashed)

    def test_unset_or_foreign_hash_never_matches(self):
        assert not verify_password(PASSWORD, None)
        assert not verify_password(PASSWORD, "")
        assert not verify_password(PASSWORD, "5e884898da28047151d0e56f8dc6292773603d0d6aabbdd62a11ef721d1542d8")

    def test_verification_code_is_six_digits(self):
        code = generate_verification_code()

        assert len(code) == 6
        assert code.isdigit()


@pytest.mark.accounts
class TestRegistration:

    def test_register_sends_code(self, client, db_session, email_provider, registered):
        account = db_session.query(UserAccount).one()
        assert account.email == EMAIL
        assert account.booking_ids == ["b-1"]
        assert not account.email_verified
        assert not account.verified
        assert account.password_hash is None
        assert any(m.to == [EMAIL] and m.subject == "Verify your email address" for m in email_provider.sent)

    def test_register_existing_verified_account(self, client, verified_account):
        response = client.post("/api/user/register", json={"email": EMAIL})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "account_exists"

    def test_register_again_before_verifying_issues_new_code(self, client, db_session, registered):
        response = client.post("/api/user/register", json={"email": "LEADER@example.org"})

        assert response.status_code == 200
        assert db_session.query(UserAccount).count() == 1
        assert db_session.query(EmailVerificationCode).count() == 2

    def test_verify_marks_email_only(self, client, db_session, registered):
        response = client.post("/api/user/verify", json={"email": EMAIL, "code": registered})

        assert response.status_code == 200
        assert response.json()["needs_password"] is True
        account = db_session.query(UserAccount).one()
        assert account.email_verified
        assert not account.verified

    def test_code_cannot_be_reused(self, client, registered):
        client.post("/api/user/verify", json={"email": EMAIL, "code": registered})

        response = client.post("/api/user/verify", json={"email": EMAIL, "code": registered})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "This verification code has already been used"

    def test_wrong_code(self, client, registered):
        wrong = "000000" if registered != "000000" else "111111"

        response = client.post("/api/user/verify", json={"email": EMAIL, "code": wrong})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "token_expired_or_used"

    def test_expired_code(self, db_session, registered):
        with pytest.raises(TokenExpiredOrUsed):
            AccountService.verify_email(db_session, EMAIL, registered, now=datetime.now() + timedelta(hours=25))

    def test_late_code_keeps_account_verified(self, db_session, verified_account):
        db_session.add(EmailVerificationCode(email=EMAIL, code="424242", used=False, created_at=datetime.now()))
        db_session.commit()

        account = AccountService.verify_email(db_session, EMAIL, "424242")

        assert account.verified
        assert account.email_verified
        assert account.password_hash is not None

    def test_resend_code(self, client, db_session, registered):
        response = client.post("/api/user/resend-code", json={"email": EMAIL})

        assert response.status_code == 200
        assert latest_code(db_session) is not None
        assert db_session.query(EmailVerificationCode).count() == 2

    def test_resend_code_unknown_account(self, client):
        assert client.post("/api/user/resend-code", json={"email": "nobody@example.org"}).status_code == 404

    def test_set_password_requires_verified_email(self, client, registered):
        response = client.post("/api/user/set-password", json={"email": EMAIL, "password": PASSWORD})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "account_state"

    def test_set_password_too_short(self, client, db_session, registered):
        client.post("/api/user/verify", json={"email": EMAIL, "code": registered})

        response = client.post("/api/user/set-password", json={"email": EMAIL, "password": "abc"})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_password"

    def test_set_password_logs_in(self, verified_account):
        assert verified_account["token_type"] == "bearer"
        assert verified_account["access_token"]
        assert verified_account["user"]["verified"] is True


@pytest.mark.accounts
class TestLogin:

    def test_login(self, client, verified_account):
        response = client.post("/api/user/login", json={"email": "Leader@Example.org", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == EMAIL

    def test_unverified_email(self, client, registered):
        response = client.post("/api/user/login", json={"email": EMAIL, "password": PASSWORD})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "email_not_verified"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_password_not_set(self, client, registered):
        client.post("/api/user/verify", json={"email": EMAIL, "code": registered})

        response = client.post("/api/user/login", json={"email": EMAIL, "password": PASSWORD})

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "password_not_set"

    def test_wrong_password_and_unknown_email_look_the_same(self, client, verified_account):
        wrong_password = client.post("/api/user/login", json={"email": EMAIL, "password": "nope"})
        unknown_email = client.post("/api/user/login", json={"email": "ghost@example.org", "password": "nope"})

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json()


@pytest.mark.accounts
class TestAuthenticatedEndpoints:

    def test_me(self, client, verified_account):
        response = client.get("/api/user/me", headers=auth_header(verified_account["access_token"]))

        assert response.status_code == 200
        assert response.json()["email"] == EMAIL

    def test_me_without_token(self, client):
        assert client.get("/api/user/me").status_code == 401

    def test_me_with_bad_token(self, client):
        assert client.get("/api/user/me", headers=auth_header("not-a-token")).status_code == 401

    def test_token_of_unverified_account_rejected(self, client, db_session, registered):
        account = db_session.query(UserAccount).one()
        token = create_access_token({"sub": account.id, "email": account.email})

        assert client.get("/api/user/me", headers=auth_header(token)).status_code == 401

    def test_change_password(self, client, verified_account):
        headers = auth_header(verified_account["access_token"])

        response = client.post("/api/user/change-password", headers=headers,
                               json={"currentPassword": PASSWORD, "newPassword": "battery staple"})

        assert response.status_code == 200
        assert client.post("/api/user/login",
                           json={"email": EMAIL, "password": "battery staple"}).status_code == 200

    def test_change_password_wrong_current(self, client, verified_account):
        response = client.post("/api/user/change-password",
                               headers=auth_header(verified_account["access_token"]),
                               json={"currentPassword": "nope", "newPassword": "battery staple"})

        assert response.status_code == 401
        assert response.json()["detail"]["message"] == "Current password is incorrect"

    def test_change_password_must_differ(self, client, verified_account):
        response = client.post("/api/user/change-password",
                               headers=auth_header(verified_account["access_token"]),
                               json={"currentPassword": PASSWORD, "newPassword": PASSWORD})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_password"

    def test_bookings_lists_linked_bookings(self, client, booking_payload, db_session):
        booking = client.post("/api/conference/booking",
                              json=booking_payload(group_leader_email=EMAIL)).json()
        code = latest_code(db_session)
        client.post("/api/user/verify", json={"email": EMAIL, "code": code})
        token = client.post("/api/user/set-password",
                            json={"email": EMAIL, "password": PASSWORD}).json()["access_token"]

        response = client.get("/api/user/bookings", headers=auth_header(token))

        assert response.status_code == 200
        bookings = response.json()
        assert [b["id"] for b in bookings] == [booking["booking_id"]]
        assert bookings[0]["conference_title"] == "Summer Conference"


@pytest.mark.accounts
class TestPasswordReset:

    def test_forgot_password_answers_the_same_for_unknown_email(self, client, verified_account):
        known = client.post("/api/user/forgot-password", json={"email": EMAIL})
        unknown = client.post("/api/user/forgot-password", json={"email": "ghost@example.org"})

        assert known.json() == unknown.json()

    def test_reset_password(self, client, db_session, email_provider, verified_account):
        client.post("/api/user/forgot-password", json={"email": EMAIL})
        token = db_session.query(PasswordResetToken).one().token
        assert any(m.subject == "Reset your password" and token in m.html for m in email_provider.sent)

        response = client.post("/api/user/reset-password",
                               json={"email": EMAIL, "token": token, "newPassword": "brand new pass"})

        assert response.status_code == 200
        assert client.post("/api/user/login",
                           json={"email": EMAIL, "password": "brand new pass"}).status_code == 200
        reused = client.post("/api/user/reset-password",
                             json={"email": EMAIL, "token": token, "newPassword": "another pass"})
        assert reused.status_code == 400

    def test_reset_token_expires(self, db_session, verified_account):
        token = AccountService.forgot_password(db_session, EMAIL)

        with pytest.raises(TokenExpiredOrUsed):
            AccountService.reset_password(db_session, EMAIL, token, "brand new pass",
                                          now=datetime.now() + timedelta(hours=2))

    def test_check_account(self, client, verified_account):
        found = client.get("/api/user/check-account", params={"email": "LEADER@example.org"}).json()
        missing = client.get("/api/user/check-account", params={"email": "ghost@example.org"}).json()

        assert found == {"exists": True, "verified": True, "email": EMAIL}
        assert missing == {"exists": False, "verified": False, "email": "ghost@example.org"}


@pytest.mark.accounts
class TestAccountLinker:

    def make_account(self, db_session, verified):
        account = AccountService.create_account(db_session, EMAIL, "Leader")
        account.email_verified = verified
        account.verified = verified
        db_session.commit()
        return account

    def code_count(self, db_session):
        return db_session.query(EmailVerificationCode).count()

    def test_paid_booking_without_account(self, db_session):
        result = link_or_create_account(db_session, EMAIL, "b-1", "paid")

        assert not result.account_exists
        assert result.verification_code is None
        assert db_session.query(UserAccount).count() == 0

    def test_unpaid_booking_creates_account(self, db_session):
        result = link_or_create_account(db_session, "New@Example.org", "b-1", "unpaid", "New Leader")

        assert result.account_created
        assert result.verification_code is not None
        account = db_session.query(UserAccount).one()
        assert account.email == "new@example.org"
        assert account.booking_ids == ["b-1"]

    def test_unverified_account_gets_new_code(self, db_session):
        self.make_account(db_session, verified=False)

        result = link_or_create_account(db_session, EMAIL, "b-2", "partial")

        assert result.account_exists
        assert result.needs_setup
        assert result.verification_code is not None
        assert self.code_count(db_session) == 1

    def test_verified_account_is_only_linked(self, db_session):
        account = self.make_account(db_session, verified=True)

        result = link_or_create_account(db_session, EMAIL, "b-3", "unpaid")

        assert result.account_verified
        assert result.verification_code is None
        assert self.code_count(db_session) == 0
        db_session.refresh(account)
        assert account.booking_ids == ["b-3"]

    def test_paid_booking_links_existing_account_without_code(self, db_session):
        account = self.make_account(db_session, verified=False)

        result = link_or_create_account(db_session, EMAIL, "b-4", "paid")

        assert result.verification_code is None
        db_session.refresh(account)
        assert account.booking_ids == ["b-4"]

    def test_linking_twice_keeps_one_link(self, db_session):
        account = self.make_account(db_session, verified=True)

        link_or_create_account(db_session, EMAIL, "b-5", "unpaid")
        link_or_create_account(db_session, EMAIL, "b-5", "unpaid")

        db_session.refresh(account)
        assert account.booking_ids == ["b-5"]
