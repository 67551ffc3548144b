"""
Tests for the one-time code send and verify endpoints.
"""
from datetime import timedelta

from clinic_api.auth.models import UserRole, AccountStatus, OneTimeCode, UserToken, TokenType
from clinic_api.doctors.models import ValidationStatus

SEND_URL = "/api/v1/auth/otp/send"
VERIFY_URL = "/api/v1/auth/otp/verify"
PHONE = "0700000000"


def test_send_issues_code_without_returning_it(client, sender):
    response = client.post(SEND_URL, json={"phone": "07 00 00 00 00"})
    assert response.status_code == 200
    data = response.json()
    assert data["phone"] == PHONE
    assert data["expiresAt"]
    assert len(sender.sent) == 1
    assert sender.last_code not in response.text


def test_send_rejects_bad_phone(client):
    response = client.post(SEND_URL, json={"phone": "12"})
    assert response.status_code == 422


def test_patient_logs_in_with_code(client, db, user_factory, code_factory, clock):
    """
    An active patient gets tokens and a profile snapshot.
    """
    patient = user_factory(role=UserRole.PATIENT, phone=PHONE, email="pat@x.ci")
    code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    assert response.status_code == 200
    data = response.json()
    assert data["authType"] == "PATIENT_LOGIN"
    assert data["tokens"]["accessToken"]
    assert data["tokens"]["refreshToken"]
    assert data["tokens"]["expiresIn"] == "7d"
    assert data["user"]["id"] == patient.id
    assert data["user"]["patient"]["city"] == "Abidjan"
    assert data["user"]["patient"]["gender"] == "F"
    assert data["user"]["patient"]["dateOfBirth"] == "1990-05-17"
    assert data["sessionInfo"]["loginMethod"] == "OTP"

    types = sorted(row.token_type.value for row in db.query(UserToken).all())
    assert types == [TokenType.ACCESS.value, TokenType.REFRESH.value]


def test_code_is_single_use(client, user_factory, code_factory, clock):
    user_factory(role=UserRole.PATIENT, phone=PHONE, email="pat@x.ci")
    code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    first = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    second = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    assert first.status_code == 200
    assert second.status_code == 400
    assert second.json()["detail"]["code"] == "OTP_INVALID"


def test_send_then_verify(client, sender):
    client.post(SEND_URL, json={"phone": PHONE})
    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": sender.last_code})
    assert response.status_code == 200
    assert response.json()["authType"] == "VERIFICATION_ONLY"


def test_expired_code(client, user_factory, code_factory, clock):
    user_factory(role=UserRole.PATIENT, phone=PHONE, email="pat@x.ci")
    code_factory(PHONE, "1234", clock.now - timedelta(seconds=1))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "OTP_EXPIRED"


def test_wrong_code(client, code_factory, clock):
    code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "9999"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "OTP_INVALID"


def test_code_must_be_four_digits(client):
    for code in ("123", "12345", "12a4"):
        response = client.post(VERIFY_URL, json={"phone": PHONE, "code": code})
        assert response.status_code == 422


def test_unknown_phone_is_verification_only(client, db, code_factory, clock):
    """
    A new phone is confirmed and pointed at registration, without tokens.
    """
    code_factory("0799999999", "4321", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": "0799999999", "code": "4321"})
    assert response.status_code == 200
    data = response.json()
    assert data["authType"] == "VERIFICATION_ONLY"
    assert data["userExists"] is False
    assert data["isValidated"] is True
    assert data["userInfo"] is None
    assert "tokens" not in data
    assert any("register/patient" in step for step in data["nextSteps"])
    assert data["validationInfo"]["validUntil"] > data["validationInfo"]["validatedAt"]
    assert db.query(UserToken).count() == 0


def test_suspended_patient_gets_no_tokens(client, db, user_factory, code_factory, clock):
    user_factory(role=UserRole.PATIENT, phone=PHONE, email="pat@x.ci", status=AccountStatus.SUSPENDED)
    code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "ACCOUNT_SUSPENDED"
    assert db.query(UserToken).count() == 0


def test_staff_phone_is_verification_only(client, db, user_factory, code_factory, clock):
    """
    Doctors and admins confirm their phone but must use the password login.
    """
    user_factory(role=UserRole.DOCTOR, phone=PHONE, email="doc@x.ci", password="pw",
                 validation_status=ValidationStatus.PENDING)
    code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    assert response.status_code == 200
    data = response.json()
    assert data["authType"] == "VERIFICATION_ONLY"
    assert data["userExists"] is True
    assert data["userInfo"]["role"] == "DOCTOR"
    assert any("/api/v1/auth/login" in step for step in data["nextSteps"])
    assert "tokens" not in data
    assert db.query(UserToken).count() == 0


def test_send_rejects_non_ascii_digits(client, db):
    """
    Digits from other scripts would normalize to an empty phone.
    """
    for phone in ("٠٧٠٠٠٠٠٠٠٠", "१२३४५६७८", "07²00000000"):
        response = client.post(SEND_URL, json={"phone": phone})
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "VALIDATION_ERROR"
    assert db.query(OneTimeCode).count() == 0


def test_verify_rejects_non_ascii_digits(client):
    response = client.post(VERIFY_URL, json={"phone": "٠٧٠٠٠٠٠٠٠٠", "code": "1234"})
    assert response.status_code == 422


def test_patient_login_survives_database_outage_while_recording(
    client, db, user_factory, code_factory, clock, outage_ledger, monkeypatch
):
    """
    Losing the database during the token write leaves the login response intact.
    """
    patient = user_factory(role=UserRole.PATIENT, phone=PHONE, email="pat@x.ci")
    record = code_factory(PHONE, "1234", clock.now + timedelta(minutes=5))

    response = client.post(VERIFY_URL, json={"phone": PHONE, "code": "1234"})
    monkeypatch.undo()

    assert response.status_code == 200
    data = response.json()
    assert data["authType"] == "PATIENT_LOGIN"
    assert data["user"]["id"] == patient.id
    assert data["user"]["patient"]["city"] == "Abidjan"
    assert data["tokens"]["accessToken"]
    assert data["tokens"]["refreshToken"]
    assert db.query(UserToken).count() == 0
    db.refresh(record)
    assert record.consumed is True
