from __future__ import annotations

from datetime import timedelta

import jwt
import pytest
from conftest import SECRET

from keyhub.admins import AdminAuth, hash_password, verify_password
from keyhub.database import Database
from keyhub.errors import (
    Conflict,
    EmailTaken,
    InvalidCredentials,
    Unauthorized,
    ValidationError,
)

EMAIL = "admin@example.com"
PASSWORD = "hunter22"


def test_register_stores_only_a_hash(auth: AdminAuth, database: Database) -> None:
    admin = auth.register(EMAIL, PASSWORD, PASSWORD)

    assert admin.email == EMAIL
    with database.connect() as conn:
        row = conn.execute("SELECT password_hash FROM admins WHERE id = ?", (admin.id,)).fetchone()
    assert row["password_hash"] != PASSWORD
    assert PASSWORD not in row["password_hash"]
    assert verify_password(PASSWORD, row["password_hash"])


def test_register_rejects_short_password(auth: AdminAuth) -> None:
    with pytest.raises(ValidationError) as excinfo:
        auth.register(EMAIL, "12345", "12345")
    assert excinfo.value.fields == ["password"]


def test_register_rejects_mismatched_confirmation(auth: AdminAuth) -> None:
    with pytest.raises(ValidationError) as excinfo:
        auth.register(EMAIL, PASSWORD, PASSWORD + "!")
    assert excinfo.value.fields == ["confirmPassword"]


def test_register_reports_missing_fields(auth: AdminAuth) -> None:
    with pytest.raises(ValidationError) as excinfo:
        auth.register("", "", "")
    assert excinfo.value.fields == ["email", "password", "confirmPassword"]


def test_register_twice_with_same_email_conflicts(auth: AdminAuth) -> None:
    auth.register(EMAIL, PASSWORD, PASSWORD)
    with pytest.raises(EmailTaken) as excinfo:
        auth.register(EMAIL, "another-password", "another-password")
    assert isinstance(excinfo.value, Conflict)
    assert len(auth.list_all()) == 1


def test_login_failures_are_indistinguishable(auth: AdminAuth) -> None:
    auth.register(EMAIL, PASSWORD, PASSWORD)

    with pytest.raises(InvalidCredentials) as wrong_password:
        auth.login(EMAIL, "not-the-password")
    with pytest.raises(InvalidCredentials) as unknown_email:
        auth.login("ghost@example.com", PASSWORD)

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.status_code == unknown_email.value.status_code
    assert isinstance(wrong_password.value, Unauthorized)


def test_login_issues_one_hour_token(auth: AdminAuth, clock) -> None:
    admin = auth.register(EMAIL, PASSWORD, PASSWORD)

    session = auth.login(EMAIL, PASSWORD)

    assert session.admin.id == admin.id
    assert session.admin.issued_at == clock.now
    assert session.expires_at == clock.now + timedelta(hours=1)
    identity = auth.verify(session.token)
    assert identity.id == admin.id
    assert identity.email == EMAIL


def test_token_validity_window(auth: AdminAuth, clock) -> None:
    auth.register(EMAIL, PASSWORD, PASSWORD)
    session = auth.login(EMAIL, PASSWORD)

    clock.advance(minutes=59)
    assert auth.verify(session.token).email == EMAIL

    clock.advance(minutes=1)
    with pytest.raises(Unauthorized):
        auth.verify(session.token)

    clock.advance(minutes=1)
    with pytest.raises(Unauthorized):
        auth.verify(session.token)


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
def test_verify_rejects_missing_or_malformed_tokens(auth: AdminAuth, token) -> None:
    with pytest.raises(Unauthorized):
        auth.verify(token)


def test_verify_rejects_foreign_signature(auth: AdminAuth, database: Database, clock) -> None:
    auth.register(EMAIL, PASSWORD, PASSWORD)
    other = AdminAuth(database, "a-completely-different-signing-secret", clock=clock)
    forged = other.login(EMAIL, PASSWORD)

    with pytest.raises(Unauthorized):
        auth.verify(forged.token)


def test_verify_rejects_tokens_without_required_claims(auth: AdminAuth) -> None:
    token = jwt.encode({"email": EMAIL}, SECRET, algorithm="HS256")
    with pytest.raises(Unauthorized):
        auth.verify(token)


def test_token_survives_account_removal_until_expiry(auth: AdminAuth, database: Database) -> None:
    auth.register(EMAIL, PASSWORD, PASSWORD)
    session = auth.login(EMAIL, PASSWORD)

    with database.connect() as conn:
        conn.execute("DELETE FROM admins WHERE email = ?", (EMAIL,))

    assert auth.verify(session.token).email == EMAIL


def test_auth_rejects_empty_signing_secret(database: Database) -> None:
    with pytest.raises(ValueError):
        AdminAuth(database, "")


def test_hash_password_uses_per_record_salt() -> None:
    assert hash_password(PASSWORD) != hash_password(PASSWORD)
    assert not verify_password(PASSWORD, "not-a-hash")


def test_accounts_are_managed_without_signing_secret(database: Database) -> None:
    accounts = AdminAuth(database)
    admin = accounts.register(EMAIL, PASSWORD, PASSWORD)

    assert [account.email for account in accounts.list_all()] == [EMAIL]
    with pytest.raises(RuntimeError):
        accounts.issue_token(admin)
