from __future__ import annotations

import logging

import pytest

import auth
import db
from errors import AuthError
from models import Role

ADMIN_EMAIL = "admin@gym.local"
ADMIN_PASSWORD = "admin12345"


def test_hash_and_verify_roundtrip():
    hashed = auth.hash_password("s3cret-pass")
    assert hashed.startswith("$2")
    assert auth.verify_password("s3cret-pass", hashed)
    assert not auth.verify_password("wrong-pass", hashed)


def test_long_passwords_are_truncated_to_72_bytes():
    hashed = auth.hash_password("x" * 100)
    assert auth.verify_password("x" * 72 + "different tail", hashed)


def test_default_admin_is_seeded_with_forced_password_change(temp_db):
    profile = auth.login(ADMIN_EMAIL, ADMIN_PASSWORD)
    assert profile is not None
    assert profile.role == Role.ADMIN
    assert db.is_force_password_change()

    auth.change_password(profile.id, "new-admin-pass")
    assert not db.is_force_password_change()
    assert auth.login(ADMIN_EMAIL, "new-admin-pass") is not None
    assert auth.login(ADMIN_EMAIL, ADMIN_PASSWORD) is None


def test_member_password_change_keeps_admin_forced_change(temp_db):
    member = auth.sign_up("m@example.com", "password123", "M")
    auth.change_password(member.id, "member-new-pass")

    assert auth.login("m@example.com", "member-new-pass") is not None
    assert db.is_force_password_change()


def test_init_db_is_idempotent(temp_db):
    db.init_db(ADMIN_EMAIL, auth.hash_password(ADMIN_PASSWORD))
    admins = db.fetch_all("SELECT id FROM profiles WHERE role = 'ADMIN'")
    assert len(admins) == 1


def test_sign_up_creates_inactive_member_profile(temp_db):
    profile = auth.sign_up("Rina@Example.com", "password123", "Rina", "0812")
    assert profile.role == Role.USER
    assert profile.is_active is False
    assert profile.expired_at is None
    assert profile.member_type == "Reguler"

    # email lookup is case-insensitive
    assert auth.login("rina@example.com", "password123").id == profile.id


@pytest.mark.parametrize(
    "email,password,name",
    [
        ("not-an-email", "password123", "X"),
        ("x@example.com", "short", "X"),
        ("x@example.com", "password123", "  "),
    ],
)
def test_sign_up_validation(temp_db, email, password, name):
    with pytest.raises(AuthError):
        auth.sign_up(email, password, name)


def test_sign_up_rejects_duplicate_email(temp_db):
    auth.sign_up("dup@example.com", "password123", "One")
    with pytest.raises(AuthError, match="already exists"):
        auth.sign_up("DUP@example.com", "password123", "Two")


def test_login_unknown_or_wrong_password(temp_db):
    auth.sign_up("m@example.com", "password123", "M")
    assert auth.login("nobody@example.com", "password123") is None
    assert auth.login("m@example.com", "wrong-password") is None


def test_change_password_requires_min_length(temp_db):
    profile = auth.sign_up("m@example.com", "password123", "M")
    with pytest.raises(AuthError):
        auth.change_password(profile.id, "short")


def test_password_reset_flow(temp_db):
    auth.sign_up("reset@example.com", "password123", "R")

    assert auth.request_password_reset("unknown@example.com") is None
    token = auth.request_password_reset("reset@example.com")
    assert token

    auth.reset_password(token, "brand-new-pass")
    assert auth.login("reset@example.com", "brand-new-pass") is not None

    # tokens are single use
    with pytest.raises(AuthError):
        auth.reset_password(token, "another-pass-1")


def test_reset_link_stays_out_of_info_logs(temp_db, caplog):
    auth.sign_up("quiet@example.com", "password123", "Q")
    with caplog.at_level(logging.INFO, logger="auth"):
        token = auth.request_password_reset("quiet@example.com")
    assert "reset requested" in caplog.text
    assert token not in caplog.text


def test_reset_with_bogus_token(temp_db):
    with pytest.raises(AuthError):
        auth.reset_password("bogus", "brand-new-pass")


def test_delete_account_cascades_to_profile(temp_db):
    profile = auth.sign_up("gone@example.com", "password123", "Gone")
    assert auth.delete_account(profile.id) is True
    assert db.fetch_one("SELECT id FROM profiles WHERE id = ?", (profile.id,)) is None
    assert auth.delete_account(profile.id) is False
