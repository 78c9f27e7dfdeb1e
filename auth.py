"""
auth.py
Identity service: bcrypt hashing, sign-up, login, password change/reset, account removal.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt

import db
from config import settings
from errors import AuthError
from models import DEFAULT_MEMBER_TYPE, Profile, Role
from repository import profile_from_row

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored bcrypt hash.
    """
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def _check_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def get_account_by_email(email: str):
    return db.fetch_one("SELECT * FROM accounts WHERE email = ?", (email.strip(),))


def sign_up(
    email: str,
    password: str,
    name: str,
    phone_number: str | None = None,
    role: Role = Role.USER,
    member_type: str = DEFAULT_MEMBER_TYPE,
) -> Profile:
    """Create an account and its (inactive, no expiration yet) profile."""
    email = email.strip()
    if not email or "@" not in email:
        raise AuthError("A valid email is required.")
    if not name.strip():
        raise AuthError("Name is required.")
    _check_password(password)
    if get_account_by_email(email):
        raise AuthError("An account with this email already exists.")

    account_id = db.new_id()
    now = db.now_iso()
    with db.get_conn() as conn:
        conn.execute(
            "INSERT INTO accounts(id, email, password_hash, created_at) VALUES(?,?,?,?)",
            (account_id, email, hash_password(password), now),
        )
        conn.execute(
            """
            INSERT INTO profiles(id, name, email, phone_number, role, is_active, expired_at,
                                 member_type, created_at, updated_at)
            VALUES(?,?,?,?,?,0,NULL,?,?,?)
            """,
            (account_id, name.strip(), email, (phone_number or "").strip() or None, role.value, member_type, now, now),
        )
    logger.info("account created: %s (%s)", email, role.value)
    return profile_from_row(db.fetch_one("SELECT * FROM profiles WHERE id = ?", (account_id,)))


def login(email: str, password: str) -> Profile | None:
    account = get_account_by_email(email)
    if not account:
        return None
    if not verify_password(password, account["password_hash"]):
        logger.warning("failed login for %s", email)
        return None
    row = db.fetch_one("SELECT * FROM profiles WHERE id = ?", (account["id"],))
    if not row:
        raise AuthError("Could not load the profile for this account.")
    return profile_from_row(row)


def change_password(account_id: str, new_password: str) -> None:
    _check_password(new_password)
    db.execute(
        "UPDATE accounts SET password_hash = ? WHERE id = ?",
        (hash_password(new_password), account_id),
    )
    role = db.fetch_one("SELECT role FROM profiles WHERE id = ?", (account_id,))
    if role and role["role"] == Role.ADMIN.value:
        db.clear_force_password_change()


def request_password_reset(email: str) -> str | None:
    """
    Issue a one-time reset token for `email`. Returns the raw token
    (only its hash is stored), or None when no such account exists.
    """
    account = get_account_by_email(email)
    if not account:
        return None

    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=settings.reset_token_ttl_minutes)
    db.execute(
        "INSERT INTO password_resets(token_hash, account_id, expires_at, used) VALUES(?,?,?,0)",
        (_hash_token(token), account["id"], expires_at.isoformat(timespec="seconds")),
    )
    logger.info("password reset requested for %s", account["email"])
    # the link grants account access; DEBUG only
    logger.debug("password reset link for %s: %s/?reset_token=%s", account["email"], settings.app_url, token)
    return token


def reset_password(token: str, new_password: str) -> None:
    _check_password(new_password)
    row = db.fetch_one(
        "SELECT * FROM password_resets WHERE token_hash = ? AND used = 0",
        (_hash_token(token),),
    )
    if not row or datetime.fromisoformat(row["expires_at"]) < datetime.now(timezone.utc):
        raise AuthError("Reset link is invalid or has expired.")

    with db.get_conn() as conn:
        conn.execute(
            "UPDATE accounts SET password_hash = ? WHERE id = ?",
            (hash_password(new_password), row["account_id"]),
        )
        conn.execute("UPDATE password_resets SET used = 1 WHERE token_hash = ?", (row["token_hash"],))


def delete_account(account_id: str) -> bool:
    """Removes the account; its profile and transactions cascade."""
    deleted = db.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
    if deleted:
        logger.info("account deleted: %s", account_id)
    return bool(deleted)
