from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import bcrypt

from bakeshop.db import q, q1, x
from bakeshop.errors import AuthError
from bakeshop.utils import iso_now, load_list

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,4}$")
MIN_PASSWORD_LENGTH = 8
BCRYPT_ROUNDS = 12


@dataclass(frozen=True)
class Session:
    user_id: int
    email: str
    name: str
    role: str
    permissions: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def normalize_email(email: Optional[str]) -> str:
    return str(email or "").strip().lower()


def validate_email(email: Optional[str]) -> str:
    """Returns an error message, or "" when the address is acceptable."""
    if not email:
        return "Email is required"
    if not EMAIL_PATTERN.match(email):
        return "Please enter a valid email address"
    return ""


def validate_password(password: Optional[str]) -> str:
    if not password:
        return "Password is required"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if len(password.encode("utf-8")) > 72:
        return "Password must be at most 72 bytes"
    return ""


def has_permission(session: Optional[Session], permission: str) -> bool:
    if session is None:
        return False
    return session.is_admin or permission in session.permissions


def _session_from_row(r) -> Session:
    return Session(
        user_id=int(r["id"]),
        email=str(r["email"]),
        name=str(r["name"] or r["email"]),
        role=str(r["role"]),
        permissions=load_list(r["permissions"]),
    )


def sign_in(conn, email: str, password: str) -> Session:
    email = normalize_email(email)
    problem = validate_email(email) or validate_password(password)
    if problem:
        raise AuthError(problem)

    r = q1(conn, "SELECT * FROM users WHERE email=?", (email,))
    if r is None:
        logger.info("Login failed: unknown user %s", email)
        raise AuthError("User not found")
    if not verify_password(password, r["password_hash"]):
        logger.info("Login failed: wrong password for %s", email)
        raise AuthError("Invalid password")
    if r["status"] != "active":
        raise AuthError("This account is inactive")

    x(conn, "INSERT INTO login_logs (ts, user_id) VALUES (?, ?)", (iso_now(), int(r["id"])))
    logger.info("Login successful: %s", email)
    return _session_from_row(r)


def refresh_session(conn, session: Session) -> Optional[Session]:
    """Re-reads the account; None when it was removed or deactivated."""
    r = q1(conn, "SELECT * FROM users WHERE id=?", (session.user_id,))
    if r is None or r["status"] != "active":
        return None
    return _session_from_row(r)


def list_login_logs(conn, user_id: int, *, limit: int = 20):
    return q(conn, "SELECT ts FROM login_logs WHERE user_id=? ORDER BY id DESC LIMIT ?", (int(user_id), int(limit)))


def update_profile(conn, session: Session, *, name: str) -> None:
    x(conn, "UPDATE users SET name=?, updated_at=? WHERE id=?", (name.strip() or None, iso_now(), session.user_id))


def _reauthenticate(conn, session: Session, current_password: str) -> None:
    r = q1(conn, "SELECT password_hash FROM users WHERE id=?", (session.user_id,))
    if r is None or not verify_password(current_password or "", r["password_hash"]):
        raise AuthError("Current password is incorrect")


def change_password(conn, session: Session, *, current_password: str, new_password: str) -> None:
    _reauthenticate(conn, session, current_password)
    problem = validate_password(new_password)
    if problem:
        raise AuthError(problem)
    x(
        conn,
        "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
        (hash_password(new_password), iso_now(), session.user_id),
    )
    logger.info("Password changed: %s", session.email)


def change_email(conn, session: Session, *, current_password: str, new_email: str) -> str:
    _reauthenticate(conn, session, current_password)
    new_email = normalize_email(new_email)
    problem = validate_email(new_email)
    if problem:
        raise AuthError(problem)
    clash = q1(conn, "SELECT id FROM users WHERE email=? AND id<>?", (new_email, session.user_id))
    if clash is not None:
        raise AuthError("That email is already in use")
    x(conn, "UPDATE users SET email=?, updated_at=? WHERE id=?", (new_email, iso_now(), session.user_id))
    logger.info("Email changed: %s -> %s", session.email, new_email)
    return new_email
