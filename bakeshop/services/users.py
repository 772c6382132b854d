from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from bakeshop.auth import hash_password, normalize_email, validate_email, validate_password
from bakeshop.db import q, q1, transaction, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, dump_list, iso_now, load_list

logger = logging.getLogger(__name__)

ROLES = ("admin", "staff")
USER_STATUSES = ("active", "inactive")

PERMISSION_MODULES = (
    "dashboard",
    "products",
    "categories",
    "sizes",
    "stock",
    "suppliers",
    "damaged_goods",
    "orders",
    "payments",
    "promotions",
    "announcements",
    "users",
    "reports",
)
PERMISSION_ACTIONS = ("view", "create", "edit", "delete")

ALL_PERMISSIONS = tuple(f"{m}.{a}" for m in PERMISSION_MODULES for a in PERMISSION_ACTIONS)


def _user_dict(r) -> dict[str, Any]:
    d = dict(r)
    d.pop("password_hash", None)
    d["permissions"] = load_list(d.get("permissions"))
    return d


def list_users(conn) -> list[dict[str, Any]]:
    return [_user_dict(r) for r in q(conn, "SELECT * FROM users ORDER BY email")]


def get_user(conn, user_id: int) -> dict[str, Any]:
    r = q1(conn, "SELECT * FROM users WHERE id=?", (int(user_id),))
    if r is None:
        raise NotFoundError("User not found.")
    return _user_dict(r)


def _clean_permissions(permissions: Iterable[str]) -> list[str]:
    perms = []
    for p in permissions:
        p = str(p).strip()
        if p not in ALL_PERMISSIONS:
            raise ValidationError(f"Unknown permission: {p}")
        if p not in perms:
            perms.append(p)
    # Keep catalog order so snapshots compare cleanly
    return [p for p in ALL_PERMISSIONS if p in perms]


def _check_role_status(role: str, status: str) -> None:
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
    if status not in USER_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(USER_STATUSES)}.")


def log_activity(
    conn,
    *,
    actor: str,
    action: str,
    detail: str = "",
    permissions: Optional[Iterable[str]] = None,
    commit: bool = True,
) -> int:
    return x(
        conn,
        """
        INSERT INTO activity_log (ts, actor, action, detail, permissions_snapshot)
        VALUES (?, ?, ?, ?, ?)
        """,
        (iso_now(), actor, action, detail, json.dumps(list(permissions)) if permissions is not None else None),
        commit=commit,
    )


def list_activity(conn, *, limit: int = 100):
    return q(conn, "SELECT * FROM activity_log ORDER BY id DESC LIMIT ?", (int(limit),))


def create_user(
    conn,
    *,
    email: str,
    password: str,
    name: str = "",
    role: str = "staff",
    status: str = "active",
    permissions: Iterable[str] = (),
    actor: str = "system",
) -> int:
    email = normalize_email(email)
    problems = [p for p in (validate_email(email), validate_password(password)) if p]
    if problems:
        raise ValidationError(" ".join(problems))
    _check_role_status(role, status)
    if q1(conn, "SELECT id FROM users WHERE email=?", (email,)) is not None:
        raise ValidationError(f"An account for {email} already exists.")

    # Admins are written with the whole catalog at creation time.
    perms = list(ALL_PERMISSIONS) if role == "admin" else _clean_permissions(permissions)
    now = iso_now()

    with transaction(conn):
        uid = x(
            conn,
            """
            INSERT INTO users (email, name, password_hash, role, status, permissions, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (email, clean_text(name), hash_password(password), role, status, dump_list(perms), now, now),
            commit=False,
        )
        log_activity(
            conn,
            actor=actor,
            action="Created user",
            detail=f"{email} ({role})",
            permissions=perms,
            commit=False,
        )
    logger.info("User created: %s role=%s by %s", email, role, actor)
    return uid


def update_user(
    conn,
    user_id: int,
    *,
    name: str,
    role: str,
    status: str,
    actor: str,
) -> None:
    current = get_user(conn, user_id)
    _check_role_status(role, status)

    perms = current["permissions"]
    if role == "admin" and current["role"] != "admin":
        perms = list(ALL_PERMISSIONS)

    with transaction(conn):
        x(
            conn,
            "UPDATE users SET name=?, role=?, status=?, permissions=?, updated_at=? WHERE id=?",
            (clean_text(name), role, status, dump_list(perms), iso_now(), int(user_id)),
            commit=False,
        )
        log_activity(
            conn,
            actor=actor,
            action="Updated user",
            detail=f"{current['email']}: role={role}, status={status}",
            permissions=perms,
            commit=False,
        )
    logger.info("User updated: %s by %s", current["email"], actor)


def set_permissions(conn, user_id: int, permissions: Iterable[str], *, actor: str) -> list[str]:
    current = get_user(conn, user_id)
    if current["role"] == "admin":
        raise ValidationError("Admins hold every permission; change the role to edit permissions.")
    perms = _clean_permissions(permissions)

    with transaction(conn):
        x(
            conn,
            "UPDATE users SET permissions=?, updated_at=? WHERE id=?",
            (dump_list(perms), iso_now(), int(user_id)),
            commit=False,
        )
        log_activity(
            conn,
            actor=actor,
            action="Changed permissions",
            detail=f"{current['email']}: {len(perms)} permission(s)",
            permissions=perms,
            commit=False,
        )
    logger.info("Permissions changed for %s by %s", current["email"], actor)
    return perms


def reset_password(conn, user_id: int, new_password: str, *, actor: str) -> None:
    current = get_user(conn, user_id)
    problem = validate_password(new_password)
    if problem:
        raise ValidationError(problem)
    with transaction(conn):
        x(
            conn,
            "UPDATE users SET password_hash=?, updated_at=? WHERE id=?",
            (hash_password(new_password), iso_now(), int(user_id)),
            commit=False,
        )
        log_activity(
            conn,
            actor=actor,
            action="Reset password",
            detail=current["email"],
            permissions=current["permissions"],
            commit=False,
        )


def bootstrap_admin(conn, email: Optional[str], password: Optional[str]) -> Optional[int]:
    """Creates the first admin account; a no-op once any user exists."""
    r = q1(conn, "SELECT COUNT(1) AS n FROM users")
    if int(r["n"]) > 0 or not email or not password:
        return None
    return create_user(conn, email=email, password=password, name="Administrator", role="admin", actor="bootstrap")
