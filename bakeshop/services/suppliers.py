from __future__ import annotations

import logging
import re
from typing import Optional

from bakeshop.db import q, q1, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def list_suppliers(conn):
    return q(conn, "SELECT * FROM suppliers ORDER BY name")


def _clean(name, email):
    name = clean_text(name)
    if not name:
        raise ValidationError("Supplier name is required.")
    email = clean_text(email)
    if email and not _EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address.")
    return name, email


def create_supplier(
    conn,
    *,
    name: str,
    contact: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    notes: Optional[str] = None,
) -> int:
    name, email = _clean(name, email)
    sid = x(
        conn,
        "INSERT INTO suppliers (name, contact, email, address, notes) VALUES (?, ?, ?, ?, ?)",
        (name, clean_text(contact), email, clean_text(address), clean_text(notes)),
    )
    logger.info("Supplier created: %s (id=%s)", name, sid)
    return sid


def update_supplier(
    conn,
    supplier_id: int,
    *,
    name: str,
    contact: Optional[str] = None,
    email: Optional[str] = None,
    address: Optional[str] = None,
    notes: Optional[str] = None,
) -> None:
    if q1(conn, "SELECT id FROM suppliers WHERE id=?", (int(supplier_id),)) is None:
        raise NotFoundError("Supplier not found.")
    name, email = _clean(name, email)
    x(
        conn,
        "UPDATE suppliers SET name=?, contact=?, email=?, address=?, notes=? WHERE id=?",
        (name, clean_text(contact), email, clean_text(address), clean_text(notes), int(supplier_id)),
    )


def delete_supplier(conn, supplier_id: int) -> None:
    x(conn, "DELETE FROM suppliers WHERE id=?", (int(supplier_id),))
    logger.info("Supplier deleted: id=%s", supplier_id)
