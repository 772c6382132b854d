from __future__ import annotations

import logging
from typing import Any, Optional

from bakeshop.db import q, q1, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, iso_now, iso_today, to_date

logger = logging.getLogger(__name__)


def list_damaged_goods(conn):
    return q(conn, "SELECT * FROM damaged_goods ORDER BY date_reported DESC, id DESC")


def _validate(product_name: str, quantity: Any, date_reported: Any) -> tuple[str, int, str]:
    product_name = clean_text(product_name)
    if not product_name:
        raise ValidationError("Product name is required.")
    try:
        qty = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number.")
    if qty <= 0:
        raise ValidationError("Quantity must be > 0.")
    reported = to_date(date_reported)
    return product_name, qty, reported.isoformat() if reported else iso_today()


def record_damaged_good(
    conn,
    *,
    product_name: str,
    quantity: int,
    reason: Optional[str] = None,
    date_reported: Any = None,
) -> int:
    product_name, qty, reported = _validate(product_name, quantity, date_reported)
    now = iso_now()
    did = x(
        conn,
        """
        INSERT INTO damaged_goods (product_name, quantity, reason, date_reported, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (product_name, qty, clean_text(reason), reported, now, now),
    )
    logger.info("Damaged goods recorded: %s x%s (id=%s)", product_name, qty, did)
    return did


def update_damaged_good(
    conn,
    item_id: int,
    *,
    product_name: str,
    quantity: int,
    reason: Optional[str] = None,
    date_reported: Any = None,
) -> None:
    if q1(conn, "SELECT id FROM damaged_goods WHERE id=?", (int(item_id),)) is None:
        raise NotFoundError("Damaged goods record not found.")
    product_name, qty, reported = _validate(product_name, quantity, date_reported)
    x(
        conn,
        """
        UPDATE damaged_goods
        SET product_name=?, quantity=?, reason=?, date_reported=?, updated_at=?
        WHERE id=?
        """,
        (product_name, qty, clean_text(reason), reported, iso_now(), int(item_id)),
    )


def delete_damaged_good(conn, item_id: int) -> None:
    x(conn, "DELETE FROM damaged_goods WHERE id=?", (int(item_id),))
