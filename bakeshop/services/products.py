from __future__ import annotations

import logging
from typing import Any, Optional

from bakeshop.db import q, q1, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, iso_now

logger = logging.getLogger(__name__)


def list_products(conn):
    return q(
        conn,
        """
        SELECT p.*, c.name AS category_name
        FROM products p
        LEFT JOIN categories c ON c.id = p.category_id
        ORDER BY p.name
        """,
    )


def get_product(conn, product_id: int):
    r = q1(conn, "SELECT * FROM products WHERE id=?", (int(product_id),))
    if r is None:
        raise NotFoundError("Product not found.")
    return r


def _validate(conn, name: str, price: Any, category_id: Optional[int]) -> tuple[str, float]:
    name = clean_text(name)
    if not name:
        raise ValidationError("Product name is required.")
    try:
        price_f = float(price or 0)
    except (TypeError, ValueError):
        raise ValidationError("Price must be a number.")
    if price_f < 0:
        raise ValidationError("Price cannot be negative.")
    if category_id is not None:
        if q1(conn, "SELECT id FROM categories WHERE id=?", (int(category_id),)) is None:
            raise NotFoundError("Category not found.")
    return name, price_f


def create_product(
    conn,
    *,
    name: str,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
    price: float = 0.0,
    unit: Optional[str] = None,
    image=None,
    image_name: str = "product",
    images=None,
) -> int:
    """
    `image` (bytes or file) is uploaded through `images` first; a failed
    upload aborts before anything is written.
    """
    name, price_f = _validate(conn, name, price, category_id)
    image_url = images.upload(image, image_name) if image is not None else None

    now = iso_now()
    pid = x(
        conn,
        """
        INSERT INTO products (name, description, category_id, price, unit, image_url, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            name,
            clean_text(description),
            int(category_id) if category_id is not None else None,
            price_f,
            clean_text(unit),
            image_url,
            now,
            now,
        ),
    )
    logger.info("Product created: %s (id=%s)", name, pid)
    return pid


def update_product(
    conn,
    product_id: int,
    *,
    name: str,
    description: Optional[str] = None,
    category_id: Optional[int] = None,
    price: float = 0.0,
    unit: Optional[str] = None,
    image=None,
    image_name: str = "product",
    images=None,
) -> None:
    current = get_product(conn, product_id)
    name, price_f = _validate(conn, name, price, category_id)

    image_url = current["image_url"]
    if image is not None:
        image_url = images.replace(current["image_url"], image, image_name)

    x(
        conn,
        """
        UPDATE products
        SET name=?, description=?, category_id=?, price=?, unit=?, image_url=?, updated_at=?
        WHERE id=?
        """,
        (
            name,
            clean_text(description),
            int(category_id) if category_id is not None else None,
            price_f,
            clean_text(unit),
            image_url,
            iso_now(),
            int(product_id),
        ),
    )
    logger.info("Product updated: id=%s", product_id)


def delete_product(conn, product_id: int, *, images=None) -> None:
    product = get_product(conn, product_id)
    x(conn, "DELETE FROM products WHERE id=?", (int(product_id),))
    if product["image_url"] and images is not None:
        images.delete(product["image_url"])
    logger.info("Product deleted: %s (id=%s)", product["name"], product_id)
