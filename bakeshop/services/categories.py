from __future__ import annotations

import logging
from typing import Optional

from bakeshop.db import q, q1, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text

logger = logging.getLogger(__name__)


def list_categories(conn):
    return q(conn, "SELECT * FROM categories ORDER BY name")


def get_category(conn, category_id: int):
    r = q1(conn, "SELECT * FROM categories WHERE id=?", (int(category_id),))
    if r is None:
        raise NotFoundError("Category not found.")
    return r


def create_category(conn, *, name: str, description: Optional[str] = None) -> int:
    name = clean_text(name)
    if not name:
        raise ValidationError("Category name is required.")
    cid = x(conn, "INSERT INTO categories (name, description) VALUES (?, ?)", (name, clean_text(description)))
    logger.info("Category created: %s (id=%s)", name, cid)
    return cid


def update_category(conn, category_id: int, *, name: str, description: Optional[str] = None) -> None:
    get_category(conn, category_id)
    name = clean_text(name)
    if not name:
        raise ValidationError("Category name is required.")
    x(
        conn,
        "UPDATE categories SET name=?, description=? WHERE id=?",
        (name, clean_text(description), int(category_id)),
    )
    logger.info("Category updated: id=%s", category_id)


def count_products_in_category(conn, category_id: int) -> int:
    r = q1(conn, "SELECT COUNT(1) AS n FROM products WHERE category_id=?", (int(category_id),))
    return int(r["n"]) if r else 0


def delete_category(conn, category_id: int) -> None:
    category = get_category(conn, category_id)
    in_use = count_products_in_category(conn, category_id)
    if in_use:
        raise ValidationError(
            f"Cannot delete category '{category['name']}': {in_use} product(s) still use it."
        )
    x(conn, "DELETE FROM categories WHERE id=?", (int(category_id),))
    logger.info("Category deleted: %s (id=%s)", category["name"], category_id)
