from __future__ import annotations

import logging
from typing import Any, Optional

from bakeshop.db import q, q1, transaction, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, dump_list, load_list

logger = logging.getLogger(__name__)

SHAPES = ("Round", "Rectangle")


def _size_dict(r) -> dict[str, Any]:
    d = dict(r)
    d["available_products"] = load_list(d.get("available_products"))
    return d


def list_sizes(conn) -> list[dict[str, Any]]:
    return [_size_dict(r) for r in q(conn, "SELECT * FROM sizes ORDER BY price, name")]


def get_size(conn, size_id: int) -> dict[str, Any]:
    r = q1(conn, "SELECT * FROM sizes WHERE id=?", (int(size_id),))
    if r is None:
        raise NotFoundError("Size not found.")
    return _size_dict(r)


def _validate_size(
    name: str,
    max_varieties: int,
    price: float,
    slices: int,
    shape: Optional[str],
) -> str:
    name = clean_text(name)
    if not name:
        raise ValidationError("Size name is required.")
    if int(max_varieties) < 1:
        raise ValidationError("Max varieties must be at least 1.")
    if float(price) < 0:
        raise ValidationError("Price cannot be negative.")
    if int(slices) < 0:
        raise ValidationError("Slices cannot be negative.")
    if shape and shape not in SHAPES:
        raise ValidationError(f"Shape must be one of: {', '.join(SHAPES)}.")
    return name


def create_size(
    conn,
    *,
    name: str,
    max_varieties: int,
    price: float,
    dimensions: str = "",
    slices: int = 0,
    shape: Optional[str] = None,
    available_products: Optional[list[str]] = None,
) -> int:
    name = _validate_size(name, max_varieties, price, slices, shape)
    if q1(conn, "SELECT id FROM sizes WHERE name=?", (name,)) is not None:
        raise ValidationError(f"Size '{name}' already exists.")

    size_id = x(
        conn,
        """
        INSERT INTO sizes (name, dimensions, slices, shape, max_varieties, price, available_products)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            name,
            clean_text(dimensions),
            int(slices),
            shape or None,
            int(max_varieties),
            float(price),
            dump_list(available_products or []),
        ),
    )
    logger.info("Size created: %s (id=%s)", name, size_id)
    return size_id


def update_size(
    conn,
    size_id: int,
    *,
    name: str,
    max_varieties: int,
    price: float,
    dimensions: str = "",
    slices: int = 0,
    shape: Optional[str] = None,
    available_products: Optional[list[str]] = None,
) -> None:
    get_size(conn, size_id)
    name = _validate_size(name, max_varieties, price, slices, shape)
    clash = q1(conn, "SELECT id FROM sizes WHERE name=? AND id<>?", (name, int(size_id)))
    if clash is not None:
        raise ValidationError(f"Size '{name}' already exists.")

    with transaction(conn):
        x(
            conn,
            """
            UPDATE sizes
            SET name=?, dimensions=?, slices=?, shape=?, max_varieties=?, price=?, available_products=?
            WHERE id=?
            """,
            (
                name,
                clean_text(dimensions),
                int(slices),
                shape or None,
                int(max_varieties),
                float(price),
                dump_list(available_products or []),
                int(size_id),
            ),
            commit=False,
        )
        # Batches carry the size name for display
        x(
            conn,
            "UPDATE stock_batches SET size_name=? WHERE size_id=?",
            (name, int(size_id)),
            commit=False,
        )
    logger.info("Size updated: %s (id=%s)", name, size_id)


def delete_size(conn, size_id: int) -> None:
    size = get_size(conn, size_id)
    used = q1(conn, "SELECT COUNT(1) AS n FROM stock_batches WHERE size_id=?", (int(size_id),))
    if used and int(used["n"]) > 0:
        raise ValidationError(
            f"Cannot delete size '{size['name']}': {int(used['n'])} stock batch(es) still use it."
        )
    x(conn, "DELETE FROM sizes WHERE id=?", (int(size_id),))
    logger.info("Size deleted: %s (id=%s)", size["name"], size_id)


# ---- varieties (menu items) ----

def list_varieties(conn, *, available_only: bool = False):
    if available_only:
        return q(conn, "SELECT * FROM varieties WHERE is_available=1 ORDER BY name")
    return q(conn, "SELECT * FROM varieties ORDER BY name")


def create_variety(conn, *, name: str, is_available: bool = True) -> int:
    name = clean_text(name)
    if not name:
        raise ValidationError("Variety name is required.")
    if q1(conn, "SELECT id FROM varieties WHERE name=?", (name,)) is not None:
        raise ValidationError(f"Variety '{name}' already exists.")
    vid = x(conn, "INSERT INTO varieties (name, is_available) VALUES (?, ?)", (name, int(bool(is_available))))
    logger.info("Variety created: %s (id=%s)", name, vid)
    return vid


def update_variety(conn, variety_id: int, *, name: str, is_available: bool) -> None:
    name = clean_text(name)
    if not name:
        raise ValidationError("Variety name is required.")
    if q1(conn, "SELECT id FROM varieties WHERE id=?", (int(variety_id),)) is None:
        raise NotFoundError("Variety not found.")
    x(
        conn,
        "UPDATE varieties SET name=?, is_available=? WHERE id=?",
        (name, int(bool(is_available)), int(variety_id)),
    )


def delete_variety(conn, variety_id: int) -> None:
    # Stock batches keep the variety by name; nothing cascades.
    x(conn, "DELETE FROM varieties WHERE id=?", (int(variety_id),))
