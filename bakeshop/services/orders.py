from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from bakeshop.db import q, q1, transaction, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, dump_list, iso_now, load_list

logger = logging.getLogger(__name__)

ORDER_STATUSES = ("Pending", "Processing", "Ready", "Completed", "Cancelled")
PAYMENT_STATUSES = ("Pending", "Paid", "Failed")

GCASH = "gcash"

# Payment-verification buttons -> payment status written
VERIFICATION_ACTIONS = {
    "approve": "Paid",
    "reject": "Failed",
    "reset": "Pending",
}


@dataclass
class OrderItemInput:
    product_size: str
    product_varieties: list[str]
    quantity: int
    price: float


def customer_names(customer: Optional[Mapping[str, Any]]) -> tuple[str, str]:
    """
    (first, last) for display. A single full name is split on the first
    space; stored first/last names are used otherwise.
    """
    if customer is None:
        return "N/A", "N/A"
    full = clean_text(customer["name"])
    if full:
        first, _, last = full.partition(" ")
        return first, last.strip() or "N/A"
    return (clean_text(customer["first_name"]) or "N/A", clean_text(customer["last_name"]) or "N/A")


def _items_by_order(conn, order_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
    out: dict[str, list[dict[str, Any]]] = {oid: [] for oid in order_ids}
    if not order_ids:
        return out
    marks = ",".join("?" for _ in order_ids)
    for r in q(conn, f"SELECT * FROM order_items WHERE order_id IN ({marks}) ORDER BY id", order_ids):
        d = dict(r)
        d["product_varieties"] = load_list(d["product_varieties"])
        out[d["order_id"]].append(d)
    return out


def _hydrate(conn, rows) -> list[dict[str, Any]]:
    orders = [dict(r) for r in rows]
    items = _items_by_order(conn, [o["id"] for o in orders])
    customers = {r["id"]: r for r in q(conn, "SELECT * FROM customers")}
    for o in orders:
        first, last = customer_names(customers.get(o["user_id"]))
        o["customer_first_name"] = first
        o["customer_last_name"] = last
        o["items"] = items.get(o["id"], [])
    return orders


def list_orders(conn) -> list[dict[str, Any]]:
    """All orders with items and customer names, newest first."""
    return _hydrate(conn, q(conn, "SELECT * FROM orders ORDER BY created_at DESC, id DESC"))


def get_order(conn, order_id: str) -> dict[str, Any]:
    r = q1(conn, "SELECT * FROM orders WHERE id=?", (str(order_id),))
    if r is None:
        raise NotFoundError(f"Order {order_id} not found.")
    return _hydrate(conn, [r])[0]


def filter_orders(
    orders: Iterable[Mapping[str, Any]],
    *,
    status: str = "all",
    payment_status: str = "all",
    search: str = "",
) -> list[Mapping[str, Any]]:
    term = (search or "").strip().lower()
    out = []
    for o in orders:
        if status != "all" and o["status"] != status:
            continue
        if payment_status != "all" and o["payment_status"] != payment_status:
            continue
        if term and term not in str(o["id"]).lower() and term not in str(o["user_id"]).lower():
            continue
        out.append(o)
    return out


def pending_verification_orders(orders: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    return [o for o in orders if str(o.get("payment_method") or "").strip().lower() == GCASH]


def create_order(
    conn,
    *,
    user_id: str,
    items: list[OrderItemInput],
    payment_method: str = "Cash",
    pickup_date: Optional[str] = None,
    pickup_time: Optional[str] = None,
    gcash_reference: Optional[str] = None,
    order_id: Optional[str] = None,
    created_at: Optional[str] = None,
) -> str:
    if not items:
        raise ValidationError("An order needs at least one item.")
    for it in items:
        if int(it.quantity) <= 0:
            raise ValidationError("Item quantity must be > 0.")

    order_id = order_id or uuid.uuid4().hex[:20]
    created_at = created_at or iso_now()
    total = round(sum(int(it.quantity) * float(it.price) for it in items), 2)

    with transaction(conn):
        x(
            conn,
            """
            INSERT INTO orders (
                id, user_id, pickup_date, pickup_time, status, total_amount,
                payment_method, payment_status, gcash_reference, created_at, updated_at
            ) VALUES (?, ?, ?, ?, 'Pending', ?, ?, 'Pending', ?, ?, ?)
            """,
            (
                order_id, str(user_id), pickup_date, pickup_time, total,
                payment_method, clean_text(gcash_reference), created_at, created_at,
            ),
            commit=False,
        )
        for it in items:
            x(
                conn,
                """
                INSERT INTO order_items (order_id, product_size, product_varieties, quantity, price)
                VALUES (?, ?, ?, ?, ?)
                """,
                (order_id, it.product_size, dump_list(it.product_varieties), int(it.quantity), float(it.price)),
                commit=False,
            )
    return order_id


def update_order_status(conn, order_id: str, new_status: str) -> None:
    # Any status may follow any other.
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {new_status}")
    get_order(conn, order_id)
    x(conn, "UPDATE orders SET status=?, updated_at=? WHERE id=?", (new_status, iso_now(), str(order_id)))
    logger.info("Order %s status -> %s", order_id, new_status)


def update_payment_status(conn, order_id: str, new_status: str) -> None:
    if new_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Unknown payment status: {new_status}")
    get_order(conn, order_id)
    x(
        conn,
        "UPDATE orders SET payment_status=?, updated_at=? WHERE id=?",
        (new_status, iso_now(), str(order_id)),
    )
    logger.info("Order %s payment -> %s", order_id, new_status)


def verify_payment(conn, order_id: str, action: str) -> str:
    try:
        new_status = VERIFICATION_ACTIONS[action]
    except KeyError:
        raise ValidationError(f"Unknown verification action: {action}")
    update_payment_status(conn, order_id, new_status)
    return new_status


# ---------------------------------------------------------------------------
# Live updates
# ---------------------------------------------------------------------------

def orders_fingerprint(conn) -> tuple[int, str]:
    r = q1(
        conn,
        """
        SELECT COUNT(1) AS n,
               COALESCE(group_concat(id || ':' || status || ':' || payment_status || ':' || updated_at, '|'), '') AS sig
        FROM (SELECT * FROM orders ORDER BY id)
        """,
    )
    return int(r["n"]), str(r["sig"])


class OrderWatcher:
    """
    Poll-driven subscription over the orders table. Each `poll()` that sees
    a changed fingerprint hands the full newest-first list to the callback.
    Notifications are not coalesced or debounced.
    """

    def __init__(self, conn, callback: Callable[[list[dict[str, Any]]], None]):
        self.conn = conn
        self.callback = callback
        self._last: Optional[tuple[int, str]] = None

    def poll(self) -> bool:
        try:
            current = orders_fingerprint(self.conn)
            if current == self._last:
                return False
            orders = list_orders(self.conn)
        except Exception:
            logger.exception("Error fetching orders")
            raise
        self._last = current
        self.callback(orders)
        return True

    def reset(self) -> None:
        self._last = None
