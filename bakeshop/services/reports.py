from __future__ import annotations

from datetime import date
from typing import Any, Optional

import pandas as pd

from bakeshop.db import q, q1
from bakeshop.services.stock import batch_label, list_batches, list_movements, low_stock_batches

STOCK_COLUMNS = [
    "id", "label", "size_name", "varieties", "quantity", "minimum_stock", "reorder_point",
    "price", "value", "production_date", "expiry_date", "last_updated",
]


def _size_prices(conn) -> dict[str, float]:
    return {str(r["name"]): float(r["price"]) for r in q(conn, "SELECT name, price FROM sizes")}


def _batch_prices(conn) -> dict[int, float]:
    """Unit price per live batch, through its size id."""
    rows = q(
        conn,
        """
        SELECT b.id, s.price
        FROM stock_batches b
        JOIN sizes s ON s.id = b.size_id
        """,
    )
    return {int(r["id"]): float(r["price"]) for r in rows}


def stock_levels_frame(conn) -> pd.DataFrame:
    """Current stock per batch, valued at the size's unit price."""
    prices = _batch_prices(conn)
    rows = []
    for b in list_batches(conn):
        price = prices.get(int(b["id"]), 0.0)
        rows.append(
            {
                "id": b["id"],
                "label": batch_label(b),
                "size_name": b["size_name"],
                "varieties": ", ".join(b["varieties"]),
                "quantity": int(b["quantity"]),
                "minimum_stock": int(b["minimum_stock"]),
                "reorder_point": int(b["reorder_point"]),
                "price": price,
                "value": round(int(b["quantity"]) * price, 2),
                "production_date": b["production_date"],
                "expiry_date": b["expiry_date"],
                "last_updated": b["last_updated"],
            }
        )
    return pd.DataFrame(rows, columns=STOCK_COLUMNS)


def inventory_value(conn) -> float:
    df = stock_levels_frame(conn)
    return float(df["value"].sum()) if not df.empty else 0.0


def value_by_size(conn) -> pd.DataFrame:
    df = stock_levels_frame(conn)
    if df.empty:
        return pd.DataFrame(columns=["size_name", "quantity", "value"])
    return (
        df.groupby("size_name", as_index=False)[["quantity", "value"]]
        .sum()
        .sort_values("value", ascending=False)
    )


def movements_frame(
    conn,
    *,
    start: Any = None,
    end: Any = None,
    limit: Optional[int] = None,
) -> pd.DataFrame:
    prices = _size_prices(conn)
    batch_prices = _batch_prices(conn)
    rows = list_movements(conn, limit=limit, start=start, end=end)
    df = pd.DataFrame(
        rows,
        columns=[
            "id", "ts", "stock_id", "size_name", "varieties", "type", "quantity",
            "previous_stock", "current_stock", "actor", "remarks", "deleted",
        ],
    )
    if df.empty:
        df["value"] = pd.Series(dtype=float)
        return df
    df["varieties"] = df["varieties"].apply(lambda v: ", ".join(v))
    # Deleted batches fall back to the size name recorded on the movement
    df["value"] = [
        round(abs(int(qty)) * batch_prices.get(int(sid), prices.get(s, 0.0)), 2)
        for qty, sid, s in zip(df["quantity"], df["stock_id"], df["size_name"])
    ]
    return df


def orders_by_status(conn) -> pd.DataFrame:
    rows = q(
        conn,
        """
        SELECT status, COUNT(1) AS orders, ROUND(COALESCE(SUM(total_amount), 0), 2) AS total_amount
        FROM orders
        GROUP BY status
        ORDER BY orders DESC
        """,
    )
    return pd.DataFrame([dict(r) for r in rows], columns=["status", "orders", "total_amount"])


def dashboard_summary(conn, *, today: Optional[date] = None) -> dict[str, Any]:
    today_iso = (today or date.today()).isoformat()

    def _count(sql: str, params=()) -> int:
        r = q1(conn, sql, params)
        return int(r["n"]) if r else 0

    revenue = q1(conn, "SELECT COALESCE(SUM(total_amount), 0) AS s FROM orders WHERE status='Completed'")
    return {
        "products": _count("SELECT COUNT(1) AS n FROM products"),
        "batches": _count("SELECT COUNT(1) AS n FROM stock_batches"),
        "units_on_hand": _count("SELECT COALESCE(SUM(quantity), 0) AS n FROM stock_batches"),
        "low_stock": len(low_stock_batches(conn)),
        "pending_orders": _count("SELECT COUNT(1) AS n FROM orders WHERE status='Pending'"),
        "orders_today": _count("SELECT COUNT(1) AS n FROM orders WHERE substr(created_at, 1, 10)=?", (today_iso,)),
        "completed_revenue": round(float(revenue["s"]), 2),
        "inventory_value": round(inventory_value(conn), 2),
    }
