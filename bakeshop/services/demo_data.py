from __future__ import annotations

import random
from datetime import date, datetime, timedelta, timezone

from bakeshop.db import ensure_schema, q, q1, x
from bakeshop.services.categories import create_category
from bakeshop.services.orders import OrderItemInput, create_order
from bakeshop.services.products import create_product
from bakeshop.services.stock import (
    BatchInput,
    adjust_quantity,
    allowed_varieties,
    create_batch,
    normalize_varieties,
)
from bakeshop.utils import dump_list, load_list

DEFAULT_VARIETIES = ["Sapin-sapin", "Kutsinta", "Bibingka", "Kalamay", "Cassava"]

# (name, dimensions, slices, shape, max_varieties, price, available_products)
DEFAULT_SIZES = [
    ("Solo", "6 in", 1, "Round", 1, 60.0, ["Bibingka"]),
    ("Small", "8 in", 4, "Round", 1, 150.0, ["Bibingka"]),
    ("Medium Bilao", "10 in", 8, "Round", 2, 350.0, []),
    ("Big Bilao", "14 in", 16, "Round", 4, 650.0, []),
    ("Party Tray", "12 x 18 in", 24, "Rectangle", 5, 950.0, []),
]

DEMO_CATEGORIES = [
    ("Kakanin", "Traditional rice cakes"),
    ("Bilao Trays", "Assorted platters for sharing"),
]

DEMO_CUSTOMERS = [
    ("cust-0001", "Maria Santos", None, None),
    ("cust-0002", None, "Jose", "Reyes"),
    ("cust-0003", "Ana", None, None),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for name in DEFAULT_VARIETIES:
        x(conn, "INSERT OR IGNORE INTO varieties(name, is_available) VALUES (?, 1)", (name,))

    for name, dims, slices, shape, max_v, price, available in DEFAULT_SIZES:
        x(
            conn,
            """
            INSERT OR IGNORE INTO sizes(name, dimensions, slices, shape, max_varieties, price, available_products)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (name, dims, int(slices), shape, int(max_v), float(price), dump_list(available)),
        )


def wipe_all(conn) -> None:
    # Keep schema and accounts, delete business data.
    for t in [
        "order_items", "orders", "customers", "stock_movements", "stock_batches",
        "damaged_goods", "suppliers", "promotions", "announcements", "products",
        "categories", "sizes", "varieties",
    ]:
        conn.execute(f"DELETE FROM {t};")
    conn.commit()


def load_demo_data(conn, *, seed: int = 7, actor: str = "demo") -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    # Demo catalog is only added once
    existing = {str(r["name"]) for r in q(conn, "SELECT name FROM categories")}
    if not any(n in existing for n, _ in DEMO_CATEGORIES):
        category_ids = [create_category(conn, name=n, description=d) for n, d in DEMO_CATEGORIES]
        for v in DEFAULT_VARIETIES:
            create_product(
                conn, name=v, description=f"{v} (per slice)", category_id=category_ids[0], price=25.0, unit="slice"
            )

    sizes = [dict(r) for r in q(conn, "SELECT * FROM sizes ORDER BY price")]
    today = date.today()
    for s in sizes:
        s["available_products"] = load_list(s["available_products"])
        pool = allowed_varieties(s, DEFAULT_VARIETIES)
        k = random.randint(1, min(int(s["max_varieties"]), len(pool)))
        varieties = normalize_varieties(s, random.sample(pool, k=k))
        produced = today - timedelta(days=random.randint(0, 2))
        result = create_batch(
            conn,
            BatchInput(
                size_id=int(s["id"]),
                varieties=varieties,
                quantity=random.randint(5, 30),
                production_date=produced,
                expiry_date=produced + timedelta(days=random.choice([3, 5, 10])),
                minimum_stock=5,
                reorder_point=8,
                remarks="Demo stock-in",
            ),
            actor=actor,
        )
        adjust_quantity(conn, result.batch_id, -random.randint(1, 4), actor=actor, remarks="Demo sale")

    for cid, name, first, last in DEMO_CUSTOMERS:
        x(
            conn,
            "INSERT OR IGNORE INTO customers (id, name, first_name, last_name) VALUES (?, ?, ?, ?)",
            (cid, name, first, last),
        )

    big = q1(conn, "SELECT * FROM sizes WHERE name='Big Bilao'")
    now = datetime.now(timezone.utc).replace(microsecond=0)
    for i in range(6):
        order_id = f"demo-{i + 1:04d}"
        if q1(conn, "SELECT id FROM orders WHERE id=?", (order_id,)) is not None:
            continue
        cid = DEMO_CUSTOMERS[i % len(DEMO_CUSTOMERS)][0]
        method = "GCash" if i % 2 == 0 else "Cash"
        create_order(
            conn,
            user_id=cid,
            items=[
                OrderItemInput(
                    product_size=str(big["name"]),
                    product_varieties=random.sample(DEFAULT_VARIETIES, k=2),
                    quantity=random.randint(1, 3),
                    price=float(big["price"]),
                )
            ],
            payment_method=method,
            pickup_date=(today + timedelta(days=1)).isoformat(),
            pickup_time="10:00 AM",
            gcash_reference=f"GC{random.randint(100000, 999999)}" if method == "GCash" else None,
            order_id=order_id,
            created_at=(now - timedelta(hours=i * 5)).isoformat(),
        )
