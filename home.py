from __future__ import annotations

import streamlit as st
import pandas as pd

from bakeshop.context import get_context
from bakeshop.guard import require_permission
from bakeshop.services.reports import dashboard_summary, orders_by_status, stock_levels_frame
from bakeshop.services.stock import expiring_batches, low_stock_batches, batch_label

require_permission("dashboard.view")
ctx = get_context()
cur = ctx.settings.currency

st.title("🏠 Dashboard")
st.caption("Today's snapshot of stock, orders and sales.")

summary = dashboard_summary(ctx.conn)

c1, c2, c3, c4 = st.columns(4)
c1.metric("Products", f"{summary['products']}")
c2.metric("Stock batches", f"{summary['batches']}", help=f"{summary['units_on_hand']} units on hand")
c3.metric("Low-stock batches", f"{summary['low_stock']}")
c4.metric("Inventory value", f"{cur}{summary['inventory_value']:,.2f}")

c5, c6, c7 = st.columns(3)
c5.metric("Pending orders", f"{summary['pending_orders']}")
c6.metric("Orders today", f"{summary['orders_today']}")
c7.metric("Completed revenue", f"{cur}{summary['completed_revenue']:,.2f}")

st.divider()
left, right = st.columns(2, gap="large")

with left:
    st.subheader("Stock levels")
    df = stock_levels_frame(ctx.conn)
    if df.empty:
        st.info("No stock yet. Add stock under **Stock Management**.")
    else:
        st.bar_chart(df.set_index("label")[["quantity"]])

with right:
    st.subheader("Orders by status")
    orders = orders_by_status(ctx.conn)
    if orders.empty:
        st.info("No orders yet.")
    else:
        st.bar_chart(orders.set_index("status")[["orders"]])

alerts = low_stock_batches(ctx.conn)
if alerts:
    st.warning(f"{len(alerts)} batch(es) at or below minimum stock.")
    st.dataframe(
        pd.DataFrame(
            [{"Batch": batch_label(b), "Quantity": b["quantity"], "Minimum": b["minimum_stock"]} for b in alerts]
        ),
        use_container_width=True,
        hide_index=True,
    )

expiring = expiring_batches(ctx.conn)
if expiring:
    st.warning(f"{len(expiring)} batch(es) expired or expiring within 7 days.")
    st.dataframe(
        pd.DataFrame([{"Batch": batch_label(b), "Expiry": b["expiry_date"], "Quantity": b["quantity"]} for b in expiring]),
        use_container_width=True,
        hide_index=True,
    )
