from __future__ import annotations

import logging

import streamlit as st

from bakeshop.config import get_settings
from bakeshop.context import get_context
from bakeshop.guard import can, revalidate, sign_out

st.set_page_config(page_title="BBNKA Admin", page_icon="🍰", layout="wide")

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s | %(levelname)s | %(message)s",
)

ctx = get_context()
session = revalidate(ctx.conn)

if session is None:
    st.navigation([st.Page("login.py", title="Sign in", icon="🔐")]).run()
    st.stop()

# (permission needed, page)
menu = {
    "Overview": [
        ("dashboard.view", st.Page("home.py", title="Dashboard", icon="🏠", default=True)),
        ("reports.view", st.Page("pages/12_📊_Inventory_Reports.py", title="Inventory Reports", icon="📊")),
    ],
    "Inventory": [
        ("stock.view", st.Page("pages/1_📦_Stock_Management.py", title="Stock Management", icon="📦")),
        ("sizes.view", st.Page("pages/2_📏_Sizes_&_Varieties.py", title="Sizes & Varieties", icon="📏")),
        ("categories.view", st.Page("pages/3_🗂_Categories.py", title="Categories", icon="🗂")),
        ("products.view", st.Page("pages/4_🧁_Products.py", title="Products", icon="🧁")),
        ("suppliers.view", st.Page("pages/5_🚚_Suppliers.py", title="Suppliers", icon="🚚")),
        ("damaged_goods.view", st.Page("pages/6_💔_Damaged_Goods.py", title="Damaged Goods", icon="💔")),
    ],
    "Orders": [
        ("orders.view", st.Page("pages/7_🧾_Orders.py", title="Orders", icon="🧾")),
        ("payments.view", st.Page("pages/8_💳_Payment_Verification.py", title="Payment Verification", icon="💳")),
    ],
    "Content": [
        ("promotions.view", st.Page("pages/9_🎉_Promotions.py", title="Promotions", icon="🎉")),
        ("announcements.view", st.Page("pages/10_📢_Announcements.py", title="Announcements", icon="📢")),
    ],
    "Administration": [
        ("users.view", st.Page("pages/11_👥_Users.py", title="Users", icon="👥")),
        (None, st.Page("pages/13_🔧_Settings.py", title="Settings", icon="🔧")),
        ("users.edit", st.Page("pages/14_🧪_Data_Management.py", title="Data Management", icon="🧪")),
    ],
}

pages = {
    section: [page for perm, page in entries if perm is None or can(perm)]
    for section, entries in menu.items()
}
pages = {section: entries for section, entries in pages.items() if entries}

with st.sidebar:
    st.write(f"Signed in as **{session.name}**")
    st.caption(f"{session.email} • {session.role}")
    if st.button("Sign out"):
        logging.getLogger("app").info("Sign out: %s", session.email)
        sign_out()
        st.rerun()

st.navigation(pages).run()
