"""Page scripts driven through streamlit's AppTest."""
from datetime import date, timedelta
from pathlib import Path

from streamlit.testing.v1 import AppTest

from bakeshop.db import connect, q, q1, x
from bakeshop.guard import SESSION_KEY

PAGES = Path(__file__).resolve().parents[1] / "pages"


def _page(name, session):
    at = AppTest.from_file(str(PAGES / name), default_timeout=30)
    at.session_state[SESSION_KEY] = session
    return at


def _button(at, label):
    return next(b for b in at.button if b.label == label)


def test_near_expiry_warning_survives_save(app_env, admin_session):
    at = _page("1_📦_Stock_Management.py", admin_session).run()
    assert not at.exception

    conn = connect(app_env)
    big = q1(conn, "SELECT id FROM sizes WHERE name='Big Bilao'")["id"]

    at.selectbox(key="add_size").set_value(big).run()
    at.button(key="add_v_Kalamay").click().run()
    at.number_input(key="add_qty").set_value(5)
    at.date_input(key="add_exp").set_value(date.today() + timedelta(days=2)).run()
    assert any("expires soon" in w.value for w in at.warning)

    _button(at, "Add stock").click().run()

    assert not at.exception
    assert len(q(conn, "SELECT id FROM stock_batches")) == 1
    assert any("expires soon" in w.value for w in at.warning)
    assert any("Saved stock batch" in s.value for s in at.success)
    conn.close()


def test_orders_page_tolerates_unknown_status(app_env, admin_session):
    at = _page("7_🧾_Orders.py", admin_session).run()
    assert not at.exception

    conn = connect(app_env)
    x(
        conn,
        """
        INSERT INTO orders (id, user_id, status, total_amount, payment_method, payment_status, created_at, updated_at)
        VALUES ('legacy-1', 'cust-1', 'On Hold', 100, 'Cash', 'Pending', '2026-01-01T08:00:00+00:00',
                '2026-01-01T08:00:00+00:00')
        """,
    )
    conn.close()

    at.run()
    assert not at.exception
    assert at.selectbox(key="st_legacy-1").value == "Pending"
