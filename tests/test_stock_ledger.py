"""Stock batches and the movement ledger."""
from datetime import date, timedelta

import pytest

from bakeshop.db import q, q1
from bakeshop.errors import ConfirmationRequired, NotFoundError, ValidationError
from bakeshop.services import stock
from bakeshop.services.sizes import create_size
from bakeshop.services.stock import (
    EXPIRY_EXPIRED,
    EXPIRY_NEAR,
    EXPIRY_OK,
    BatchInput,
    adjust_quantity,
    check_expiry,
    create_batch,
    delete_batch,
    expiring_batches,
    get_batch,
    list_batches,
    list_movements,
    low_stock_batches,
    update_batch,
)

TODAY = date(2026, 3, 10)


def _size_id(conn, name):
    return int(q1(conn, "SELECT id FROM sizes WHERE name=?", (name,))["id"])


def _batch(size_id, varieties, quantity=10, *, produced=TODAY, shelf_days=10, **kw):
    return BatchInput(
        size_id=size_id,
        varieties=varieties,
        quantity=quantity,
        production_date=produced,
        expiry_date=produced + timedelta(days=shelf_days),
        **kw,
    )


def test_ledger_lifecycle(bare_conn):
    conn = bare_conn
    size_id = create_size(conn, name="Big Bilao", max_varieties=4, price=650)

    res = create_batch(conn, _batch(size_id, ["Kutsinta", "Sapin-sapin"]), actor="a@x.com", today=TODAY)
    moves = list_movements(conn, batch_id=res.batch_id)
    assert len(moves) == 1
    assert moves[0]["type"] == "in"
    assert (moves[0]["previous_stock"], moves[0]["current_stock"]) == (0, 10)

    out = adjust_quantity(conn, res.batch_id, 5, actor="a@x.com")
    assert out["type"] == "in"
    assert (out["previous_stock"], out["current_stock"]) == (10, 15)
    assert get_batch(conn, res.batch_id)["quantity"] == 15

    with pytest.raises(ValidationError, match="Insufficient stock"):
        adjust_quantity(conn, res.batch_id, -20, actor="a@x.com")
    assert get_batch(conn, res.batch_id)["quantity"] == 15
    assert len(list_movements(conn, batch_id=res.batch_id)) == 2

    delete_batch(conn, res.batch_id, actor="a@x.com")
    assert list_batches(conn) == []
    moves = list_movements(conn, batch_id=res.batch_id)
    assert len(moves) == 3
    assert all(m["deleted"] for m in moves)
    last = moves[0]
    assert last["type"] == "deleted"
    assert last["quantity"] == 15
    assert last["current_stock"] == 0


def test_stock_out_records_signed_delta(conn):
    res = create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"], quantity=8), today=TODAY)
    out = adjust_quantity(conn, res.batch_id, -8, remarks="sold out")
    assert out["type"] == "out"
    assert out["current_stock"] == 0
    m = list_movements(conn, batch_id=res.batch_id, limit=1)[0]
    assert m["quantity"] == -8
    assert m["remarks"] == "sold out"


def test_zero_adjustment_rejected(conn):
    res = create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"]), today=TODAY)
    with pytest.raises(ValidationError):
        adjust_quantity(conn, res.batch_id, 0)


def test_delete_flags_only_that_batch(conn):
    size_id = _size_id(conn, "Big Bilao")
    keep = create_batch(conn, _batch(size_id, ["Kalamay"]), today=TODAY)
    gone = create_batch(conn, _batch(size_id, ["Cassava"]), today=TODAY)
    adjust_quantity(conn, keep.batch_id, 3)

    delete_batch(conn, gone.batch_id)

    kept = list_movements(conn, batch_id=keep.batch_id)
    assert len(kept) == 2
    assert not any(m["deleted"] for m in kept)
    assert len(list_movements(conn, include_deleted=False)) == 2


def test_edit_with_new_quantity_appends_adjustment(conn):
    size_id = _size_id(conn, "Big Bilao")
    res = create_batch(conn, _batch(size_id, ["Kalamay"], quantity=10), today=TODAY)

    update_batch(conn, res.batch_id, _batch(size_id, ["Kalamay", "Cassava"], quantity=7), today=TODAY)

    batch = get_batch(conn, res.batch_id)
    assert batch["quantity"] == 7
    assert batch["varieties"] == ["Kalamay", "Cassava"]
    m = list_movements(conn, batch_id=res.batch_id, limit=1)[0]
    assert m["type"] == "adjustment"
    assert (m["quantity"], m["previous_stock"], m["current_stock"]) == (-3, 10, 7)


def test_edit_without_quantity_change_keeps_ledger(conn):
    size_id = _size_id(conn, "Big Bilao")
    res = create_batch(conn, _batch(size_id, ["Kalamay"]), today=TODAY)
    update_batch(conn, res.batch_id, _batch(size_id, ["Kalamay"], remarks="relabelled"), today=TODAY)
    assert len(list_movements(conn, batch_id=res.batch_id)) == 1


@pytest.mark.parametrize("size", ["Solo", "Small"])
def test_pinned_sizes_always_store_bibingka(conn, size):
    res = create_batch(conn, _batch(_size_id(conn, size), []), today=TODAY)
    assert get_batch(conn, res.batch_id)["varieties"] == ["Bibingka"]

    with pytest.raises(ValidationError):
        create_batch(conn, _batch(_size_id(conn, size), ["Kutsinta"]), today=TODAY)


def test_variety_count_limits(conn):
    size_id = _size_id(conn, "Medium Bilao")
    with pytest.raises(ValidationError, match="at least one"):
        create_batch(conn, _batch(size_id, []), today=TODAY)
    with pytest.raises(ValidationError, match="at most 2"):
        create_batch(conn, _batch(size_id, ["Kalamay", "Cassava", "Kutsinta"]), today=TODAY)
    assert list_batches(conn) == []


def test_negative_quantity_rejected(conn):
    with pytest.raises(ValidationError):
        create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"], quantity=-1), today=TODAY)
    assert q(conn, "SELECT * FROM stock_movements") == []


def test_expiry_rules():
    assert check_expiry(TODAY, TODAY + timedelta(days=30), TODAY) == EXPIRY_OK
    assert check_expiry(TODAY, TODAY + timedelta(days=7), TODAY) == EXPIRY_NEAR
    assert check_expiry(TODAY - timedelta(days=5), TODAY, TODAY) == EXPIRY_EXPIRED
    with pytest.raises(ValidationError):
        check_expiry(TODAY, TODAY, TODAY)
    with pytest.raises(ValidationError):
        check_expiry(TODAY, None, TODAY)


def test_expired_batch_needs_confirmation(conn):
    size_id = _size_id(conn, "Big Bilao")
    data = _batch(size_id, ["Kalamay"], produced=TODAY - timedelta(days=5), shelf_days=3)
    with pytest.raises(ConfirmationRequired):
        create_batch(conn, data, today=TODAY)
    assert list_batches(conn) == []

    res = create_batch(conn, data, confirm_expired=True, today=TODAY)
    assert res.expiry_status == EXPIRY_EXPIRED
    assert res.warnings


def test_near_expiry_saves_with_warning(conn):
    res = create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"], shelf_days=2), today=TODAY)
    assert res.expiry_status == EXPIRY_NEAR
    assert "expires soon" in res.warnings[0]


def test_alert_projections(conn):
    size_id = _size_id(conn, "Big Bilao")
    low = create_batch(conn, _batch(size_id, ["Kalamay"], quantity=2, minimum_stock=5, shelf_days=5), today=TODAY)
    create_batch(conn, _batch(size_id, ["Cassava"], quantity=20, minimum_stock=5, shelf_days=30), today=TODAY)

    assert [b["id"] for b in low_stock_batches(conn)] == [low.batch_id]
    assert [b["id"] for b in expiring_batches(conn, today=TODAY)] == [low.batch_id]


def test_movement_history_is_capped(conn):
    res = create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"], quantity=100), today=TODAY)
    for _ in range(60):
        adjust_quantity(conn, res.batch_id, -1)
    assert len(list_movements(conn)) == 50
    assert len(list_movements(conn, limit=None)) == 61


def test_fractional_adjustment_rejected(conn):
    res = create_batch(conn, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"]), today=TODAY)
    with pytest.raises(ValidationError, match="whole number"):
        adjust_quantity(conn, res.batch_id, 2.7)
    assert get_batch(conn, res.batch_id)["quantity"] == 10
    assert len(list_movements(conn, batch_id=res.batch_id)) == 1

    adjust_quantity(conn, res.batch_id, 2.0)
    assert get_batch(conn, res.batch_id)["quantity"] == 12


@pytest.mark.parametrize(
    "varieties, kw, error",
    [
        (["Kalamay"], {"shelf_days": 0}, ValidationError),
        (["Kalamay"], {"shelf_days": -1}, ValidationError),
        (["Kalamay", "Cassava", "Kutsinta"], {}, ValidationError),
        ([], {}, ValidationError),
        (["Kalamay"], {"produced": TODAY - timedelta(days=5), "shelf_days": 3}, ConfirmationRequired),
    ],
)
def test_rejected_update_leaves_batch_alone(conn, varieties, kw, error):
    size_id = _size_id(conn, "Medium Bilao")
    res = create_batch(conn, _batch(size_id, ["Kalamay"], quantity=10), today=TODAY)

    with pytest.raises(error):
        update_batch(conn, res.batch_id, _batch(size_id, varieties, quantity=4, **kw), today=TODAY)

    batch = get_batch(conn, res.batch_id)
    assert batch["quantity"] == 10
    assert batch["varieties"] == ["Kalamay"]
    assert len(list_movements(conn, batch_id=res.batch_id)) == 1


def test_update_missing_batch(conn):
    with pytest.raises(NotFoundError):
        update_batch(conn, 999, _batch(_size_id(conn, "Big Bilao"), ["Kalamay"]), today=TODAY)


def test_failed_ledger_append_rolls_back_batch_write(conn, monkeypatch):
    size_id = _size_id(conn, "Big Bilao")
    res = create_batch(conn, _batch(size_id, ["Kalamay"], quantity=10), today=TODAY)

    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(stock, "_append_movement", broken)

    with pytest.raises(RuntimeError):
        adjust_quantity(conn, res.batch_id, 5)
    with pytest.raises(RuntimeError):
        update_batch(conn, res.batch_id, _batch(size_id, ["Kalamay"], quantity=3), today=TODAY)
    with pytest.raises(RuntimeError):
        create_batch(conn, _batch(size_id, ["Cassava"]), today=TODAY)
    with pytest.raises(RuntimeError):
        delete_batch(conn, res.batch_id)

    assert [b["quantity"] for b in list_batches(conn)] == [10]
    assert not any(m["deleted"] for m in list_movements(conn))
