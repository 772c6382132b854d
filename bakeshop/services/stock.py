from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Mapping, Optional, Sequence

from bakeshop.db import q, q1, transaction, x
from bakeshop.errors import ConfirmationRequired, NotFoundError, ValidationError
from bakeshop.services.sizes import get_size
from bakeshop.utils import clean_text, dump_list, iso_now, load_list, to_date

logger = logging.getLogger(__name__)

# Sizes that only ever hold one fixed variety.
PINNED_SIZE_VARIETIES = {"solo": "Bibingka", "small": "Bibingka"}

NEAR_EXPIRY_DAYS = 7
DEFAULT_MOVEMENT_LIMIT = 50

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_DELETED = "deleted"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT, MOVEMENT_DELETED)

EXPIRY_OK = "ok"
EXPIRY_NEAR = "near_expiry"
EXPIRY_EXPIRED = "expired"


# ---------------------------------------------------------------------------
# Variety selection policy
# ---------------------------------------------------------------------------

def pinned_variety(size_name: Optional[str]) -> Optional[str]:
    return PINNED_SIZE_VARIETIES.get(str(size_name or "").strip().lower())


def allowed_varieties(size: Mapping[str, Any], all_varieties: Sequence[str]) -> list[str]:
    """Varieties that may be offered for a size, in catalog order."""
    pinned = pinned_variety(size["name"])
    if pinned:
        return [pinned]
    restricted = list(size.get("available_products") or [])
    if restricted:
        return [v for v in all_varieties if v in restricted] or restricted
    return list(all_varieties)


def select_size(size: Mapping[str, Any]) -> list[str]:
    """Selection right after a size is picked: reset, or the pinned variety."""
    pinned = pinned_variety(size["name"])
    return [pinned] if pinned else []


def toggle_variety(
    size: Mapping[str, Any],
    selected: Sequence[str],
    variety: str,
) -> tuple[list[str], Optional[str]]:
    """
    Returns (new selection, warning). A warning means the click was ignored;
    it is never an error.
    """
    current = list(selected)
    pinned = pinned_variety(size["name"])
    if pinned:
        if variety != pinned:
            return [pinned], f"Only {pinned} is available for size {size['name']}."
        return [pinned], None

    if variety in current:
        current.remove(variety)
        return current, None

    max_varieties = int(size["max_varieties"])
    if len(current) >= max_varieties:
        return current, f"You can only select up to {max_varieties} varieties for {size['name']}."

    current.append(variety)
    return current, None


def normalize_varieties(size: Mapping[str, Any], varieties: Sequence[str]) -> list[str]:
    """Validates a submitted variety list against the size and returns what gets stored."""
    chosen: list[str] = []
    for v in varieties:
        v = str(v).strip()
        if v and v not in chosen:
            chosen.append(v)

    pinned = pinned_variety(size["name"])
    if pinned:
        if any(v != pinned for v in chosen):
            raise ValidationError(f"Size {size['name']} only accepts the {pinned} variety.")
        return [pinned]

    if not chosen:
        raise ValidationError("Please select at least one variety.")

    max_varieties = int(size["max_varieties"])
    if len(chosen) > max_varieties:
        raise ValidationError(
            f"Size {size['name']} allows at most {max_varieties} varieties ({len(chosen)} selected)."
        )

    restricted = list(size.get("available_products") or [])
    if restricted:
        outside = [v for v in chosen if v not in restricted]
        if outside:
            raise ValidationError(f"Not available for size {size['name']}: {', '.join(outside)}.")

    return chosen


# ---------------------------------------------------------------------------
# Expiry rules
# ---------------------------------------------------------------------------

def check_expiry(production_date: Any, expiry_date: Any, today: Optional[date] = None) -> str:
    production = to_date(production_date)
    expiry = to_date(expiry_date)
    if production is None or expiry is None:
        raise ValidationError("Production date and expiry date are required.")
    if expiry <= production:
        raise ValidationError("Expiry date must be after the production date.")

    today = today or date.today()
    if expiry <= today:
        return EXPIRY_EXPIRED
    if expiry <= today + timedelta(days=NEAR_EXPIRY_DAYS):
        return EXPIRY_NEAR
    return EXPIRY_OK


def expiry_warning(status: str, expiry_date: Any) -> Optional[str]:
    if status == EXPIRY_NEAR:
        return f"This batch expires soon ({to_date(expiry_date).isoformat()})."
    if status == EXPIRY_EXPIRED:
        return f"This batch is already expired ({to_date(expiry_date).isoformat()})."
    return None


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@dataclass
class BatchInput:
    size_id: int
    varieties: list[str]
    quantity: int
    production_date: Any
    expiry_date: Any
    minimum_stock: int = 0
    reorder_point: int = 0
    remarks: Optional[str] = None


@dataclass
class BatchSaveResult:
    batch_id: int
    expiry_status: str
    warnings: list[str] = field(default_factory=list)


def _non_negative_int(value: Any, label: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a whole number.")
    if n != float(value):
        raise ValidationError(f"{label} must be a whole number.")
    if n < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return n


def _validate_batch(conn, data: BatchInput, *, confirm_expired: bool, today: Optional[date]):
    size = get_size(conn, data.size_id)
    varieties = normalize_varieties(size, data.varieties)
    quantity = _non_negative_int(data.quantity, "Quantity")
    minimum_stock = _non_negative_int(data.minimum_stock, "Minimum stock")
    reorder_point = _non_negative_int(data.reorder_point, "Reorder point")

    status = check_expiry(data.production_date, data.expiry_date, today)
    if status == EXPIRY_EXPIRED and not confirm_expired:
        raise ConfirmationRequired(
            f"Expiry date {to_date(data.expiry_date).isoformat()} is today or in the past. "
            "Save this batch anyway?"
        )

    fields = {
        "size_id": int(size["id"]),
        "size_name": str(size["name"]),
        "varieties": varieties,
        "quantity": quantity,
        "minimum_stock": minimum_stock,
        "reorder_point": reorder_point,
        "production_date": to_date(data.production_date).isoformat(),
        "expiry_date": to_date(data.expiry_date).isoformat(),
        "remarks": clean_text(data.remarks),
    }
    return fields, status


def _append_movement(
    conn,
    *,
    stock_id: int,
    size_name: str,
    varieties: Sequence[str],
    type_: str,
    quantity: int,
    previous_stock: int,
    current_stock: int,
    actor: Optional[str],
    remarks: Optional[str],
    deleted: bool = False,
) -> int:
    return x(
        conn,
        """
        INSERT INTO stock_movements (
            stock_id, size_name, varieties, type, quantity,
            previous_stock, current_stock, ts, actor, remarks, deleted
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            int(stock_id),
            size_name,
            dump_list(varieties),
            type_,
            int(quantity),
            int(previous_stock),
            int(current_stock),
            iso_now(),
            actor,
            remarks,
            int(deleted),
        ),
        commit=False,
    )


def _batch_dict(r) -> dict[str, Any]:
    d = dict(r)
    d["varieties"] = load_list(d.get("varieties"))
    return d


def batch_label(batch: Mapping[str, Any]) -> str:
    return f"{batch['size_name']} ({', '.join(batch['varieties'])})"


def get_batch(conn, batch_id: int) -> dict[str, Any]:
    r = q1(conn, "SELECT * FROM stock_batches WHERE id=?", (int(batch_id),))
    if r is None:
        raise NotFoundError("Stock batch not found.")
    return _batch_dict(r)


def list_batches(conn) -> list[dict[str, Any]]:
    rows = q(conn, "SELECT * FROM stock_batches ORDER BY last_updated DESC, id DESC")
    return [_batch_dict(r) for r in rows]


def create_batch(
    conn,
    data: BatchInput,
    *,
    actor: Optional[str] = None,
    confirm_expired: bool = False,
    today: Optional[date] = None,
) -> BatchSaveResult:
    """
    Stock-in of a new batch. The batch row and its opening "in" movement
    are written in one transaction.
    """
    fields, status = _validate_batch(conn, data, confirm_expired=confirm_expired, today=today)
    now = iso_now()

    with transaction(conn):
        batch_id = x(
            conn,
            """
            INSERT INTO stock_batches (
                size_id, size_name, varieties, quantity, minimum_stock, reorder_point,
                production_date, expiry_date, last_updated, remarks
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                fields["size_id"],
                fields["size_name"],
                dump_list(fields["varieties"]),
                fields["quantity"],
                fields["minimum_stock"],
                fields["reorder_point"],
                fields["production_date"],
                fields["expiry_date"],
                now,
                fields["remarks"],
            ),
            commit=False,
        )
        _append_movement(
            conn,
            stock_id=batch_id,
            size_name=fields["size_name"],
            varieties=fields["varieties"],
            type_=MOVEMENT_IN,
            quantity=fields["quantity"],
            previous_stock=0,
            current_stock=fields["quantity"],
            actor=actor,
            remarks=fields["remarks"] or "Initial stock",
        )

    logger.info(
        "Stock batch created: id=%s %s qty=%s by %s",
        batch_id, fields["size_name"], fields["quantity"], actor,
    )
    warning = expiry_warning(status, fields["expiry_date"])
    return BatchSaveResult(batch_id=batch_id, expiry_status=status, warnings=[warning] if warning else [])


def update_batch(
    conn,
    batch_id: int,
    data: BatchInput,
    *,
    actor: Optional[str] = None,
    confirm_expired: bool = False,
    today: Optional[date] = None,
) -> BatchSaveResult:
    """
    Full replacement of a batch. A changed quantity is recorded as an
    "adjustment" movement in the same transaction.
    """
    old = get_batch(conn, batch_id)
    fields, status = _validate_batch(conn, data, confirm_expired=confirm_expired, today=today)
    delta = fields["quantity"] - int(old["quantity"])

    with transaction(conn):
        x(
            conn,
            """
            UPDATE stock_batches
            SET size_id=?, size_name=?, varieties=?, quantity=?, minimum_stock=?, reorder_point=?,
                production_date=?, expiry_date=?, last_updated=?, remarks=?
            WHERE id=?
            """,
            (
                fields["size_id"],
                fields["size_name"],
                dump_list(fields["varieties"]),
                fields["quantity"],
                fields["minimum_stock"],
                fields["reorder_point"],
                fields["production_date"],
                fields["expiry_date"],
                iso_now(),
                fields["remarks"],
                int(batch_id),
            ),
            commit=False,
        )
        if delta != 0:
            _append_movement(
                conn,
                stock_id=int(batch_id),
                size_name=fields["size_name"],
                varieties=fields["varieties"],
                type_=MOVEMENT_ADJUSTMENT,
                quantity=delta,
                previous_stock=int(old["quantity"]),
                current_stock=fields["quantity"],
                actor=actor,
                remarks=fields["remarks"] or "Edited stock entry",
            )

    logger.info("Stock batch updated: id=%s delta=%s by %s", batch_id, delta, actor)
    warning = expiry_warning(status, fields["expiry_date"])
    return BatchSaveResult(batch_id=int(batch_id), expiry_status=status, warnings=[warning] if warning else [])


def adjust_quantity(
    conn,
    batch_id: int,
    delta: int,
    *,
    actor: Optional[str] = None,
    remarks: Optional[str] = None,
) -> dict[str, Any]:
    try:
        n = int(delta)
    except (TypeError, ValueError):
        raise ValidationError("Adjustment must be a whole number.")
    if n != float(delta):
        raise ValidationError("Adjustment must be a whole number.")
    delta = n
    if delta == 0:
        raise ValidationError("Adjustment must not be zero.")

    batch = get_batch(conn, batch_id)
    previous = int(batch["quantity"])
    new_quantity = previous + delta
    if new_quantity < 0:
        raise ValidationError(
            f"Insufficient stock: {previous} on hand, cannot remove {-delta}."
        )

    type_ = MOVEMENT_IN if delta > 0 else MOVEMENT_OUT
    with transaction(conn):
        x(
            conn,
            "UPDATE stock_batches SET quantity=?, last_updated=? WHERE id=?",
            (new_quantity, iso_now(), int(batch_id)),
            commit=False,
        )
        movement_id = _append_movement(
            conn,
            stock_id=int(batch_id),
            size_name=batch["size_name"],
            varieties=batch["varieties"],
            type_=type_,
            quantity=delta,
            previous_stock=previous,
            current_stock=new_quantity,
            actor=actor,
            remarks=clean_text(remarks),
        )

    logger.info("Stock adjusted: batch=%s %s -> %s by %s", batch_id, previous, new_quantity, actor)
    return {
        "movement_id": movement_id,
        "type": type_,
        "previous_stock": previous,
        "current_stock": new_quantity,
    }


def delete_batch(conn, batch_id: int, *, actor: Optional[str] = None) -> int:
    """
    Removes the batch row. Its history stays in the ledger: a final "deleted"
    movement is appended and every movement of the batch is flagged deleted.
    """
    batch = get_batch(conn, batch_id)
    final_quantity = int(batch["quantity"])

    with transaction(conn):
        x(conn, "DELETE FROM stock_batches WHERE id=?", (int(batch_id),), commit=False)
        movement_id = _append_movement(
            conn,
            stock_id=int(batch_id),
            size_name=batch["size_name"],
            varieties=batch["varieties"],
            type_=MOVEMENT_DELETED,
            quantity=final_quantity,
            previous_stock=final_quantity,
            current_stock=0,
            actor=actor,
            remarks="Stock entry deleted",
            deleted=True,
        )
        x(conn, "UPDATE stock_movements SET deleted=1 WHERE stock_id=?", (int(batch_id),), commit=False)

    logger.info("Stock batch deleted: id=%s final qty=%s by %s", batch_id, final_quantity, actor)
    return movement_id


# ---------------------------------------------------------------------------
# Read projections
# ---------------------------------------------------------------------------

def list_movements(
    conn,
    *,
    limit: Optional[int] = DEFAULT_MOVEMENT_LIMIT,
    batch_id: Optional[int] = None,
    include_deleted: bool = True,
    start: Any = None,
    end: Any = None,
) -> list[dict[str, Any]]:
    """Ledger entries, newest first."""
    where = ["1=1"]
    params: list[Any] = []
    if batch_id is not None:
        where.append("stock_id = ?")
        params.append(int(batch_id))
    if not include_deleted:
        where.append("deleted = 0")
    if to_date(start) is not None:
        where.append("substr(ts, 1, 10) >= ?")
        params.append(to_date(start).isoformat())
    if to_date(end) is not None:
        where.append("substr(ts, 1, 10) <= ?")
        params.append(to_date(end).isoformat())

    sql = f"SELECT * FROM stock_movements WHERE {' AND '.join(where)} ORDER BY ts DESC, id DESC"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    out = []
    for r in q(conn, sql, params):
        d = dict(r)
        d["varieties"] = load_list(d.get("varieties"))
        d["deleted"] = bool(d["deleted"])
        out.append(d)
    return out


def low_stock_batches(conn) -> list[dict[str, Any]]:
    return [b for b in list_batches(conn) if b["quantity"] <= b["minimum_stock"]]


def reorder_batches(conn) -> list[dict[str, Any]]:
    return [b for b in list_batches(conn) if b["quantity"] <= b["reorder_point"]]


def out_of_stock_batches(conn) -> list[dict[str, Any]]:
    return [b for b in list_batches(conn) if b["quantity"] == 0]


def expiring_batches(conn, *, days: int = NEAR_EXPIRY_DAYS, today: Optional[date] = None) -> list[dict[str, Any]]:
    """Batches already expired or expiring within `days`, soonest first."""
    today = today or date.today()
    cutoff = today + timedelta(days=int(days))
    out = [b for b in list_batches(conn) if to_date(b["expiry_date"]) <= cutoff]
    return sorted(out, key=lambda b: b["expiry_date"])
