from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from bakeshop.db import q, q1, x
from bakeshop.errors import NotFoundError, ValidationError
from bakeshop.utils import clean_text, iso_now, to_date

logger = logging.getLogger(__name__)

STATUSES = ("active", "inactive")
PRIORITIES = ("high", "medium", "low")
AUDIENCES = ("all", "specific")


def _status(value: str) -> str:
    if value not in STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(STATUSES)}.")
    return value


def _date_range(start: Any, end: Any, label_start: str, label_end: str) -> tuple[Optional[str], Optional[str]]:
    s, e = to_date(start), to_date(end)
    if s and e and e < s:
        raise ValidationError(f"{label_end} cannot be before {label_start}.")
    return (s.isoformat() if s else None, e.isoformat() if e else None)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------

@dataclass
class PromotionInput:
    title: str
    description: str = ""
    start_date: Any = None
    end_date: Any = None
    status: str = "inactive"
    discount_percentage: float = 0.0


def list_promotions(conn):
    return q(conn, "SELECT * FROM promotions ORDER BY created_at DESC, id DESC")


def get_promotion(conn, promotion_id: int):
    r = q1(conn, "SELECT * FROM promotions WHERE id=?", (int(promotion_id),))
    if r is None:
        raise NotFoundError("Promotion not found.")
    return r


def _validate_promotion(data: PromotionInput):
    title = clean_text(data.title)
    if not title:
        raise ValidationError("Title is required.")
    try:
        discount = float(data.discount_percentage or 0)
    except (TypeError, ValueError):
        raise ValidationError("Discount must be a number.")
    if not 0 <= discount <= 100:
        raise ValidationError("Discount must be between 0 and 100.")
    start, end = _date_range(data.start_date, data.end_date, "Start date", "End date")
    return title, discount, start, end, _status(data.status)


def create_promotion(conn, data: PromotionInput, *, image=None, image_name: str = "promotion", images=None) -> int:
    title, discount, start, end, status = _validate_promotion(data)
    image_url = images.upload(image, image_name) if image is not None else None
    pid = x(
        conn,
        """
        INSERT INTO promotions (title, description, image_url, start_date, end_date, status, discount_percentage, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (title, clean_text(data.description), image_url, start, end, status, discount, iso_now()),
    )
    logger.info("Promotion created: %s (id=%s)", title, pid)
    return pid


def update_promotion(
    conn, promotion_id: int, data: PromotionInput, *, image=None, image_name: str = "promotion", images=None
) -> None:
    current = get_promotion(conn, promotion_id)
    title, discount, start, end, status = _validate_promotion(data)
    # Keep the existing image unless a new one is uploaded
    image_url = current["image_url"]
    if image is not None:
        image_url = images.replace(current["image_url"], image, image_name)
    x(
        conn,
        """
        UPDATE promotions
        SET title=?, description=?, image_url=?, start_date=?, end_date=?, status=?, discount_percentage=?, updated_at=?
        WHERE id=?
        """,
        (title, clean_text(data.description), image_url, start, end, status, discount, iso_now(), int(promotion_id)),
    )


def set_promotion_status(conn, promotion_id: int, status: str) -> None:
    get_promotion(conn, promotion_id)
    x(
        conn,
        "UPDATE promotions SET status=?, updated_at=? WHERE id=?",
        (_status(status), iso_now(), int(promotion_id)),
    )


def delete_promotion(conn, promotion_id: int, *, images=None) -> None:
    current = get_promotion(conn, promotion_id)
    x(conn, "DELETE FROM promotions WHERE id=?", (int(promotion_id),))
    if current["image_url"] and images is not None:
        images.delete(current["image_url"])
    logger.info("Promotion deleted: id=%s", promotion_id)


# ---------------------------------------------------------------------------
# Announcements
# ---------------------------------------------------------------------------

@dataclass
class AnnouncementInput:
    title: str
    content: str = ""
    priority: str = "medium"
    status: str = "inactive"
    target_audience: str = "all"
    publish_date: Any = None
    expiry_date: Any = None


def list_announcements(conn):
    return q(conn, "SELECT * FROM announcements ORDER BY created_at DESC, id DESC")


def get_announcement(conn, announcement_id: int):
    r = q1(conn, "SELECT * FROM announcements WHERE id=?", (int(announcement_id),))
    if r is None:
        raise NotFoundError("Announcement not found.")
    return r


def _validate_announcement(data: AnnouncementInput):
    title = clean_text(data.title)
    if not title:
        raise ValidationError("Title is required.")
    if data.priority not in PRIORITIES:
        raise ValidationError(f"Priority must be one of: {', '.join(PRIORITIES)}.")
    if data.target_audience not in AUDIENCES:
        raise ValidationError(f"Target audience must be one of: {', '.join(AUDIENCES)}.")
    publish, expiry = _date_range(data.publish_date, data.expiry_date, "Publish date", "Expiry date")
    return title, publish, expiry, _status(data.status)


def create_announcement(
    conn, data: AnnouncementInput, *, image=None, image_name: str = "announcement", images=None
) -> int:
    title, publish, expiry, status = _validate_announcement(data)
    image_url = images.upload(image, image_name) if image is not None else None
    now = iso_now()
    aid = x(
        conn,
        """
        INSERT INTO announcements (
            title, content, image_url, priority, status, target_audience,
            publish_date, expiry_date, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            title, clean_text(data.content), image_url, data.priority, status,
            data.target_audience, publish, expiry, now, now,
        ),
    )
    logger.info("Announcement created: %s (id=%s)", title, aid)
    return aid


def update_announcement(
    conn, announcement_id: int, data: AnnouncementInput, *, image=None, image_name: str = "announcement", images=None
) -> None:
    current = get_announcement(conn, announcement_id)
    title, publish, expiry, status = _validate_announcement(data)
    image_url = current["image_url"]
    if image is not None:
        image_url = images.replace(current["image_url"], image, image_name)
    x(
        conn,
        """
        UPDATE announcements
        SET title=?, content=?, image_url=?, priority=?, status=?, target_audience=?,
            publish_date=?, expiry_date=?, updated_at=?
        WHERE id=?
        """,
        (
            title, clean_text(data.content), image_url, data.priority, status,
            data.target_audience, publish, expiry, iso_now(), int(announcement_id),
        ),
    )


def set_announcement_status(conn, announcement_id: int, status: str) -> None:
    get_announcement(conn, announcement_id)
    x(
        conn,
        "UPDATE announcements SET status=?, updated_at=? WHERE id=?",
        (_status(status), iso_now(), int(announcement_id)),
    )


def delete_announcement(conn, announcement_id: int, *, images=None) -> None:
    current = get_announcement(conn, announcement_id)
    x(conn, "DELETE FROM announcements WHERE id=?", (int(announcement_id),))
    if current["image_url"] and images is not None:
        images.delete(current["image_url"])
    logger.info("Announcement deleted: id=%s", announcement_id)
