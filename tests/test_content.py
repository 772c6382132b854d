from datetime import date

import pytest

from bakeshop.errors import ValidationError
from bakeshop.services.content import (
    AnnouncementInput,
    PromotionInput,
    create_announcement,
    create_promotion,
    delete_announcement,
    delete_promotion,
    get_announcement,
    get_promotion,
    list_promotions,
    set_promotion_status,
)


def test_promotion_lifecycle(conn, images):
    pid = create_promotion(
        conn,
        PromotionInput(title="Holiday bilao", start_date=date(2026, 12, 1), end_date=date(2026, 12, 31),
                       discount_percentage=15),
        image=b"img",
        image_name="holiday.png",
        images=images,
    )
    promo = get_promotion(conn, pid)
    assert promo["status"] == "inactive"
    assert promo["start_date"] == "2026-12-01"

    set_promotion_status(conn, pid, "active")
    assert get_promotion(conn, pid)["status"] == "active"

    delete_promotion(conn, pid, images=images)
    assert list_promotions(conn) == []
    assert images.deleted == [promo["image_url"]]


@pytest.mark.parametrize(
    "data",
    [
        PromotionInput(title=""),
        PromotionInput(title="Too much", discount_percentage=120),
        PromotionInput(title="Backwards", start_date="2026-05-10", end_date="2026-05-01"),
    ],
)
def test_promotion_validation(conn, data):
    with pytest.raises(ValidationError):
        create_promotion(conn, data)


def test_announcement_defaults_and_checks(conn, make_images):
    aid = create_announcement(conn, AnnouncementInput(title="Closed on Monday", content="Store maintenance"))
    ann = get_announcement(conn, aid)
    assert (ann["priority"], ann["status"], ann["target_audience"]) == ("medium", "inactive", "all")

    with pytest.raises(ValidationError):
        create_announcement(conn, AnnouncementInput(title="x", priority="urgent"))

    delete_announcement(conn, aid, images=make_images(fail_delete=True))
