from datetime import date, timedelta

import pytest

from bakeshop.errors import ImageUploadError, NotFoundError, ValidationError
from bakeshop.services.categories import create_category, delete_category, list_categories
from bakeshop.services.damaged_goods import list_damaged_goods, record_damaged_good
from bakeshop.services.products import create_product, delete_product, get_product, update_product
from bakeshop.services.sizes import create_size, delete_size, delete_variety, get_size, list_sizes, update_size
from bakeshop.services.stock import BatchInput, create_batch, get_batch
from bakeshop.services.suppliers import create_supplier


def test_reference_sizes_sorted_by_price(conn):
    names = [s["name"] for s in list_sizes(conn)]
    assert names[:2] == ["Solo", "Small"]
    assert "Big Bilao" in names


def test_size_validation(conn):
    with pytest.raises(ValidationError):
        create_size(conn, name="Tiny", max_varieties=0, price=10)
    with pytest.raises(ValidationError):
        create_size(conn, name="Big Bilao", max_varieties=2, price=10)
    with pytest.raises(ValidationError):
        create_size(conn, name="Odd", max_varieties=1, price=10, shape="Hexagon")


def test_size_restriction_round_trips(conn):
    sid = create_size(conn, name="Trio", max_varieties=3, price=300, available_products=["Kalamay", "Cassava"])
    update_size(conn, sid, name="Trio", max_varieties=3, price=320, available_products=["Kalamay"])
    size = get_size(conn, sid)
    assert size["available_products"] == ["Kalamay"]
    assert size["price"] == 320


def test_size_in_use_cannot_be_deleted(conn):
    sid = create_size(conn, name="Trio", max_varieties=3, price=300)
    today = date.today()
    create_batch(
        conn,
        BatchInput(size_id=sid, varieties=["Kalamay"], quantity=1, production_date=today,
                   expiry_date=today + timedelta(days=10)),
    )
    with pytest.raises(ValidationError, match="still use it"):
        delete_size(conn, sid)
    assert get_size(conn, sid)["name"] == "Trio"


def test_deleting_variety_leaves_batches_alone(conn):
    from bakeshop.db import q1

    sid = create_size(conn, name="Trio", max_varieties=3, price=300)
    today = date.today()
    res = create_batch(
        conn,
        BatchInput(size_id=sid, varieties=["Kalamay"], quantity=1, production_date=today,
                   expiry_date=today + timedelta(days=10)),
    )
    delete_variety(conn, q1(conn, "SELECT id FROM varieties WHERE name='Kalamay'")["id"])
    assert get_batch(conn, res.batch_id)["varieties"] == ["Kalamay"]


def test_category_in_use_cannot_be_deleted(conn):
    cid = create_category(conn, name="Kakanin")
    create_product(conn, name="Kutsinta", category_id=cid, price=25)
    with pytest.raises(ValidationError, match="1 product"):
        delete_category(conn, cid)
    assert len(list_categories(conn)) == 1


def test_empty_category_is_deleted(conn):
    cid = create_category(conn, name="Seasonal")
    delete_category(conn, cid)
    assert list_categories(conn) == []


def test_product_requires_existing_category(conn):
    with pytest.raises(NotFoundError):
        create_product(conn, name="Ube", category_id=999)


def test_product_image_replace_and_delete(conn, images):
    pid = create_product(conn, name="Ube", price=30, image=b"img", image_name="ube.png", images=images)
    first = get_product(conn, pid)["image_url"]
    assert first.endswith("ube.png")

    update_product(conn, pid, name="Ube", price=35, image=b"img2", image_name="ube2.png", images=images)
    assert images.deleted == [first]

    delete_product(conn, pid, images=images)
    assert len(images.deleted) == 2


def test_failed_upload_writes_nothing(conn, make_images):
    with pytest.raises(ImageUploadError):
        create_product(conn, name="Ube", image=b"img", images=make_images(fail_upload=True))
    from bakeshop.services.products import list_products

    assert list_products(conn) == []


def test_image_delete_failure_does_not_block(conn, make_images):
    images = make_images(fail_delete=True)
    pid = create_product(conn, name="Ube", image=b"img", images=images)
    delete_product(conn, pid, images=images)
    with pytest.raises(NotFoundError):
        get_product(conn, pid)


def test_supplier_email_checked(conn):
    with pytest.raises(ValidationError):
        create_supplier(conn, name="Rice Co", email="not-an-email")
    assert create_supplier(conn, name="Rice Co", email="sales@rice.ph") > 0


def test_damaged_goods(conn):
    with pytest.raises(ValidationError):
        record_damaged_good(conn, product_name="Kutsinta", quantity=0)
    record_damaged_good(conn, product_name="Kutsinta", quantity=3, reason="dropped tray")
    rows = list_damaged_goods(conn)
    assert rows[0]["quantity"] == 3
    assert rows[0]["date_reported"] == date.today().isoformat()


def test_renamed_size_keeps_stock_value(conn):
    from bakeshop.db import q1
    from bakeshop.services.reports import inventory_value, value_by_size

    sid = int(q1(conn, "SELECT id FROM sizes WHERE name='Big Bilao'")["id"])
    today = date.today()
    res = create_batch(
        conn,
        BatchInput(size_id=sid, varieties=["Kalamay"], quantity=10, production_date=today,
                   expiry_date=today + timedelta(days=10)),
    )
    assert inventory_value(conn) == 6500.0

    update_size(conn, sid, name="Large Bilao", max_varieties=4, price=650)

    assert inventory_value(conn) == 6500.0
    assert get_batch(conn, res.batch_id)["size_name"] == "Large Bilao"
    assert list(value_by_size(conn)["size_name"]) == ["Large Bilao"]
