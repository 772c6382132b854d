import pytest
import requests

from bakeshop import images as images_mod
from bakeshop.errors import ImageUploadError
from bakeshop.images import ImageStore, public_id_from_url


class FakeResponse:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://res.cloudinary.com/demo/image/upload/v1712345/inventory/abc123.jpg", "inventory/abc123"),
        ("https://res.cloudinary.com/demo/image/upload/inventory/cake.png", "inventory/cake"),
        ("https://res.cloudinary.com/demo/image/upload/c_fill,w_200/v99/inventory/x.webp", "inventory/x"),
        ("https://example.com/cake.png", None),
        ("", None),
    ],
)
def test_public_id_from_url(url, expected):
    assert public_id_from_url(url) == expected


def test_unsigned_upload_posts_preset(monkeypatch):
    calls = {}

    def fake_post(url, data=None, files=None, timeout=None):
        calls.update(url=url, data=data, files=files, timeout=timeout)
        return FakeResponse({"secure_url": "https://res.cloudinary.com/demo/image/upload/v1/inventory/a.png"})

    monkeypatch.setattr(images_mod.requests, "post", fake_post)
    store = ImageStore("demo", upload_preset="bakeshop")

    url = store.upload(b"bytes", "a.png")

    assert url.endswith("/inventory/a.png")
    assert calls["url"] == "https://api.cloudinary.com/v1_1/demo/image/upload"
    assert calls["data"] == {"upload_preset": "bakeshop"}
    assert calls["files"]["file"][0] == "a.png"


def test_upload_failure_raises(monkeypatch):
    monkeypatch.setattr(images_mod.requests, "post", lambda *a, **k: FakeResponse({}, status=400))
    with pytest.raises(ImageUploadError):
        ImageStore("demo", upload_preset="bakeshop").upload(b"bytes", "a.png")


def test_unconfigured_store_refuses_upload():
    store = ImageStore(None)
    assert not store.enabled
    with pytest.raises(ImageUploadError):
        store.upload(b"bytes")


def test_signed_delete_is_best_effort(monkeypatch):
    store = ImageStore("demo", api_key="k", api_secret="s")

    def boom(public_id, resource_type=None):
        raise RuntimeError("network down")

    monkeypatch.setattr(images_mod.cloudinary.uploader, "destroy", boom)
    assert store.delete("https://res.cloudinary.com/demo/image/upload/v1/inventory/a.png") is False

    monkeypatch.setattr(images_mod.cloudinary.uploader, "destroy", lambda public_id, resource_type=None: {"result": "ok"})
    assert store.delete("https://res.cloudinary.com/demo/image/upload/v1/inventory/a.png") is True


def test_unsigned_store_does_not_delete():
    store = ImageStore("demo", upload_preset="bakeshop")
    assert store.delete("https://res.cloudinary.com/demo/image/upload/v1/inventory/a.png") is False
