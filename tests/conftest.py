import pytest

from bakeshop import auth
from bakeshop.db import connect, ensure_schema
from bakeshop.services.demo_data import upsert_reference_data


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    # Lowest cost bcrypt accepts
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def bare_conn():
    conn = connect(":memory:")
    ensure_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def conn(bare_conn):
    upsert_reference_data(bare_conn)
    return bare_conn


class FakeImageStore:
    """Records uploads and deletes instead of talking to Cloudinary."""

    def __init__(self, *, fail_upload=False, fail_delete=False):
        self.fail_upload = fail_upload
        self.fail_delete = fail_delete
        self.uploaded = []
        self.deleted = []

    def upload(self, file, filename="image"):
        if self.fail_upload:
            from bakeshop.errors import ImageUploadError

            raise ImageUploadError("Failed to upload image.")
        url = f"https://res.cloudinary.com/demo/image/upload/v1/inventory/{filename}"
        self.uploaded.append(url)
        return url

    def delete(self, url):
        self.deleted.append(url)
        return not self.fail_delete

    def replace(self, old_url, file, filename="image"):
        new_url = self.upload(file, filename)
        if old_url and old_url != new_url:
            self.delete(old_url)
        return new_url


@pytest.fixture
def images():
    return FakeImageStore()


@pytest.fixture
def make_images():
    return FakeImageStore


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Fresh data directory for page scripts run under streamlit's AppTest."""
    import streamlit as st

    monkeypatch.setenv("BAKESHOP_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("BAKESHOP_ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("BAKESHOP_ADMIN_PASSWORD", raising=False)
    st.cache_resource.clear()
    yield tmp_path / "data" / "app.db"
    st.cache_resource.clear()


@pytest.fixture
def admin_session():
    return auth.Session(user_id=1, email="owner@bbnka.ph", name="Owner", role="admin", permissions=[])
