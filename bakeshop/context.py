from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

import streamlit as st

from bakeshop.config import Settings, get_settings
from bakeshop.db import connect, ensure_schema
from bakeshop.images import ImageStore
from bakeshop.services.demo_data import upsert_reference_data
from bakeshop.services.users import bootstrap_admin

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a page needs to talk to storage, built once per data directory."""

    settings: Settings
    conn: sqlite3.Connection
    images: ImageStore

    def close(self) -> None:
        self.conn.close()
        logger.info("Closed database %s", self.settings.db_path)


def build_context(settings: Settings) -> AppContext:
    conn = connect(settings.db_path)
    ensure_schema(conn)
    upsert_reference_data(conn)
    bootstrap_admin(conn, settings.admin_email, settings.admin_password)
    logger.info("Opened database %s", settings.db_path)
    return AppContext(settings=settings, conn=conn, images=ImageStore.from_settings(settings))


@st.cache_resource
def _cached_context(_settings: Settings, db_path: str) -> AppContext:
    # Keyed on the database path only; _settings is not hashed.
    return build_context(_settings)


def get_context() -> AppContext:
    settings = get_settings()
    return _cached_context(settings, str(settings.db_path))


def release_context() -> None:
    """Closes the current connection and forgets cached resources."""
    settings = get_settings()
    _cached_context(settings, str(settings.db_path)).close()
    st.cache_resource.clear()
