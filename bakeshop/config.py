from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import streamlit as st
from dotenv import load_dotenv

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "BAKESHOP_DATA_DIR"
SESSION_DATA_DIR_KEY = "bakeshop_data_dir"

load_dotenv()


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "₱"
    log_level: str = "INFO"

    # Image hosting (Cloudinary)
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None
    cloudinary_upload_preset: Optional[str] = None
    cloudinary_folder: str = "inventory"

    # First admin account, created only when no user exists yet
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    order_refresh_seconds: int = 5


def _default_data_dir() -> Path:
    return Path.home() / ".bakeshop_admin"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    # Always written to the default folder so the next start finds it.
    default_dir = _default_data_dir()
    default_dir.mkdir(parents=True, exist_ok=True)
    payload = {"data_dir": str(data_dir)}
    (default_dir / CONFIG_FILE_NAME).write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR_KEY] = str(data_dir)


def _resolve_data_dir(session_value: Optional[str]) -> Path:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if session_value:
        return Path(session_value).expanduser().resolve()
    if os.getenv(ENV_DATA_DIR):
        return Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    default_dir = _default_data_dir()
    persisted = _load_persisted_settings(default_dir)
    return Path(persisted.get("data_dir", default_dir)).expanduser().resolve()


def load_settings(session_value: Optional[str] = None) -> Settings:
    data_dir = _resolve_data_dir(session_value)
    data_dir.mkdir(parents=True, exist_ok=True)

    return Settings(
        data_dir=data_dir,
        db_path=data_dir / "app.db",
        currency=os.getenv("BAKESHOP_CURRENCY", "₱"),
        log_level=os.getenv("BAKESHOP_LOG_LEVEL", "INFO").upper(),
        cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
        cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
        cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
        cloudinary_upload_preset=os.getenv("CLOUDINARY_UPLOAD_PRESET"),
        cloudinary_folder=os.getenv("CLOUDINARY_FOLDER", "inventory"),
        admin_email=os.getenv("BAKESHOP_ADMIN_EMAIL"),
        admin_password=os.getenv("BAKESHOP_ADMIN_PASSWORD"),
        order_refresh_seconds=int(os.getenv("BAKESHOP_ORDER_REFRESH_SECONDS", "5")),
    )


@st.cache_resource
def get_settings() -> Settings:
    return load_settings(st.session_state.get(SESSION_DATA_DIR_KEY))
