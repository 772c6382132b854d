from __future__ import annotations

from typing import Optional

import streamlit as st

from bakeshop.auth import Session, has_permission, refresh_session

SESSION_KEY = "bakeshop_session"


def current_session() -> Optional[Session]:
    return st.session_state.get(SESSION_KEY)


def start_session(session: Session) -> None:
    st.session_state[SESSION_KEY] = session


def sign_out() -> None:
    st.session_state.pop(SESSION_KEY, None)


def revalidate(conn) -> Optional[Session]:
    """Drops the session when the account was deactivated meanwhile."""
    session = current_session()
    if session is None:
        return None
    fresh = refresh_session(conn, session)
    if fresh is None:
        sign_out()
    else:
        start_session(fresh)
    return fresh


def require_session() -> Session:
    session = current_session()
    if session is None:
        st.warning("Please sign in to continue.")
        st.stop()
    return session


def require_permission(permission: str) -> Session:
    session = require_session()
    if not has_permission(session, permission):
        st.error("You do not have access to this screen.")
        st.stop()
    return session


def can(permission: str) -> bool:
    return has_permission(current_session(), permission)
