from __future__ import annotations

import streamlit as st

from bakeshop.auth import sign_in, validate_email, validate_password
from bakeshop.context import get_context
from bakeshop.errors import AuthError
from bakeshop.guard import start_session

ctx = get_context()

st.title("🍰 BBNKA Admin")
st.caption("Enter your login details to continue.")

with st.form("login"):
    email = st.text_input("Email", placeholder="Enter your email address")
    password = st.text_input("Password", type="password", placeholder="Enter your password")
    submitted = st.form_submit_button("LOGIN", type="primary")

if submitted:
    problems = [p for p in (validate_email(email.strip()), validate_password(password)) if p]
    if problems:
        for p in problems:
            st.error(p)
    else:
        try:
            start_session(sign_in(ctx.conn, email, password))
            st.rerun()
        except AuthError as e:
            st.error(str(e))
        except Exception as e:
            st.error(f"Login failed. Please try again later. ({e})")
