"""
Session state helpers for the Streamlit console.
"""

from __future__ import annotations

import streamlit as st

from reportstudio.reference import SAMPLE_USERS


def init_session_state() -> None:
    if "_acting_user_id" not in st.session_state:
        st.session_state["_acting_user_id"] = SAMPLE_USERS[0]["id"]
    if "_selected_period_id" not in st.session_state:
        st.session_state["_selected_period_id"] = None
    if "_flash" not in st.session_state:
        st.session_state["_flash"] = None


def get_acting_user_id() -> str:
    return st.session_state.get("_acting_user_id", SAMPLE_USERS[0]["id"])


def set_acting_user_id(user_id: str) -> None:
    if user_id:
        st.session_state["_acting_user_id"] = user_id


def get_selected_period_id() -> str | None:
    return st.session_state.get("_selected_period_id")


def set_selected_period_id(period_id: str | None) -> None:
    st.session_state["_selected_period_id"] = period_id


def flash(message: str) -> None:
    """Queue a success message shown after the next rerun."""
    st.session_state["_flash"] = message


def pop_flash() -> str | None:
    message = st.session_state.get("_flash")
    st.session_state["_flash"] = None
    return message
