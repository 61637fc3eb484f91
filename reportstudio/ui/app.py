"""
Streamlit console entrypoint.
"""

from __future__ import annotations

import logging

import streamlit as st

from reportstudio.config import settings
from reportstudio.reference import SAMPLE_USERS
from reportstudio.ui.client import ReportStudioClient
from reportstudio.ui.pages import (
    render_assumptions_page,
    render_audit_page,
    render_data_points_page,
    render_exceptions_page,
    render_gaps_page,
    render_organization_page,
    render_periods_page,
    render_roles_page,
    render_rollover_page,
    render_standards_page,
)
from reportstudio.ui.session import get_acting_user_id, init_session_state, pop_flash, set_acting_user_id

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PAGES = {
    "Organization": render_organization_page,
    "Periods & sections": render_periods_page,
    "Data points": render_data_points_page,
    "Gaps": render_gaps_page,
    "Exceptions & readiness": render_exceptions_page,
    "Assumptions": render_assumptions_page,
    "Rollover": render_rollover_page,
    "Standards & maturity": render_standards_page,
    "Roles & users": render_roles_page,
    "Audit log": render_audit_page,
}


def main() -> None:
    st.set_page_config(
        page_title="ESG Report Studio",
        page_icon="🌱",
        layout="wide",
        initial_sidebar_state="expanded",
    )
    init_session_state()

    with st.sidebar:
        st.title("ESG Report Studio")
        ids = [u["id"] for u in SAMPLE_USERS]
        current = get_acting_user_id()
        acting = st.selectbox(
            "Acting as",
            SAMPLE_USERS,
            index=ids.index(current) if current in ids else 0,
            format_func=lambda u: f"{u['name']} ({u['role']})",
        )
        set_acting_user_id(acting["id"])
        page = st.radio("Page", list(PAGES))
        st.caption(f"API: {settings.api_base_url}")

    message = pop_flash()
    if message:
        st.success(message)

    client = ReportStudioClient(user_id=get_acting_user_id())
    PAGES[page](client)


if __name__ == "__main__":
    main()
