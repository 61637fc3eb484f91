"""
ESG Report Studio admin console (Streamlit).

Run with ``streamlit run tools/streamlit_app.py``.
"""

from __future__ import annotations

from reportstudio.ui.app import main

__all__ = ["main"]
