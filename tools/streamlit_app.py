"""
Streamlit admin console for ESG Report Studio.

Expects the API to be running (``reportstudio-api``); point it elsewhere with
REPORTSTUDIO_API_URL.

Usage:
    streamlit run tools/streamlit_app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from reportstudio.ui.app import main  # noqa: E402

if __name__ == "__main__":
    main()
