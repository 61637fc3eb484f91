"""
ESG Report Studio.

REST backend (``reportstudio.api``) and Streamlit admin console
(``reportstudio.ui``) for preparing ESG disclosure reports.
"""

__version__ = "0.1.0"
