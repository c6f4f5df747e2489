"""Convenience launcher for the Streamlit app.

Usage:
  streamlit run run_dashboard.py

Imports every module in ``cycletime_app/pages`` so each page decorated with
``@register_page`` registers itself.
"""

import logging
from importlib import import_module
from pathlib import Path

import requests
import streamlit as st
from jira import JIRAError

from cycletime_app.app import main

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("cycletime_app")

st.set_page_config(page_title="Jira Cycle Time", layout="wide")


def _auto_init_issue_service():
    """Initialize the Jira service from Streamlit secrets if available."""
    if "issue_service" in st.session_state:
        return
    from cycletime_app.pages.setup import connect, jira_secrets

    creds = jira_secrets()
    if not all(creds.values()):
        st.sidebar.warning("Jira secrets not found. Please use the Setup page.")
        return
    try:
        connect(creds["server"], creds["email"], creds["token"])
        st.sidebar.success("Jira connection successful!")
    except (JIRAError, requests.RequestException, RuntimeError) as e:
        logger.warning("Jira connection from secrets failed: %s", e)
        st.sidebar.error(f"Jira connection failed: {e}")
        st.session_state.pop("issue_service", None)


PAGES_DIR = Path(__file__).parent / "cycletime_app" / "pages"
for py in sorted(PAGES_DIR.glob("[!_]*.py")):
    mod_name = f"cycletime_app.pages.{py.stem}"
    try:
        import_module(mod_name)
    except ImportError as e:  # pragma: no cover
        logger.error("Failed importing page %s: %s", mod_name, e)

_auto_init_issue_service()

if __name__ == "__main__":
    main()
