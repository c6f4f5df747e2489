"""Application entry point: page registry and router."""

from __future__ import annotations

import logging

import streamlit as st

logger = logging.getLogger(__name__)

PAGES = {}

PREFERRED_ORDER = [
    "Cycle Time",  # timeline + statistics
    "Sub-task Groups",  # keyword groups for sub-task stats
    "Setup / Connection",
]


def register_page(label):
    def decorator(func):
        PAGES[label] = func
        return func

    return decorator


def ordered_pages(labels):
    """Preferred pages first, anything else alphabetically after them."""
    ordered = [name for name in PREFERRED_ORDER if name in labels]
    return ordered + sorted(name for name in labels if name not in PREFERRED_ORDER)


def main():
    st.sidebar.title("Jira Cycle Time")
    pages = ordered_pages(list(PAGES.keys()))
    if not pages:
        st.write("No pages registered yet.")
        return
    # Without a connection the setup page is the only useful one
    if "Setup / Connection" in pages and "issue_service" not in st.session_state:
        default = pages.index("Setup / Connection")
    else:
        default = 0
    page = st.sidebar.selectbox("Page", pages, index=default)
    logger.debug("Rendering page %s", page)
    PAGES[page]()


if __name__ == "__main__":
    main()
