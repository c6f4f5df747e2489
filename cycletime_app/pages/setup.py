"""Connection setup page: collect Jira credentials and initialize IssueService."""

from __future__ import annotations

import requests
import streamlit as st
from jira import JIRAError

from cycletime_app.app import register_page
from cycletime_app.core.config import JIRA_DEFAULT_SERVER
from cycletime_app.core.jira_client import JiraAPI, JiraFetchError
from cycletime_app.core.service import IssueService


def jira_secrets() -> dict[str, str | None]:
    """Credentials from a ``[jira]`` secrets section, falling back to top-level keys."""
    section = st.secrets.get("jira", {})

    def pick(*names: str) -> str | None:
        for name in names:
            value = section.get(name) or st.secrets.get(name)
            if value:
                return value
        return None

    return {
        "server": pick("JIRA_SERVER"),
        "email": pick("JIRA_EMAIL"),
        "token": pick("JIRA_API_TOKEN", "JIRA_TOKEN"),
    }


def connect(server: str, email: str, token: str) -> IssueService:
    api = JiraAPI(server, email, token)
    service = IssueService(api)
    st.session_state["jira_server"] = api.server
    st.session_state["jira_email"] = email
    st.session_state["issue_service"] = service
    return service


@register_page("Setup / Connection")
def setup_page():
    st.title("Jira Connection Setup")
    st.caption("Enter credentials (use secrets manager in production).")

    secrets = jira_secrets()
    server = st.text_input(
        "Jira Server URL",
        value=st.session_state.get("jira_server") or secrets["server"] or "",
        placeholder=JIRA_DEFAULT_SERVER,
    )
    email = st.text_input("Email / Username", value=st.session_state.get("jira_email") or secrets["email"] or "")
    token = st.text_input("API Token", type="password", value=secrets["token"] or "")
    verify = st.checkbox("Verify custom field lookup after connecting", value=True)

    if st.button("Initialize Connection", type="primary"):
        if not (server and email and token):
            st.error("All fields required.")
            return
        try:
            service = connect(server, email, token)
        except (JIRAError, requests.RequestException, RuntimeError) as exc:
            st.error(f"Failed to initialize Jira client: {exc}")
            return
        st.success("Connection initialized.")
        if verify:
            try:
                ids = service.api.field_ids()
            except JiraFetchError as exc:
                st.warning(f"Connected, but the field lookup failed: {exc}")
                return
            missing = [label for label, fid in (("Epic Link", ids.get("epic_link")), ("Parent Link", ids.get("parent_link"))) if not fid]
            if missing:
                st.info(f"Fields not present on this site: {', '.join(missing)}. Native parent links are used instead.")

    if "issue_service" in st.session_state:
        st.info("IssueService ready.")
