"""Progress banner shown while an issue hierarchy is being pulled."""

from __future__ import annotations

import logging

import streamlit as st

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Banner + progress bar; ``callback`` plugs into ``IssueService.pull``."""

    def __init__(self, title: str):
        self._box = st.container()
        self._box.info(title)
        self._step = self._box.empty()
        self._bar = self._box.progress(0.0)
        self._steps: list[str] = []
        self._done = False

    def callback(self, message: str, current: int | None = None, total: int | None = None) -> None:
        if self._done:
            return
        if not self._steps or self._steps[-1] != message:
            self._steps.append(message)
            logger.debug("Pull step: %s", message)
        self._step.write(message)
        if total:
            self._bar.progress(min(max((current or 0) / total, 0.0), 1.0))

    def complete(self, message: str) -> None:
        if self._done:
            return
        self._bar.progress(1.0)
        self._box.success(message)
        self._done = True

    def error(self, message: str) -> None:
        if self._done:
            return
        self._box.error(message)
        self._done = True
