"""Tests for camunda_connector.logging."""

from __future__ import annotations

import logging

import structlog

from camunda_connector.logging import setup_logging


class TestSetupLogging:
    def test_json_mode(self):
        setup_logging(json=True, level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_console_mode(self):
        setup_logging(json=False, level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG

    def test_level_case_insensitive(self):
        setup_logging(level="warning")
        root = logging.getLogger()
        assert root.level == logging.WARNING

    def test_replaces_existing_handlers(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())
        root.addHandler(logging.StreamHandler())
        setup_logging()
        assert len(root.handlers) == 1

    def test_quiets_pika(self):
        setup_logging(level="DEBUG")
        assert logging.getLogger("pika").level == logging.WARNING

    def test_binds_context(self):
        setup_logging(owner="bpm-team", queue="bpm-tasks")
        bound = structlog.contextvars.get_contextvars()
        assert bound["owner"] == "bpm-team"
        assert bound["queue"] == "bpm-tasks"
        structlog.contextvars.clear_contextvars()

    def test_rebinding_drops_old_context(self):
        setup_logging(owner="first")
        setup_logging(queue="second")
        bound = structlog.contextvars.get_contextvars()
        assert "owner" not in bound
        assert bound["queue"] == "second"
        structlog.contextvars.clear_contextvars()
