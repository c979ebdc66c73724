import logging

import structlog

from checkout.logging_config import setup_logging


def test_setup_logging_routes_stdlib_through_structlog():
    setup_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_accepts_lowercase_level():
    setup_logging("warning")

    assert logging.getLogger().level == logging.WARNING


def test_redact_secrets(monkeypatch):
    from checkout.logging_config import redact_secrets, settings

    monkeypatch.setattr(settings, "jupiter_api_key", "sekrit")
    event = redact_secrets(None, "info", {"event": "calling with sekrit", "auth_token": "tok", "payer": "abc"})

    assert event["event"] == "calling with ***"
    assert event["auth_token"] == "***"
    assert event["payer"] == "abc"
