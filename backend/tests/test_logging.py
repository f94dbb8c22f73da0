"""Tests for structured logging context helpers."""
from __future__ import annotations

import structlog

from shared.utils.logging import match_log_context


def test_match_log_context_binds_and_restores() -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service="live_sync")

    with match_log_context("m-42", session_id="s1"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["match_id"] == "m-42"
        assert bound["session_id"] == "s1"
        assert bound["service"] == "live_sync"

    after = structlog.contextvars.get_contextvars()
    assert "match_id" not in after
    assert "session_id" not in after
    assert after["service"] == "live_sync"
    structlog.contextvars.clear_contextvars()
