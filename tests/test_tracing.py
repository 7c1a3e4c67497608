"""Tests for trace id scoping."""

import structlog

from crmflow.observability.tracing import TraceContext, get_trace_id


def test_trace_id_scoped_to_block() -> None:
    assert get_trace_id() == ""

    with TraceContext(trigger="lead_created") as trace_id:
        assert get_trace_id() == trace_id
        bound = structlog.contextvars.get_contextvars()
        assert bound["trace_id"] == trace_id
        assert bound["trigger"] == "lead_created"

    assert get_trace_id() == ""
    assert "trigger" not in structlog.contextvars.get_contextvars()


def test_nested_context_joins_enclosing_trace() -> None:
    with TraceContext(event_id="evt_1") as outer:
        with TraceContext(trigger="sale_created") as inner:
            assert inner == outer
            assert structlog.contextvars.get_contextvars()["event_id"] == "evt_1"
        assert "trigger" not in structlog.contextvars.get_contextvars()
        assert get_trace_id() == outer


def test_explicit_trace_id_wins() -> None:
    with TraceContext("abc123"):
        with TraceContext("def456") as inner:
            assert inner == "def456"
        assert get_trace_id() == "abc123"
