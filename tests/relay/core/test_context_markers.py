"""Tests for context-update extraction from AI replies."""

from relay.core.context_markers import (
    extract_context_updates,
    parse_markers,
    strip_markers,
)


def test_parse_markers_returns_key_values():
    text = "Got it [[SET:name=Ana]] and [[SET:plan=pro]]"
    assert parse_markers(text) == {"name": "Ana", "plan": "pro"}


def test_later_marker_wins():
    assert parse_markers("[[SET:a=1]][[SET:a=2]]") == {"a": "2"}


def test_strip_markers_removes_every_marker():
    assert strip_markers("Welcome back! [[SET:returning=yes]]") == "Welcome back!"


def test_malformed_markers_are_left_alone():
    text = "[[SET:bad key=1]] [[SET:=x]]"
    assert parse_markers(text) == {}
    assert strip_markers(text) == text


def test_extract_context_updates_merges_traces_in_order():
    traces = [
        {"type": "set-variables", "payload": {"stage": "intro", "score": 1}},
        {"type": "text", "payload": {"message": "Hi [[SET:stage=qualified]]"}},
        {"type": "speak", "payload": {"message": "[[SET:ignored=1]]"}},
    ]
    assert extract_context_updates(traces) == {"stage": "qualified", "score": 1}


def test_extract_context_updates_ignores_non_lists():
    assert extract_context_updates({"type": "text"}) == {}
    assert extract_context_updates(None) == {}
