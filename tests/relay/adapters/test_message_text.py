"""Tests for text extraction and timestamp normalization shared by adapters."""

import time

import pytest

from relay.adapters.base import extract_text, to_epoch_millis


@pytest.mark.parametrize(
    "message,expected",
    [
        ({"text": "Hello"}, "Hello"),
        ({"text": "", "quick_reply": {"payload": "YES"}}, "YES"),
        ({"postback": {"title": "Start", "payload": "GET_STARTED"}}, "GET_STARTED"),
        ({"postback": {"title": "Start"}}, "Start"),
        ({"attachments": [{"type": "image"}, {"type": "audio"}]}, "[image] [audio]"),
        ({"mid": "m_1"}, ""),
        ({}, ""),
    ],
)
def test_extract_text(message, expected):
    assert extract_text(message) == expected


def test_to_epoch_millis_keeps_millis():
    assert to_epoch_millis(1700000000123) == 1700000000123


def test_to_epoch_millis_accepts_strings():
    assert to_epoch_millis("1700000000") == 1700000000000


@pytest.mark.parametrize("value", [None, "not-a-time", 0, -5])
def test_to_epoch_millis_falls_back_to_now(value):
    before = int(time.time() * 1000)
    assert to_epoch_millis(value) >= before
