"""Tests for tonestream/events.py."""

import logging

from tonestream.events import DoneEvent, ErrorEvent, TextEvent, parse_line


def test_non_data_lines_are_ignored():
    assert parse_line("") is None
    assert parse_line(": keep-alive") is None
    assert parse_line("event: message") is None
    assert parse_line("data:[DONE]") is None  # prefix requires the space


def test_done_sentinel():
    assert parse_line("data: [DONE]") == DoneEvent()


def test_text_payload():
    event = parse_line('data: {"parts":[{"type":"text","text":"Hello"}]}')
    assert event == TextEvent(text="Hello", is_complete=False)


def test_text_payload_without_type():
    assert parse_line('data: {"parts":[{"text":"Hel"}]}') == TextEvent(text="Hel")


def test_is_complete_flag_is_carried():
    event = parse_line('data: {"parts":[{"type":"text","text":"Done."}],"isComplete":true}')
    assert isinstance(event, TextEvent)
    assert event.is_complete is True


def test_first_text_part_wins_and_other_types_skipped():
    line = 'data: {"parts":[{"type":"image","url":"x"},{"type":"text","text":"A"},{"type":"text","text":"B"}]}'
    assert parse_line(line) == TextEvent(text="A")


def test_malformed_json_is_skipped_and_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="tonestream.events"):
        assert parse_line('data: {"parts": [') is None
    assert "malformed" in caplog.text


def test_payload_without_text_is_ignored():
    assert parse_line('data: {"parts":[]}') is None
    assert parse_line('data: {"parts":[{"type":"text","text":""}]}') is None
    assert parse_line('data: {"other": 1}') is None
    assert parse_line("data: 42") is None


def test_server_error_event():
    assert parse_line('data: {"type":"error","error":"quota exceeded"}') == ErrorEvent("quota exceeded")


def test_server_error_event_without_message():
    assert parse_line('data: {"type":"error"}') == ErrorEvent("Unknown server error")
