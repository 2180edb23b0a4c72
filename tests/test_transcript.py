"""Tests for the in-memory conversation transcript."""

from datetime import datetime

from synax.core.schema import Role
from synax.memory.transcript import Transcript


def _fixed_clock() -> datetime:
    return datetime(2024, 5, 1, 9, 30, 0)


def test_multiline_input_becomes_one_entry_per_line() -> None:
    """Appending "a\\nb" yields two timestamped USER entries."""

    transcript = Transcript(clock=_fixed_clock)
    assert transcript.add_user_input("a\nb") == 2

    entries = transcript.entries()
    assert [(e.role, e.text) for e in entries] == [(Role.USER, "a"), (Role.USER, "b")]
    assert all(e.timestamp == _fixed_clock() for e in entries)
    assert transcript.render() == (
        "[2024-05-01 09:30:00] USER: a\n[2024-05-01 09:30:00] USER: b"
    )


def test_empty_and_none_add_nothing() -> None:
    """Empty strings, blank lines and None are ignored."""

    transcript = Transcript()
    assert transcript.add_user_input("") == 0
    assert transcript.add_user_input(None) == 0
    assert transcript.add_response("\r\n  \n") == 0
    assert len(transcript) == 0


def test_responses_are_labelled_and_crlf_is_split() -> None:
    """Responses use the RESPONSE role and Windows line endings split too."""

    transcript = Transcript(clock=_fixed_clock)
    transcript.add_response("first\r\nsecond")
    assert transcript.render().splitlines() == [
        "[2024-05-01 09:30:00] RESPONSE: first",
        "[2024-05-01 09:30:00] RESPONSE: second",
    ]


def test_render_limit_keeps_most_recent_entries() -> None:
    """A limit keeps only the newest entries; None keeps all."""

    transcript = Transcript(clock=_fixed_clock)
    transcript.add_user_input("one\ntwo\nthree")
    assert transcript.render(limit=2).endswith("USER: two\n[2024-05-01 09:30:00] USER: three")
    assert "one" not in transcript.render(limit=2)
    assert "one" in transcript.render()


def test_clear_wipes_everything() -> None:
    """clear() empties the store."""

    transcript = Transcript()
    transcript.add_user_input("hello")
    transcript.clear()
    assert transcript.render() == ""
    assert transcript.entries() == []
