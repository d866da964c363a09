from __future__ import annotations

from pynai._redact import redact_for_log, summarize_transcript


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "type": "chat",
        "provider": "openrouter",
        "api_key": "sk-123",
        "headers": {"Authorization": "Bearer abc"},
        "token": {"access": "x"},
    }

    redacted = redact_for_log(payload)
    assert redacted["api_key"] == "<redacted>"
    assert redacted["headers"]["Authorization"] == "<redacted>"
    assert redacted["token"] == "<redacted>"
    assert redacted["provider"] == "openrouter"


def test_redact_for_log_truncates_long_strings() -> None:
    redacted = redact_for_log({"note": "x" * 600}, max_string=10)
    assert redacted["note"].startswith("x" * 10)
    assert "<truncated>" in redacted["note"]


def test_messages_are_reduced_to_roles_and_sizes() -> None:
    payload = {
        "type": "chat",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "my secret plan"},
        ],
        "prompt": "hello",
    }

    redacted = redact_for_log(payload)
    assert redacted["messages"] == [
        {"role": "system", "content": "<8 chars>"},
        {"role": "user", "content": "<14 chars>"},
    ]
    assert redacted["prompt"] == "<5 chars>"
    assert "my secret plan" not in repr(redacted)


def test_summarize_transcript_handles_odd_entries() -> None:
    assert summarize_transcript(["raw", 3]) == ["<3 chars>", "<int>"]
    assert summarize_transcript(b"abc") == "<bytes>"


def test_binary_values_are_not_expanded_per_byte() -> None:
    redacted = redact_for_log({"body": bytearray(b"abcd"), "raw": b"xy", "pair": ("a", b"z")})
    assert redacted["body"] == "<bytearray:4b>"
    assert redacted["raw"] == "<bytes:2b>"
    assert redacted["pair"] == ["a", "<bytes:1b>"]
