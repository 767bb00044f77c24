"""Tests for the log redaction processor."""

from __future__ import annotations

from boxops.observability import redact_secrets


def test_secret_keys_are_masked():
    event = redact_secrets(None, 'info', {'event': 'login', 'password': 'hunter2', 'Token': 'abc'})
    assert event == {'event': 'login', 'password': '[REDACTED]', 'Token': '[REDACTED]'}


def test_bearer_values_in_messages_are_masked():
    event = redact_secrets(None, 'info', {'event': 'sent Authorization: Bearer abc.def'})
    assert event['event'] == 'sent Authorization: Bearer [REDACTED]'


def test_inline_assignments_are_masked():
    event = redact_secrets(None, 'info', {'error': 'token=xyz password: pw1, user=bob'})
    assert event['error'] == 'token=[REDACTED] password: [REDACTED], user=bob'


def test_non_string_values_untouched():
    event = redact_secrets(None, 'info', {'event': 'poll', 'attempt': 3, 'ids': ['a']})
    assert event == {'event': 'poll', 'attempt': 3, 'ids': ['a']}
