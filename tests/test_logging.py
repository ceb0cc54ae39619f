import logging

from billpilot.core.logging import RedactTokensFilter
from billpilot.services.token_issuer import TokenIssuer


def _record(msg, *args):
    return logging.LogRecord("billpilot", logging.INFO, __file__, 1, msg, args, None)


def test_tokens_are_redacted_from_messages():
    token = TokenIssuer("logging-secret-that-is-long-enough-for-hs256").issue_refresh(1)
    record = _record("presented %s for user %s", token, 1)

    assert RedactTokensFilter().filter(record) is True
    assert token not in record.getMessage()
    assert record.getMessage() == "presented [REDACTED] for user 1"


def test_plain_messages_pass_through():
    record = _record("user %s logged in", 7)

    assert RedactTokensFilter().filter(record) is True
    assert record.getMessage() == "user 7 logged in"
