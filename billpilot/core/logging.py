import logging
import os
import re

_JWT_PATTERN = re.compile(r"eyJ[\w-]+\.[\w-]+\.[\w-]+")


class RedactTokensFilter(logging.Filter):
    """Masks signed tokens so session credentials never reach the logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if _JWT_PATTERN.search(message):
            record.msg = _JWT_PATTERN.sub("[REDACTED]", message)
            record.args = None
        return True


def configure_logging() -> None:
    """Configure structured logging defaults for the application."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactTokensFilter) for f in handler.filters):
            handler.addFilter(RedactTokensFilter())
