"""ASGI entrypoint. Serve with ``uvicorn billpilot.main:app`` or ``python -m billpilot.main``."""

import os

import uvicorn

from .core.app_factory import create_application

app = create_application()

__all__ = ("app",)


if __name__ == "__main__":
    uvicorn.run(
        "billpilot.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
