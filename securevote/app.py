"""Application entry point for the SecureVote passkey service."""
from __future__ import annotations

import logging
import os

from .config import app

# Import the route modules so their decorators register endpoints with Flask.
from .routes import general  # noqa: F401
from .routes import passkey  # noqa: F401


def _configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def main() -> None:
    _configure_logging()
    # The service talks to the local authenticator, so it binds to loopback by default.
    app.run(
        host=os.environ.get("SECUREVOTE_HOST", "localhost"),
        port=int(os.environ.get("SECUREVOTE_PORT", "5000")),
        debug=bool(os.environ.get("SECUREVOTE_DEBUG")),
    )


__all__ = ["app", "main"]


if __name__ == "__main__":  # pragma: no cover - convenience script entry point.
    main()
