"""SecureVote passkey service package exposing the Flask application."""
from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__all__ = ["app", "main"]


if TYPE_CHECKING:  # pragma: no cover - import only for static analysis.
    from .app import app as _app  # noqa: F401
    from .app import main as _main  # noqa: F401

    app = _app
    main = _main


def __getattr__(name: str) -> Any:
    """Lazily import the application so the core modules import without routes."""

    if name in __all__:
        module = import_module(".app", __name__)
        return getattr(module, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))
