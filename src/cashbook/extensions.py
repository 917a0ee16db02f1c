"""Service and database wiring for the Flask app."""

from __future__ import annotations

from flask import Flask, current_app

from .context import AppContext

EXTENSION_KEY = "cashbook"


def init_app(app: Flask, context: AppContext) -> None:
    """Attach the application context so views and CLI commands can reach services."""

    app.extensions[EXTENSION_KEY] = context


def get_context() -> AppContext:
    """Return the context of the active app."""

    try:
        return current_app.extensions[EXTENSION_KEY]
    except KeyError:  # pragma: no cover - only when the factory was bypassed
        raise RuntimeError("Cashbook services not initialized") from None


__all__ = ["EXTENSION_KEY", "get_context", "init_app"]
