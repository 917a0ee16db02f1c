"""Cashbook application factory."""

from __future__ import annotations

from importlib import import_module
from typing import Iterable, Optional

from flask import Flask, jsonify

from . import cli as _cli
from .clock import Clock
from .config import BaseConfig, DevConfig, TestConfig
from .errors import (
    ConflictError,
    DisabledScheduleError,
    InvalidRuleError,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from .logging_config import get_logger, setup_logging

_CONFIG_MAP = {
    "development": DevConfig,
    "testing": TestConfig,
    "default": BaseConfig,
}

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int], ...] = (
    (ValidationError, 400),
    (InvalidRuleError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (DisabledScheduleError, 422),
)

logger = get_logger("app")


def _resolve_config(name: str | None) -> type[BaseConfig]:
    """Return the config class for the provided environment name."""

    if not name:
        return BaseConfig
    return _CONFIG_MAP.get(name.lower(), BaseConfig)


def _blueprint_paths() -> Iterable[str]:
    yield "cashbook.blueprints.transactions"
    yield "cashbook.blueprints.accounts"
    yield "cashbook.blueprints.schedules"


def create_app(
    config_name: str | None = None,
    *,
    config: Optional[BaseConfig] = None,
    clock: Optional[Clock] = None,
) -> Flask:
    """Create and configure the Flask application instance.

    ``config`` and ``clock`` override the environment-derived configuration and the
    system clock (tests pass both).
    """

    app = Flask(__name__, instance_relative_config=True)
    config_obj = config or _resolve_config(config_name)()
    app.config.from_object(config_obj)
    app.config["CASHBOOK_CONFIG"] = config_obj

    setup_logging(config_obj)

    # Import lazily so that importing the package does not build mappers.
    from .context import create_app_context
    from .extensions import init_app

    init_app(app, create_app_context(config_obj, clock=clock))
    _register_blueprints(app)
    _register_error_handlers(app)
    _cli.init_app(app)

    logger.info("Application created", extra={"database_url": config_obj.DATABASE_URL})
    return app


def _register_blueprints(app: Flask) -> None:
    """Import and register all blueprints declared in `_blueprint_paths`."""

    for dotted_path in _blueprint_paths():
        module = import_module(dotted_path)
        blueprint = getattr(module, "bp")
        app.register_blueprint(blueprint)


def status_for(error: LedgerError) -> int:
    for error_cls, status in _STATUS_BY_ERROR:
        if isinstance(error, error_cls):
            return status
    return 500


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def _handle_ledger_error(error: LedgerError):
        status = status_for(error)
        if status == 409:
            logger.warning("Request conflicted", extra={"error": error.message})
        return jsonify(error.to_dict()), status


__all__ = ["BaseConfig", "DevConfig", "TestConfig", "create_app"]
