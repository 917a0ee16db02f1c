"""Schedules API blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint("schedules", __name__, url_prefix="/api/schedules")

from . import routes  # noqa: E402,F401 - ensure routes get registered

__all__ = ["bp"]
