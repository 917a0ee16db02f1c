"""Scheduled transaction routes."""

from __future__ import annotations

from datetime import timedelta

from flask import jsonify, request

from ...errors import ValidationError
from ...extensions import get_context
from ...serializers import parse_datetime, parse_int, schedule_to_dict, transaction_to_dict
from ...services.recurrence import occurrences
from . import bp

MAX_PREVIEW = 100


@bp.post("/<int:schedule_id>/post")
def post_schedule(schedule_id: int):
    """Book the due occurrence and move the schedule to its next one."""
    tx = get_context().scheduler.post(schedule_id)
    return jsonify(transaction_to_dict(tx)), 201


@bp.post("/<int:schedule_id>/skip")
def skip_schedule(schedule_id: int):
    schedule = get_context().scheduler.skip(schedule_id)
    return jsonify(schedule_to_dict(schedule))


@bp.get("/due")
def due_schedules():
    """Enabled schedules due now, or within ``horizon_days``."""
    ctx = get_context()
    horizon_days = parse_int(request.args.get("horizon_days"), field="horizon_days", default=0)
    if horizon_days < 0:
        raise ValidationError("horizon_days must not be negative", horizon_days=horizon_days)
    as_of = request.args.get("as_of")
    due = ctx.scheduler.due_pending(
        as_of=parse_datetime(as_of, field="as_of") if as_of else None,
        horizon=timedelta(days=horizon_days),
    )
    return jsonify([schedule_to_dict(schedule) for schedule in due])


@bp.get("/preview")
def preview():
    ctx = get_context()
    pattern = request.args.get("pattern")
    if not pattern:
        raise ValidationError("pattern is required")
    value = parse_int(request.args.get("value"), field="value")
    count = parse_int(request.args.get("count"), field="count", default=3)
    if not 0 <= count <= MAX_PREVIEW:
        raise ValidationError(f"count must be between 0 and {MAX_PREVIEW}", count=count)
    start_raw = request.args.get("from")
    start = parse_datetime(start_raw, field="from") if start_raw else ctx.clock.now()
    dates = occurrences(pattern, value, start, count)
    return jsonify(
        {
            "pattern": pattern,
            "value": value,
            "from": start.isoformat(),
            "occurrences": [when.isoformat() for when in dates],
        }
    )
