"""Flask CLI commands for Cashbook."""

from __future__ import annotations

from datetime import timedelta

import click

from .errors import LedgerError


def _context():
    # Import here to avoid circular imports at module import time
    from .extensions import get_context

    return get_context()


def _fail(error: LedgerError) -> click.ClickException:
    return click.ClickException(f"{error.code}: {error.message}")


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("cashbook-due")
    @click.option("--horizon-days", type=click.IntRange(min=0), default=0, show_default=True)
    def cashbook_due(horizon_days: int) -> None:
        """List enabled scheduled transactions that are due."""

        count = 0
        for schedule in _context().scheduler.due_pending(horizon=timedelta(days=horizon_days)):
            count += 1
            click.echo(
                f"{schedule.id}\t{schedule.next_occurrence:%Y-%m-%d}\t"
                f"{schedule.type.value}\t{schedule.amount}\t{schedule.memo or ''}"
            )
        click.echo(f"{count} due")

    @app.cli.command("cashbook-post")
    @click.argument("schedule_id", type=int)
    def cashbook_post(schedule_id: int) -> None:
        """Book the due occurrence of a scheduled transaction."""

        try:
            tx = _context().scheduler.post(schedule_id)
        except LedgerError as exc:
            raise _fail(exc) from exc
        click.echo(f"Posted transaction {tx.id} on {tx.transaction_date:%Y-%m-%d} ({tx.amount})")

    @app.cli.command("cashbook-skip")
    @click.argument("schedule_id", type=int)
    def cashbook_skip(schedule_id: int) -> None:
        """Skip the due occurrence of a scheduled transaction."""

        try:
            schedule = _context().scheduler.skip(schedule_id)
        except LedgerError as exc:
            raise _fail(exc) from exc
        click.echo(f"Next occurrence: {schedule.next_occurrence:%Y-%m-%d}")

    @app.cli.command("cashbook-balance")
    @click.argument("account_id", type=int)
    def cashbook_balance(account_id: int) -> None:
        """Print an account's current balance."""

        try:
            balance = _context().ledger.balance_of(account_id)
        except LedgerError as exc:
            raise _fail(exc) from exc
        click.echo(str(balance))

    @app.cli.command("cashbook-preview")
    @click.argument("pattern")
    @click.option("--value", type=int, default=None, help="Interval for value-based patterns")
    @click.option("--from", "start", type=click.DateTime(), default=None)
    @click.option("--count", type=click.IntRange(min=0, max=100), default=3, show_default=True)
    def cashbook_preview(pattern: str, value, start, count: int) -> None:
        """Show the next occurrences of a recurrence rule."""

        from .services.recurrence import occurrences

        begin = start or _context().clock.now()
        try:
            dates = occurrences(pattern, value, begin, count)
        except LedgerError as exc:
            raise _fail(exc) from exc
        for when in dates:
            click.echo(when.strftime("%Y-%m-%d (%a)"))

    @app.cli.command("cashbook-recalculate")
    @click.option("--account-id", type=int, default=None)
    @click.option("--dry-run", is_flag=True, default=False, help="Report drift without fixing")
    def cashbook_recalculate(account_id, dry_run: bool) -> None:
        """Rebuild stored balances from transaction history."""

        try:
            drifts = _context().ledger.recalculate(account_id, dry_run=dry_run)
        except LedgerError as exc:
            raise _fail(exc) from exc
        if not drifts:
            click.echo("All balances consistent.")
            return
        verb = "would change" if dry_run else "corrected"
        for drift in drifts:
            click.echo(
                f"Account {drift.account_id} ({drift.name}): {drift.stored} -> "
                f"{drift.expected} {verb}"
            )
