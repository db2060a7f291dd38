import datetime

import click

from opsdesk.services.recurring import run_due_recurring_expenses, run_salary_expenses


def _as_of_option(func):
    return click.option(
        "--as-of",
        "as_of",
        type=click.DateTime(formats=["%Y-%m-%d"]),
        default=None,
        help="Run date (YYYY-MM-DD), defaults to today.",
    )(func)


def _echo_batch(label, batch):
    click.echo(
        f"[CRON] {batch.as_of.isoformat()} - {label}: {batch.successful} created, "
        f"{batch.skipped} skipped, {batch.errors} failed"
    )
    for item in batch.results:
        if item["status"] == "error":
            click.echo(f"  ! {item['id']} (tenant {item['tenant_id']}): {item['message']}")


def init_cli(app):
    """Register the batch jobs as ``flask`` commands for an external scheduler."""

    @app.cli.command("run-recurring-expenses")
    @_as_of_option
    def run_recurring_expenses_command(as_of):
        """Materialize recurring expenses that are due."""
        day = as_of.date() if as_of else datetime.date.today()
        _echo_batch("recurring expenses", run_due_recurring_expenses(day))

    @app.cli.command("run-salary-expenses")
    @_as_of_option
    def run_salary_expenses_command(as_of):
        """Book this month's fixed salaries."""
        day = as_of.date() if as_of else datetime.date.today()
        _echo_batch("salary expenses", run_salary_expenses(day))
