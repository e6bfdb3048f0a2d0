"""CLI helpers for date range resolution."""

import click

from recat.domain.entities import DateRange
from recat.domain.errors import ValidationError
from recat.utils.date_parser import get_date_range, parse_date


def period_options(func):
    """Add --start-date/--end-date and the period flags to a command."""
    options = [
        click.option("--start-date", help="Start date, inclusive (YYYY-MM-DD or relative like 'last month')"),
        click.option("--end-date", help="End date, inclusive (YYYY-MM-DD or relative like 'today')"),
        click.option("--this-month", is_flag=True, help="Only the current month"),
        click.option("--last-month", is_flag=True, help="Only the previous month"),
        click.option("--this-year", is_flag=True, help="Only the current year"),
        click.option("--last-year", is_flag=True, help="Only the previous year"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def resolve_cli_date_range(
    ctx,
    *,
    start_date: str | None,
    end_date: str | None,
    period_flags: dict[str, bool],
) -> DateRange | None:
    """Resolve a CLI date range from period flags or explicit dates.

    Returns:
        DateRange, or None when no bound was given
    """
    selected = [period for period, is_set in period_flags.items() if is_set]

    if len(selected) > 1:
        click.echo(
            "Error: Only one period option (--this-month, --last-month, --this-year, --last-year) can be specified at a time.",
            err=True,
        )
        ctx.exit(1)

    if selected and (start_date or end_date):
        click.echo(
            "Error: Period options cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if selected:
        start, end = get_date_range(selected[0])
        return DateRange(start=start, end=end)

    start = None
    end = None
    if start_date:
        try:
            start = parse_date(start_date)
        except ValueError as e:
            click.echo(f"Error: Invalid start date: {e}", err=True)
            ctx.exit(1)

    if end_date:
        try:
            end = parse_date(end_date)
        except ValueError as e:
            click.echo(f"Error: Invalid end date: {e}", err=True)
            ctx.exit(1)

    if start is None and end is None:
        return None
    try:
        return DateRange(start=start, end=end)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)
