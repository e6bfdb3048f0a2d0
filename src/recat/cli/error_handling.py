"""CLI error handling helpers."""

import click

from recat.domain.errors import DomainError


def format_error(error: DomainError | ValueError) -> str:
    """Return the message shown for an error, tagged with its kind."""
    if isinstance(error, DomainError):
        return f"Error: {error} [{error.kind}]"
    return f"Error: {error}"


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(format_error(error), err=True)
    ctx.exit(1)
