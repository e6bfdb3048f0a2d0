"""Main CLI entry point."""

import click
from recat.database.factories import create_database
from recat.utils.logger import setup_logging

# Import and register all commands at module level
from recat.cli.commands import (
    account,
    category,
    transaction,
    rule,
    batch,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to SQLite database file (overrides RECAT_DB_PATH environment variable)",
    envvar="RECAT_DB_PATH",
)
@click.option(
    "--database-url",
    help="SQLAlchemy database URL; takes precedence over --db-path",
    envvar="RECAT_DATABASE_URL",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="RECAT_LOG_LEVEL",
    help="Log level for messages written to stderr",
)
@click.pass_context
def cli(ctx, db_path: str | None, database_url: str | None, log_level: str):
    """Recat - Retroactive transaction categorization.

    Define categorization rules, preview what they would change in your
    transaction history, apply them as undoable batches, and undo a batch
    when a rule turns out to be wrong.
    """
    ctx.ensure_object(dict)
    setup_logging(log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        db = create_database(database_url=database_url, database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
category.register_commands(cli)
transaction.register_commands(cli)
rule.register_commands(cli)
batch.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
