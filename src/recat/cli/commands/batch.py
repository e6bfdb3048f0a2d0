"""Batch history and undo commands."""

import click
from recat.domain.category import CategoryService
from recat.domain.errors import DomainError
from recat.domain.retroactive import DEFAULT_BATCH_LIMIT, RetroactiveRuleService
from recat.cli.error_handling import handle_domain_error


@click.group()
def batch_group():
    """Inspect and undo rule application batches."""
    pass


@batch_group.command("list")
@click.option("--rule", "rule_id", type=int, help="Only batches of this rule")
@click.option("--include-undone", is_flag=True, help="Also show undone batches")
@click.option("--limit", type=int, default=DEFAULT_BATCH_LIMIT, show_default=True, help="Maximum batches to show")
@click.pass_context
def list_batches(ctx, rule_id: int | None, include_undone: bool, limit: int) -> None:
    """List batches, newest first."""
    service = RetroactiveRuleService(ctx.obj["db"])
    try:
        batches = service.list_batches(rule_id=rule_id, include_undone=include_undone, limit=limit)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not batches:
        click.echo("No batches found.")
        return

    click.echo("\nBatches:")
    click.echo("-" * 90)
    for summary in batches:
        status = "undone" if summary.is_undone else "applied"
        rule_name = summary.rule_name or f"rule {summary.rule_id}"
        click.echo(
            f"ID: {summary.id:3d} | {summary.created_at:%Y-%m-%d %H:%M} | {rule_name:20s} | "
            f"{summary.transaction_count:4d} txn(s) | {status} | by {summary.created_by}"
        )


@batch_group.command("show")
@click.argument("batch_id", type=int)
@click.pass_context
def show_batch(ctx, batch_id: int) -> None:
    """Show a batch and every change it made."""
    db = ctx.obj["db"]
    category_service = CategoryService(db)
    try:
        batch = RetroactiveRuleService(db).get_batch(batch_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"\nBatch {batch.id} (rule {batch.rule_id})")
    click.echo(f"  Created: {batch.created_at:%Y-%m-%d %H:%M:%S} by {batch.created_by}")
    if batch.date_range_start or batch.date_range_end:
        click.echo(f"  Date range: {batch.date_range_start or '...'} to {batch.date_range_end or '...'}")
    if batch.description:
        click.echo(f"  Description: {batch.description}")
    if batch.is_undone:
        click.echo(f"  Undone: {batch.undone_at:%Y-%m-%d %H:%M:%S}")
    click.echo(f"  Transactions: {batch.transaction_count}")
    click.echo("-" * 80)
    for change in batch.changes:
        before = category_service.format_category_path(change.previous_category_id) or "Uncategorized"
        after = category_service.format_category_path(change.new_category_id) or "Uncategorized"
        click.echo(f"Transaction {change.transaction_id}: {before} -> {after}")


@batch_group.command("undo")
@click.argument("batch_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Undo without asking for confirmation")
@click.pass_context
def undo_batch(ctx, batch_id: int, yes: bool) -> None:
    """Put every transaction of a batch back to its previous category.

    Undo is final: an undone batch cannot be undone again.
    """
    service = RetroactiveRuleService(ctx.obj["db"])
    if not yes and not click.confirm(f"Undo batch {batch_id}?"):
        click.echo("Undo cancelled.")
        return

    try:
        result = service.undo(batch_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(f"Undid batch {result.batch_id}: {result.transactions_reverted} transaction(s) reverted")
    if result.overwritten_transaction_ids:
        ids = ", ".join(str(txn_id) for txn_id in result.overwritten_transaction_ids)
        click.echo(f"Warning: overwrote later category changes on transaction(s) {ids}", err=True)


def register_commands(cli: click.Group) -> None:
    """Register batch commands with main CLI."""
    cli.add_command(batch_group, name="batch")
