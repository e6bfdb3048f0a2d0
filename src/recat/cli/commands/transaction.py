"""Transaction management commands."""

import uuid

import click
from recat.domain.transaction import TransactionService
from recat.domain.account import AccountService
from recat.domain.category import CategoryService
from recat.domain.errors import DomainError
from recat.utils.date_parser import parse_date
from recat.utils.amount_parser import parse_amount
from recat.cli.account_resolution import resolve_account_or_exit
from recat.cli.date_filters import period_options, resolve_cli_date_range
from recat.cli.error_handling import handle_domain_error


@click.group()
def transaction_group():
    """Manage transactions."""
    pass


@transaction_group.command("add")
@click.option("--account", required=True, help="Account name or ID")
@click.option("--date", "date_str", required=True, help="Transaction date (YYYY-MM-DD or 'today', 'yesterday')")
@click.option("--amount", required=True, help="Transaction amount (negative for money going out)")
@click.option("--description", help="Merchant text")
@click.option("--category", help="Category path (e.g., 'Food & Dining > Groceries')")
@click.option("--notes", help="Notes")
@click.option("--unique-id", help="Unique ID within the account (generated if omitted)")
@click.pass_context
def add_transaction(
    ctx,
    account: str,
    date_str: str,
    amount: str,
    description: str | None,
    category: str | None,
    notes: str | None,
    unique_id: str | None,
) -> None:
    """Add a transaction by hand.

    Examples:
        recat transaction add --account Checking --date 2024-03-01 --amount -4.50 --description "BLUE BOTTLE COFFEE"
    """
    db = ctx.obj["db"]
    account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    try:
        txn_date = parse_date(date_str)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        txn_amount = parse_amount(amount)
    except ValueError as e:
        click.echo(f"Error: Invalid amount format: {e}", err=True)
        ctx.exit(1)

    try:
        category_id = None
        if category:
            category_id = CategoryService(db).require_category_by_path(category).id
        txn_id = TransactionService(db).create_transaction(
            unique_id=unique_id or f"manual-{uuid.uuid4().hex}",
            account_id=account_id,
            date=txn_date,
            amount=txn_amount,
            description=description,
            category_id=category_id,
            notes=notes,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Added transaction {txn_id}")


@transaction_group.command("list")
@period_options
@click.option("--category", help="Category path (e.g., 'Food & Dining > Groceries')")
@click.option("--account", help="Account name or ID")
@click.option("--uncategorized", is_flag=True, help="Show only uncategorized transactions")
@click.option("--verbose", "-v", is_flag=True, help="Show provenance, notes and unique_id")
@click.pass_context
def list_transactions(
    ctx,
    start_date: str | None,
    end_date: str | None,
    this_month: bool,
    last_month: bool,
    this_year: bool,
    last_year: bool,
    category: str | None,
    account: str | None,
    uncategorized: bool,
    verbose: bool,
):
    """View transactions with optional filters.

    Use --verbose to see where each category came from (manual, rule batch)
    and whether it is locked.
    """
    db = ctx.obj["db"]
    service = TransactionService(db)
    category_service = CategoryService(db)
    account_service = AccountService(db)

    date_range = resolve_cli_date_range(
        ctx,
        start_date=start_date,
        end_date=end_date,
        period_flags={
            "this-month": this_month,
            "last-month": last_month,
            "this-year": this_year,
            "last-year": last_year,
        },
    )

    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, account_service, account)

    if uncategorized:
        category = ""  # Empty category path means uncategorized

    transactions = service.list_transactions(
        start_date=date_range.start if date_range else None,
        end_date=date_range.end if date_range else None,
        category_path=category,
        account_id=account_id,
    )

    if not transactions:
        click.echo("No transactions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    if verbose:
        click.echo("=" * 100)
        for txn in transactions:
            category_name = category_service.format_category_path(txn.category_id) or "Uncategorized"
            click.echo(f"\nTransaction ID: {txn.id}")
            click.echo(f"  Date: {txn.date}")
            click.echo(f"  Amount: ${txn.amount:,.2f}")
            click.echo(f"  Account: {accounts.get(txn.account_id, 'Unknown')} (ID: {txn.account_id})")
            click.echo(f"  Category: {category_name}")
            click.echo(f"  Source: {_format_source(txn)}")
            if txn.category_locked:
                click.echo("  Locked: yes")
            if txn.description:
                click.echo(f"  Description: {txn.description}")
            click.echo(f"  Unique ID: {txn.unique_id}")
            if txn.notes:
                click.echo(f"  Notes: {txn.notes}")
            click.echo("-" * 100)
        return

    click.echo("-" * 100)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':<12} {'Account':<16} {'Category':<30} {'Description':<24}"
    )
    click.echo("-" * 100)
    for txn in transactions:
        category_name = category_service.format_category_path(txn.category_id)
        if txn.category_locked:
            category_name = f"{category_name} [locked]"
        amount_str = f"${txn.amount:,.2f}"
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {amount_str:<12} "
            f"{accounts.get(txn.account_id, 'Unknown'):<16} {category_name:<30} "
            f"{(txn.description or '')[:24]:<24}"
        )


@transaction_group.command("categorize")
@click.argument("transaction_id", type=int)
@click.argument("category_path")
@click.option("--no-lock", is_flag=True, help="Leave the transaction open to later rule runs")
@click.pass_context
def categorize_transaction(ctx, transaction_id: int, category_path: str, no_lock: bool) -> None:
    """Set a transaction's category by hand.

    The transaction is locked so rules never change it again; pass --no-lock
    to keep it open to rules. Use an empty CATEGORY_PATH ("") to clear the
    category.

    Examples:
        recat transaction categorize 12 "Food & Dining > Coffee"
        recat transaction categorize 12 ""
    """
    service = TransactionService(ctx.obj["db"])
    try:
        service.update_category(transaction_id, category_path or None, lock=not no_lock)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    if category_path:
        click.echo(f"Categorized transaction {transaction_id} as '{category_path}'")
    else:
        click.echo(f"Cleared category of transaction {transaction_id}")


@transaction_group.command("lock")
@click.argument("transaction_id", type=int)
@click.pass_context
def lock_transaction(ctx, transaction_id: int) -> None:
    """Lock a transaction's category so rules never change it."""
    _set_locked(ctx, transaction_id, True)


@transaction_group.command("unlock")
@click.argument("transaction_id", type=int)
@click.pass_context
def unlock_transaction(ctx, transaction_id: int) -> None:
    """Allow rules to change a transaction's category again."""
    _set_locked(ctx, transaction_id, False)


@transaction_group.command("history")
@click.argument("transaction_id", type=int)
@click.pass_context
def transaction_history(ctx, transaction_id: int) -> None:
    """Show the category change history of a transaction."""
    db = ctx.obj["db"]
    category_service = CategoryService(db)
    try:
        entries = TransactionService(db).get_history(transaction_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if not entries:
        click.echo(f"No category changes recorded for transaction {transaction_id}.")
        return

    click.echo(f"\nCategory history of transaction {transaction_id}:")
    click.echo("-" * 80)
    for entry in entries:
        before = category_service.format_category_path(entry.previous_category_id) or "Uncategorized"
        after = category_service.format_category_path(entry.new_category_id) or "Uncategorized"
        origin = entry.source
        if entry.batch_id is not None:
            origin = f"{origin}, batch {entry.batch_id}"
        click.echo(f"{entry.created_at:%Y-%m-%d %H:%M:%S} | {before} -> {after} ({origin})")
        if entry.notes:
            click.echo(f"    {entry.notes}")


def _set_locked(ctx, transaction_id: int, locked: bool) -> None:
    try:
        TransactionService(ctx.obj["db"]).set_locked(transaction_id, locked)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    state = "Locked" if locked else "Unlocked"
    click.echo(f"{state} transaction {transaction_id}")


def _format_source(txn) -> str:
    if txn.category_batch_id is not None:
        return f"{txn.category_source} (batch {txn.category_batch_id})"
    return txn.category_source or "-"


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
