"""Rule management and retroactive application commands."""

import click
from recat.domain.account import AccountService
from recat.domain.category import CategoryService
from recat.domain.errors import DomainError
from recat.domain.predicates import DIRECTIONS, GROUP_OPERATORS, build_predicate, describe_predicate
from recat.domain.retroactive import RetroactiveRuleService
from recat.domain.rule import RuleService
from recat.utils.amount_parser import parse_amount
from recat.cli.account_resolution import resolve_account_or_exit
from recat.cli.date_filters import period_options, resolve_cli_date_range
from recat.cli.error_handling import handle_domain_error


def _date_range_from_options(ctx, options: dict):
    return resolve_cli_date_range(
        ctx,
        start_date=options["start_date"],
        end_date=options["end_date"],
        period_flags={
            "this-month": options["this_month"],
            "last-month": options["last_month"],
            "this-year": options["this_year"],
            "last-year": options["last_year"],
        },
    )


@click.group()
def rule_group():
    """Manage categorization rules and run them over past transactions."""
    pass


@rule_group.command("create")
@click.argument("name")
@click.option("--category", required=True, help="Category path the rule assigns")
@click.option("--contains", help="Merchant text contains this (case-insensitive)")
@click.option("--exact", help="Merchant text equals this (case-insensitive)")
@click.option("--min-amount", help="Minimum absolute amount (inclusive)")
@click.option("--max-amount", help="Maximum absolute amount (inclusive)")
@click.option("--account", help="Only transactions of this account (name or ID)")
@click.option("--direction", type=click.Choice(DIRECTIONS), help="Only money coming in or going out")
@click.option(
    "--match",
    type=click.Choice(GROUP_OPERATORS),
    default="all",
    show_default=True,
    help="Require all conditions or any one of them",
)
@click.option("--inactive", is_flag=True, help="Create the rule disabled")
@click.pass_context
def create_rule(
    ctx,
    name: str,
    category: str,
    contains: str | None,
    exact: str | None,
    min_amount: str | None,
    max_amount: str | None,
    account: str | None,
    direction: str | None,
    match: str,
    inactive: bool,
) -> None:
    """Create a categorization rule.

    Examples:
        recat rule create "Coffee" --category "Food & Dining > Coffee" --contains coffee --max-amount 25
        recat rule create "Salary" --category "Income" --contains "ACME PAYROLL" --direction inflow
    """
    db = ctx.obj["db"]

    amounts = {}
    for label, raw in (("minimum", min_amount), ("maximum", max_amount)):
        if raw is None:
            amounts[label] = None
            continue
        try:
            amounts[label] = parse_amount(raw)
        except ValueError as e:
            click.echo(f"Error: Invalid {label} amount: {e}", err=True)
            ctx.exit(1)

    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    try:
        predicate = build_predicate(
            merchant_contains=contains,
            merchant_exact=exact,
            amount_min=amounts["minimum"],
            amount_max=amounts["maximum"],
            account_id=account_id,
            direction=direction,
            match=match,
        )
        rule_id = RuleService(db).create_rule(
            name=name, category_path=category, predicate=predicate, is_active=not inactive
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    click.echo(f"Created rule '{name}' (ID: {rule_id}): {describe_predicate(predicate)} -> {category}")


@rule_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide disabled rules")
@click.pass_context
def list_rules(ctx, active_only: bool) -> None:
    """List rules."""
    db = ctx.obj["db"]
    category_service = CategoryService(db)

    rules = RuleService(db).list_rules(active_only=active_only)
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 80)
    for rule in rules:
        status = "active" if rule.is_active else "disabled"
        click.echo(
            f"ID: {rule.id:3d} | {rule.name:20s} | {status:8s} | "
            f"{describe_predicate(rule.predicate)} -> {category_service.format_category_path(rule.category_id)}"
        )


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int) -> None:
    """Enable a rule."""
    _set_active(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int) -> None:
    """Disable a rule."""
    _set_active(ctx, rule_id, False)


@rule_group.command("preview")
@click.argument("rule_id", type=int)
@period_options
@click.pass_context
def preview_rule(ctx, rule_id: int, **options) -> None:
    """Show what applying a rule to past transactions would change.

    Nothing is written.

    Examples:
        recat rule preview 1 --last-month
        recat rule preview 1 --start-date 2024-01-01 --end-date 2024-03-31
    """
    db = ctx.obj["db"]
    date_range = _date_range_from_options(ctx, options)
    category_service = CategoryService(db)

    try:
        preview = RetroactiveRuleService(db).preview(rule_id, date_range)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    click.echo(
        f"\nRule '{preview.rule_name}' matches {preview.total_matching} transaction(s): "
        f"{preview.would_change} would change, {preview.would_skip_locked} locked, "
        f"{preview.noop_count} already categorized"
    )
    if not preview.entries:
        return

    click.echo("-" * 100)
    click.echo(f"{'ID':<6} {'Date':<12} {'Amount':<12} {'Description':<28} {'Change':<40}")
    click.echo("-" * 100)
    for entry in preview.entries:
        txn = entry.transaction
        before = category_service.format_category_path(entry.previous_category_id) or "Uncategorized"
        if entry.is_locked:
            change = f"{before} (locked, skipped)"
        elif entry.is_noop:
            change = f"{before} (unchanged)"
        else:
            change = f"{before} -> {category_service.format_category_path(entry.new_category_id)}"
        amount_str = f"${txn.amount:,.2f}"
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {amount_str:<12} "
            f"{(txn.description or '')[:28]:<28} {change}"
        )


@rule_group.command("apply")
@click.argument("rule_id", type=int)
@period_options
@click.option(
    "--transaction",
    "transaction_ids",
    type=int,
    multiple=True,
    help="Only apply to this transaction ID (repeatable; usually taken from a preview)",
)
@click.option("--created-by", default="user", show_default=True, help="Who is applying the rule")
@click.option("--description", help="Note stored with the batch")
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation")
@click.pass_context
def apply_rule(
    ctx,
    rule_id: int,
    transaction_ids: tuple[int, ...],
    created_by: str,
    description: str | None,
    yes: bool,
    **options,
) -> None:
    """Apply a rule to past transactions as one undoable batch.

    Without --yes the rule is previewed first and only the confirmed
    transactions are applied; if any of them changed in the meantime the
    apply fails instead of writing a different set.

    Examples:
        recat rule apply 1 --last-year --yes
        recat rule apply 1 --transaction 12 --transaction 15 --yes
    """
    db = ctx.obj["db"]
    date_range = _date_range_from_options(ctx, options)
    service = RetroactiveRuleService(db)

    selection = list(transaction_ids) or None
    if not yes:
        try:
            preview = service.preview(rule_id, date_range)
        except DomainError as e:
            handle_domain_error(ctx, e)
            return
        if selection is None:
            selection = preview.changed_transaction_ids
            if not selection:
                click.echo("Nothing to change; no batch was created.")
                return
        if not click.confirm(
            f"Apply rule '{preview.rule_name}' to {len(selection)} transaction(s)?"
        ):
            click.echo("Apply cancelled.")
            return

    try:
        result = service.apply(
            rule_id,
            date_range=date_range,
            transaction_ids=selection,
            created_by=created_by,
            description=description,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
        return

    if result.batch is None:
        click.echo("Nothing to change; no batch was created.")
    else:
        click.echo(f"Applied rule as batch {result.batch.id}: {result.applied_count} transaction(s) changed")
    if result.skipped_locked:
        click.echo(f"Skipped {result.skipped_locked} locked transaction(s)")
    if result.skipped_noop:
        click.echo(f"{result.skipped_noop} transaction(s) already had the category")


def _set_active(ctx, rule_id: int, is_active: bool) -> None:
    try:
        RuleService(ctx.obj["db"]).set_active(rule_id, is_active)
    except DomainError as e:
        handle_domain_error(ctx, e)
        return
    state = "Enabled" if is_active else "Disabled"
    click.echo(f"{state} rule {rule_id}")


def register_commands(cli: click.Group) -> None:
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
