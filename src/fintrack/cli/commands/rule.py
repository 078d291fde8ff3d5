"""Categorization rule commands."""

from pathlib import Path

import click

from fintrack.cli.account_resolution import resolve_account_or_exit
from fintrack.cli.error_handling import handle_domain_error
from fintrack.domain.account import AccountService
from fintrack.domain.category import CategoryService
from fintrack.domain.errors import DomainError
from fintrack.domain.rule import RuleService
from fintrack.domain.rule_language import describe_condition
from fintrack.utils.amount_parser import parse_amount
from fintrack.utils.date_parser import parse_date


def _read_rule_file(ctx, rule_file: str) -> str:
    text = Path(rule_file).read_text(encoding="utf-8")
    if not text.strip():
        click.echo(f"Error: Rule file '{rule_file}' is empty", err=True)
        ctx.exit(1)
    return text


@click.group()
def rule_group():
    """Manage categorization rules.

    Rules are YAML documents. Active rules are tried in priority order
    (lowest first) and the first match sets the category and adds tags.
    """
    pass


@rule_group.command("add")
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", help="Rule name (overrides the document)")
@click.option("--priority", type=int, help="Priority (overrides the document)")
@click.option("--inactive", is_flag=True, help="Create the rule disabled")
@click.pass_context
def add_rule(ctx, rule_file: str, name: str | None, priority: int | None, inactive: bool):
    """Add a rule from a YAML file.

    Example rule file:

    \b
        name: Coffee
        priority: 10
        category: "Food & Dining > Coffee"
        conditions:
          - {field: description, operator: contains, value: coffee}
    """
    service = RuleService(ctx.obj["db"])
    source = _read_rule_file(ctx, rule_file)
    try:
        rule_id = service.create_rule(
            source, name=name, priority=priority, is_active=False if inactive else None
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    rule = service.get_rule(rule_id)
    click.echo(f"Created rule '{rule.name}' (ID: {rule_id}, priority {rule.priority})")


@rule_group.command("update")
@click.argument("rule_id", type=int)
@click.argument("rule_file", type=click.Path(exists=True, dir_okay=False), required=False)
@click.option("--name", help="New rule name")
@click.option("--priority", type=int, help="New priority")
@click.pass_context
def update_rule(ctx, rule_id: int, rule_file: str | None, name: str | None, priority: int | None):
    """Update a rule, replacing its document if RULE_FILE is given."""
    if rule_file is None and name is None and priority is None:
        click.echo("Error: Nothing to update.", err=True)
        ctx.exit(1)
    service = RuleService(ctx.obj["db"])
    source = _read_rule_file(ctx, rule_file) if rule_file else None
    try:
        service.update_rule(rule_id, source=source, name=name, priority=priority)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Updated rule {rule_id}")


@rule_group.command("list")
@click.option("--active-only", is_flag=True, help="Hide disabled rules")
@click.pass_context
def list_rules(ctx, active_only: bool):
    """List rules in evaluation order."""
    db = ctx.obj["db"]
    service = RuleService(db)
    category_service = CategoryService(db)

    rules = service.list_rules(active_only=active_only)
    if not rules:
        click.echo("No rules found.")
        return

    click.echo("\nRules:")
    click.echo("-" * 90)
    for r in rules:
        state = "on " if r.is_active else "off"
        target = category_service.format_category_path(r.category_id) or "-"
        tags = f" [{', '.join(r.tags)}]" if r.tags else ""
        click.echo(f"ID: {r.id:3d} | {r.priority:4d} | {state} | {r.name:24s} | {target}{tags}")


@rule_group.command("show")
@click.argument("rule_id", type=int)
@click.pass_context
def show_rule(ctx, rule_id: int):
    """Show a rule and its document."""
    db = ctx.obj["db"]
    try:
        rule = RuleService(db).require_rule(rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Rule: {rule.name} (ID: {rule.id})")
    click.echo(f"  Priority: {rule.priority}")
    click.echo(f"  Active: {'yes' if rule.is_active else 'no'}")
    click.echo(f"  Category: {CategoryService(db).format_category_path(rule.category_id) or '-'}")
    if rule.tags:
        click.echo(f"  Tags: {', '.join(rule.tags)}")
    click.echo(f"  Condition: {describe_condition(rule.condition)}")
    click.echo("\n" + rule.source.rstrip())


@rule_group.command("delete")
@click.argument("rule_id", type=int)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_rule(ctx, rule_id: int, yes: bool):
    """Delete a rule."""
    service = RuleService(ctx.obj["db"])
    try:
        rule = service.require_rule(rule_id)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(f"Are you sure you want to delete rule '{rule.name}'?"):
        click.echo("Deletion cancelled.")
        return

    service.delete_rule(rule_id)
    click.echo(f"Deleted rule '{rule.name}'")


def _set_active(ctx, rule_id: int, is_active: bool) -> None:
    try:
        RuleService(ctx.obj["db"]).set_active(rule_id, is_active)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"{'Enabled' if is_active else 'Disabled'} rule {rule_id}")


@rule_group.command("enable")
@click.argument("rule_id", type=int)
@click.pass_context
def enable_rule(ctx, rule_id: int):
    """Enable a rule."""
    _set_active(ctx, rule_id, True)


@rule_group.command("disable")
@click.argument("rule_id", type=int)
@click.pass_context
def disable_rule(ctx, rule_id: int):
    """Disable a rule."""
    _set_active(ctx, rule_id, False)


@rule_group.command("test")
@click.option("--description", required=True, help="Transaction description")
@click.option("--amount", required=True, help="Signed amount (e.g., -4.50)")
@click.option("--date", "date_str", default="today", show_default=True, help="Transaction date")
@click.pass_context
def test_rule(ctx, description: str, amount: str, date_str: str):
    """Show which rule would categorize a transaction."""
    db = ctx.obj["db"]
    try:
        txn_amount = parse_amount(amount)
        txn_date = parse_date(date_str)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    match = RuleService(db).test_transaction(description, txn_amount, txn_date)
    if match is None:
        click.echo("No rule matches.")
        return
    click.echo(f"Matched rule '{match.rule_name}' (ID: {match.rule_id})")
    click.echo(f"  Category: {CategoryService(db).format_category_path(match.category_id) or '-'}")
    if match.tags:
        click.echo(f"  Tags: {', '.join(match.tags)}")


@rule_group.command("apply")
@click.option("--uncategorized", is_flag=True, help="Only transactions without a category")
@click.option("--account", help="Account name or ID")
@click.pass_context
def apply_rules(ctx, uncategorized: bool, account: str | None):
    """Run the active rules over stored transactions."""
    db = ctx.obj["db"]
    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, AccountService(db), account)

    result = RuleService(db).apply_rules(only_uncategorized=uncategorized, account_id=account_id)
    click.echo(
        f"Evaluated {result.evaluated_count} transactions: "
        f"{result.matched_count} matched, {result.updated_count} updated"
    )


def register_commands(cli):
    """Register rule commands with main CLI."""
    cli.add_command(rule_group, name="rule")
