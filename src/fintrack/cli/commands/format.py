"""Saved CSV format commands."""

from pathlib import Path

import click
import yaml

from fintrack.cli.account_resolution import resolve_account_or_exit
from fintrack.cli.error_handling import handle_domain_error
from fintrack.domain.account import AccountService
from fintrack.domain.csv_format import ImportFormatService, load_format_config
from fintrack.domain.entities import CsvFormatConfig
from fintrack.domain.errors import DomainError, ValidationError


def load_override_or_exit(
    ctx: click.Context, format_name: str | None, config_file: str | None
) -> CsvFormatConfig | None:
    """Resolve the --format / --config options shared by import commands."""
    if format_name and config_file:
        click.echo("Error: Use either --format or --config, not both.", err=True)
        ctx.exit(1)
    try:
        if format_name:
            return ImportFormatService(ctx.obj["db"]).require_format(format_name).config
        if config_file:
            return load_format_config(Path(config_file).read_text(encoding="utf-8"))
    except DomainError as e:
        handle_domain_error(ctx, e)
    return None


def echo_config(config: CsvFormatConfig) -> None:
    """Print a format config as YAML (the same form --config accepts)."""
    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False).rstrip())


@click.group()
def format_group():
    """Manage saved CSV formats."""
    pass


@format_group.command("save")
@click.argument("name")
@click.option("--session", "session_id", type=int, help="Save the format an import session used")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML/JSON file with the format config",
)
@click.option("--account", help="Account name or ID (required with --config)")
@click.pass_context
def save_format(ctx, name: str, session_id: int | None, config_file: str | None, account: str | None):
    """Save a CSV format under a name for later imports.

    Examples:
        fintrack format save nordbank --session 3
        fintrack format save nordbank --config nordbank.yaml --account Checking
    """
    db = ctx.obj["db"]
    service = ImportFormatService(db)

    if (session_id is None) == (config_file is None):
        click.echo("Error: Provide exactly one of --session or --config.", err=True)
        ctx.exit(1)

    try:
        if session_id is not None:
            format_id = service.save_from_session(name, session_id)
        else:
            if account is None:
                raise ValidationError("--account is required with --config")
            account_id = resolve_account_or_exit(ctx, AccountService(db), account)
            config = load_format_config(Path(config_file).read_text(encoding="utf-8"))
            format_id = service.save_format(name, account_id, config)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Saved import format '{name}' (ID: {format_id})")


@format_group.command("list")
@click.option("--account", help="Account name or ID")
@click.pass_context
def list_formats(ctx, account: str | None):
    """List saved CSV formats."""
    db = ctx.obj["db"]
    service = ImportFormatService(db)
    account_service = AccountService(db)

    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, account_service, account)

    formats = service.list_formats(account_id=account_id)
    if not formats:
        click.echo("No import formats found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}
    click.echo("\nImport formats:")
    click.echo("-" * 60)
    for fmt in formats:
        click.echo(
            f"ID: {fmt.id:3d} | {fmt.name:20s} | Account: {accounts.get(fmt.account_id, 'Unknown')}"
            f" | {fmt.config.amount_type}"
        )


@format_group.command("show")
@click.argument("name")
@click.pass_context
def show_format(ctx, name: str):
    """Show a saved CSV format."""
    service = ImportFormatService(ctx.obj["db"])
    try:
        fmt = service.require_format(name)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Format: {fmt.name} (ID: {fmt.id})")
    echo_config(fmt.config)


@format_group.command("delete")
@click.argument("name")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete_format(ctx, name: str, yes: bool):
    """Delete a saved CSV format."""
    service = ImportFormatService(ctx.obj["db"])
    try:
        service.require_format(name)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not yes and not click.confirm(f"Are you sure you want to delete import format '{name}'?"):
        click.echo("Deletion cancelled.")
        return

    service.delete_format(name)
    click.echo(f"Deleted import format '{name}'")


def register_commands(cli):
    """Register format commands with main CLI."""
    cli.add_command(format_group, name="format")
