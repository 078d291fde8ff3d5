"""CSV import session commands."""

from pathlib import Path

import click

from fintrack.cli.account_resolution import resolve_account_or_exit
from fintrack.cli.commands.format import echo_config, load_override_or_exit
from fintrack.cli.error_handling import echo_row_errors, handle_domain_error
from fintrack.domain.account import AccountService
from fintrack.domain.csv_import import CSVImportService, PreviewResult
from fintrack.domain.entities import ImportStatus
from fintrack.domain.errors import DomainError


def _service(ctx) -> CSVImportService:
    return CSVImportService(ctx.obj["db"], ctx.obj["settings"])


def _override_options(func):
    func = click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False),
        help="YAML/JSON file with a format config to use instead of the detected one",
    )(func)
    func = click.option("--format", "format_name", help="Saved import format to use")(func)
    return func


def _echo_preview(result: PreviewResult, limit: int) -> None:
    click.echo(
        f"\n{result.total_rows} rows: {result.new_count} new, "
        f"{result.duplicate_count} duplicates, {len(result.errors)} errors"
    )
    shown = result.previews if limit <= 0 else result.previews[:limit]
    if shown:
        click.echo("-" * 90)
        click.echo(f"{'Row':<5} {'Date':<12} {'Amount':>12}  {'':<5} {'Description'}")
        click.echo("-" * 90)
        for p in shown:
            flag = "DUP" if p.is_duplicate else ""
            click.echo(f"{p.row_index or '':<5} {str(p.date):<12} {p.amount:>12,.2f}  {flag:<5} {p.description[:50]}")
        if len(shown) < len(result.previews):
            click.echo(f"... {len(result.previews) - len(shown)} more rows")
    if result.errors:
        click.echo("Row errors:", err=True)
        echo_row_errors(result.errors)


@click.group()
def import_group():
    """Import bank CSV exports.

    An import is a session: upload the file, preview the parsed rows, then
    confirm (or discard) it.
    """
    pass


@import_group.command("upload")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--account", required=True, help="Account name or ID")
@click.pass_context
def upload(ctx, csv_file: str, account: str):
    """Upload a CSV file and detect its format.

    Example:
        fintrack import upload statement.csv --account Checking
    """
    service = _service(ctx)
    account_id = resolve_account_or_exit(ctx, AccountService(ctx.obj["db"]), account)
    path = Path(csv_file)

    try:
        result = service.upload(account_id, path.name, path.read_bytes())
    except DomainError as e:
        handle_domain_error(ctx, e)

    session = result.session
    click.echo(f"Created import session {session.id} for '{session.filename}' ({session.row_count} rows)")
    if result.detection is None:
        click.echo(f"Warning: {session.error_message}", err=True)
        click.echo("Preview with --format or --config to supply the format.")
        return

    click.echo("\nDetected format:")
    echo_config(result.detection.config)
    click.echo("\nSample:")
    for p in result.detection.sample_previews:
        click.echo(f"  {p.date}  {p.amount:>12,.2f}  {p.description[:50]}")
    click.echo(f"\nNext: fintrack import preview {session.id}")


@import_group.command("preview")
@click.argument("session_id", type=int)
@_override_options
@click.option("--limit", default=20, show_default=True, help="Rows to show (0 for all)")
@click.pass_context
def preview(ctx, session_id: int, format_name: str | None, config_file: str | None, limit: int):
    """Parse an uploaded file and flag duplicates."""
    override = load_override_or_exit(ctx, format_name, config_file)
    try:
        result = _service(ctx).preview(session_id, format_override=override)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_preview(result, limit)
    click.echo(f"\nNext: fintrack import confirm {session_id}")


@import_group.command("confirm")
@click.argument("session_id", type=int)
@_override_options
@click.option("--keep-duplicates", is_flag=True, help="Import rows flagged as duplicates too")
@click.pass_context
def confirm(ctx, session_id: int, format_name: str | None, config_file: str | None, keep_duplicates: bool):
    """Import a previewed session's transactions."""
    override = load_override_or_exit(ctx, format_name, config_file)
    try:
        result = _service(ctx).confirm(
            session_id, skip_duplicates=not keep_duplicates, format_override=override
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo("\nImport complete:")
    click.echo(f"  Imported: {result.imported_count} transactions")
    click.echo(f"  Skipped: {result.skipped_duplicates} duplicates")
    click.echo(f"  Categorized: {result.categorized_count}")
    if result.errors:
        click.echo(f"  Errors: {result.error_count}")
        echo_row_errors(result.errors)


@import_group.command("discard")
@click.argument("session_id", type=int)
@click.pass_context
def discard(ctx, session_id: int):
    """Discard an import session without importing."""
    try:
        _service(ctx).discard(session_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Discarded import session {session_id}")


@import_group.command("sessions")
@click.option("--account", help="Account name or ID")
@click.option("--status", type=click.Choice([s.value for s in ImportStatus]), help="Only sessions in this status")
@click.pass_context
def list_sessions(ctx, account: str | None, status: str | None):
    """List import sessions."""
    account_service = AccountService(ctx.obj["db"])
    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, account_service, account)

    sessions = _service(ctx).list_sessions(
        account_id=account_id, status=ImportStatus(status) if status else None
    )
    if not sessions:
        click.echo("No import sessions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}
    click.echo("\nImport sessions:")
    click.echo("-" * 90)
    for s in sessions:
        click.echo(
            f"ID: {s.id:3d} | {s.status.value:10s} | {s.filename:24s} | "
            f"{s.row_count:5d} rows | {accounts.get(s.account_id, 'Unknown')} | {s.created_at:%Y-%m-%d %H:%M}"
        )
        if s.error_message:
            click.echo(f"       {s.error_message}")


def register_commands(cli):
    """Register import commands with main CLI."""
    cli.add_command(import_group, name="import")
