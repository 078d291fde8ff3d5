"""Main CLI entry point."""

import click
from fintrack.config import load_import_settings
from fintrack.database.factories import create_sqlite_database
from fintrack.domain.errors import DomainError
from fintrack.log import init_logging

# Import and register all commands at module level
from fintrack.cli.commands import (
    account,
    category,
    format,
    import_cmd,
    rule,
    transaction,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides FINTRACK_DB_PATH environment variable)",
    envvar="FINTRACK_DB_PATH",
)
@click.option("--verbose", "-v", is_flag=True, help="Log what the import engine is doing")
@click.pass_context
def cli(ctx, db_path: str | None, verbose: bool):
    """fintrack - Bank CSV import and categorization.

    Import CSV exports from any bank: the format is detected, duplicates of
    already imported transactions are flagged, and your rules categorize
    the rest.
    """
    ctx.ensure_object(dict)
    init_logging("INFO" if verbose else "WARNING")

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["settings"] = load_import_settings()
        except DomainError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
category.register_commands(cli)
format.register_commands(cli)
import_cmd.register_commands(cli)
rule.register_commands(cli)
transaction.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
