"""CLI error handling helpers."""

import click

from fintrack.domain.errors import DomainError, MalformedFile

# Row errors listed before the output is cut short
MAX_REPORTED_ROW_ERRORS = 20


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, MalformedFile):
        echo_row_errors(error.errors)
    ctx.exit(1)


def echo_row_errors(errors) -> None:
    """Print row errors to stderr, abbreviating long lists."""
    for error in list(errors)[:MAX_REPORTED_ROW_ERRORS]:
        click.echo(f"    {error}", err=True)
    if len(errors) > MAX_REPORTED_ROW_ERRORS:
        click.echo(f"    ... and {len(errors) - MAX_REPORTED_ROW_ERRORS} more", err=True)
