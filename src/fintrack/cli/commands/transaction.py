"""Transaction listing command."""

import click
from fintrack.cli.account_resolution import resolve_account_or_exit
from fintrack.domain.account import AccountService
from fintrack.domain.category import CategoryService
from fintrack.domain.transaction import TransactionService
from fintrack.utils.date_parser import parse_date


@click.group()
def transaction_group():
    """View transactions."""
    pass


@transaction_group.command("list")
@click.option("--start-date", help="Start date (YYYY-MM-DD or relative like 'last month', 'this year')")
@click.option("--end-date", help="End date (YYYY-MM-DD or 'today')")
@click.option("--category", help="Category path (e.g., 'Food & Dining > Groceries')")
@click.option("--account", help="Account name or ID")
@click.option("--uncategorized", is_flag=True, help="Show only uncategorized transactions")
@click.pass_context
def list_transactions(
    ctx,
    start_date: str | None,
    end_date: str | None,
    category: str | None,
    account: str | None,
    uncategorized: bool,
):
    """View transactions with optional filters."""
    db = ctx.obj["db"]
    service = TransactionService(db)
    category_service = CategoryService(db)
    account_service = AccountService(db)

    dates = {}
    for label, value in (("start", start_date), ("end", end_date)):
        if value:
            try:
                dates[label] = parse_date(value)
            except ValueError as e:
                click.echo(f"Error: Invalid {label} date: {e}", err=True)
                ctx.exit(1)

    account_id = None
    if account:
        account_id = resolve_account_or_exit(ctx, account_service, account)

    transactions = service.list_transactions(
        start_date=dates.get("start"),
        end_date=dates.get("end"),
        category_path=category,
        account_id=account_id,
        uncategorized=uncategorized,
    )
    if not transactions:
        click.echo("No transactions found.")
        return

    accounts = {acc.id: acc.name for acc in account_service.list_accounts()}

    click.echo(f"\nFound {len(transactions)} transaction(s):")
    click.echo("-" * 110)
    click.echo(
        f"{'ID':<6} {'Date':<12} {'Amount':>12}  {'Account':<16} {'Category':<26} {'Description'}"
    )
    click.echo("-" * 110)
    for txn in transactions:
        category_name = category_service.format_category_path(txn.category_id)
        tags = f" [{', '.join(txn.tags)}]" if txn.tags else ""
        click.echo(
            f"{txn.id:<6} {str(txn.date):<12} {txn.amount:>12,.2f}  "
            f"{accounts.get(txn.account_id, 'Unknown')[:16]:<16} {category_name[:26]:<26} "
            f"{txn.description[:40]}{tags}"
        )

    total_expenses = sum(txn.amount for txn in transactions if txn.amount < 0)
    total_income = sum(txn.amount for txn in transactions if txn.amount > 0)
    click.echo("-" * 110)
    click.echo(
        f"Expenses: {abs(total_expenses):,.2f} | Income: {total_income:,.2f} | Count: {len(transactions)}"
    )


def register_commands(cli: click.Group) -> None:
    """Register transaction commands with main CLI."""
    cli.add_command(transaction_group, name="transaction")
