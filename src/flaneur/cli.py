"""Command-line interface for the Flaneur referral engine."""

from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.table import Table

from flaneur.accounts.models import AccountKind, AccountRef
from flaneur.logging_config import configure_logging, get_logger
from flaneur.referral.errors import ReferralError
from flaneur.referral.service import referral_service
from flaneur.storage.db import db

# Configure logging
configure_logging()
logger = get_logger(__name__)

# Create Typer app
app = typer.Typer(
    name="flaneur",
    help="Flaneur - referral codes, clicks and conversions",
    no_args_is_help=True,
)

# Rich console for pretty output
console = Console()


def _fail(error: ReferralError) -> NoReturn:
    console.print(f"[bold red]✗[/bold red] {type(error).__name__}: {error}")
    raise typer.Exit(code=1)


@app.command("init")
def init_database() -> None:
    """Initialize the database and create tables."""
    console.print("[bold blue]Initializing database...[/bold blue]")
    db.create_tables()
    console.print("[bold green]✓[/bold green] Database initialized successfully")


@app.command("issue-code")
def issue_code(
    kind: Annotated[AccountKind, typer.Argument(help="Account kind")],
    account_id: Annotated[str, typer.Argument(help="Account ID")],
) -> None:
    """Get or generate the referral code for an account."""
    try:
        code = referral_service.issue_code(AccountRef(kind=kind, id=account_id))
    except ReferralError as e:
        _fail(e)

    console.print(f"[bold green]✓[/bold green] {code}")
    console.print(f"  Link: {referral_service.referral_link(code)}")


@app.command("resolve")
def resolve(
    value: Annotated[str, typer.Argument(help="Referral code or email")],
) -> None:
    """Show which account owns a referral code or email."""
    try:
        account = referral_service.resolve(value)
    except ReferralError as e:
        _fail(e)

    table = Table(title="Account")
    table.add_column("Kind", style="cyan")
    table.add_column("ID")
    table.add_column("Email", style="dim")
    table.add_row(account.kind.value, account.id, account.email or "-")
    console.print(table)


@app.command("track-click")
def track_click(
    code: Annotated[str, typer.Argument(help="Referral code")],
    ip: Annotated[str, typer.Option("--ip", help="Visitor IP address")] = "unknown",
) -> None:
    """Record a referral link click (deduplicated)."""
    outcome = referral_service.track_click(code, ip)
    console.print(f"Click: [bold]{outcome.value}[/bold]")


@app.command("convert")
def convert(
    code: Annotated[str, typer.Argument(help="Referral code")],
    email: Annotated[str, typer.Argument(help="Email of the referred signup")],
) -> None:
    """Attribute a conversion to a referral code."""
    outcome = referral_service.record_conversion(code, email)
    console.print(f"Conversion: [bold]{outcome.value}[/bold]")


@app.command("stats")
def stats(
    kind: Annotated[AccountKind, typer.Argument(help="Account kind")],
    account_id: Annotated[str, typer.Argument(help="Account ID")],
) -> None:
    """Show referral statistics for an account."""
    try:
        result = referral_service.get_stats(AccountRef(kind=kind, id=account_id))
    except ReferralError as e:
        _fail(e)

    table = Table(title=f"Referrals for {result['code']}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Link", result["link"])
    table.add_row("Clicks", str(result["clicks"]))
    table.add_row("Conversions", str(result["conversions"]))
    table.add_row("Pending clicks", str(result["pending"]))
    console.print(table)


if __name__ == "__main__":
    app()
