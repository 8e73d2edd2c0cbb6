"""Typer CLI for storegate.

Provides commands: schema-ids, resolve, check, check-listing, check-merchant,
issuer keygen and issuer encode-claim.
Main entrypoint for inspecting purchase eligibility from a terminal.
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from storegate import __version__
from storegate.cli.config import StoreGateConfig, create_gate
from storegate.cli.issuer_commands import app as issuer_app
from storegate.sdk.models import EligibilityDecision, MerchantProfile, Product, VerificationRequirement


app = typer.Typer(
    name="storegate",
    help="Attestation-gated purchase eligibility",
    add_completion=False,
    rich_markup_mode="rich"
)
console = Console()

app.add_typer(issuer_app, name="issuer", help="Claim issuer key commands")


def version_callback(show_version: bool) -> None:
    """Show version and exit."""
    if show_version:
        console.print(f"storegate version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override STOREGATE_LOG_LEVEL")
) -> None:
    """storegate CLI."""
    level = log_level or StoreGateConfig().log_level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.command()
def schema_ids() -> None:
    """Show the configured claim schema IDs."""
    config = StoreGateConfig()
    console.print(f"Region schema:  [bold]{config.region_schema_id}[/bold]")
    console.print(f"Trading schema: [bold]{config.trading_schema_id}[/bold]")
    console.print(f"Merchant schema: [bold]{config.merchant_schema_id or '(disabled)'}[/bold]")


@app.command()
def resolve(
    address: str = typer.Argument(..., help="Wallet address to resolve")
) -> None:
    """Resolve region and trading-access claims for a wallet."""
    try:
        gate = create_gate(StoreGateConfig())
        state = asyncio.run(gate.verification_state(address))
    except Exception as e:
        console.print(f"❌ Error resolving attestations: {e}")
        raise typer.Exit(1)

    table = Table(title=f"Verification state for {address}")
    table.add_column("Claim")
    table.add_column("Value")
    table.add_column("Claim UID")
    table.add_column("Issuer")
    for label, value, claim in (
        ("Region", state.region or "(unknown)", state.region_claim),
        ("Trading access", "yes" if state.has_trading_access else "no", state.trading_claim),
        ("Merchant", _merchant_label(state.merchant), state.merchant_claim),
    ):
        uid = claim.uid if claim else "-"
        issuer = claim.issuer if claim else "-"
        if claim and claim.decode_failed:
            value = f"{value} [red](undecodable)[/red]"
        table.add_row(label, value, uid, issuer)
    console.print(table)


@app.command()
def check(
    address: str = typer.Argument(..., help="Wallet address of the buyer"),
    requirement: VerificationRequirement = typer.Option(
        VerificationRequirement.REGION, "--requirement", "-r", case_sensitive=False, help="Product verification requirement"
    ),
    region: str = typer.Option("", "--region", help="Product region"),
    product_id: str = typer.Option("cli-product", "--product-id", help="Product identifier for logs")
) -> None:
    """Check whether a wallet may purchase a product."""
    product = Product(id=product_id, region=region, verification_required=requirement)
    try:
        gate = create_gate(StoreGateConfig())
        decision = asyncio.run(gate.check_purchase(address, product))
    except Exception as e:
        console.print(f"❌ Error checking eligibility: {e}")
        raise typer.Exit(1)

    _print_decision(decision, "Eligible to purchase")


@app.command()
def check_listing(
    address: str = typer.Argument(..., help="Merchant wallet address"),
    region: str | None = typer.Option(None, "--region", help="Required region (default STOREGATE_LISTING_REGION)"),
    trading: bool = typer.Option(True, "--trading/--no-trading", help="Require trading access")
) -> None:
    """Check whether a merchant wallet may list products."""
    try:
        gate = create_gate(StoreGateConfig())
        decision = asyncio.run(gate.check_listing(address, region, trading))
    except Exception as e:
        console.print(f"❌ Error checking listing eligibility: {e}")
        raise typer.Exit(1)

    _print_decision(decision, "Eligible to list products")


@app.command()
def check_merchant(
    address: str = typer.Argument(..., help="Merchant wallet address")
) -> None:
    """Show a wallet's merchant claim; exits 1 unless it is active."""
    try:
        gate = create_gate(StoreGateConfig())
        profile = asyncio.run(gate.merchant_profile(address))
    except Exception as e:
        console.print(f"❌ Error checking merchant status: {e}")
        raise typer.Exit(1)

    if profile is None:
        console.print("❌ No merchant attestation")
        raise typer.Exit(1)
    console.print(f"Merchant: {_merchant_label(profile)}")
    if not profile.is_active:
        console.print("❌ Merchant attestation is inactive")
        raise typer.Exit(1)
    console.print("✅ Verified merchant")


def _merchant_label(profile: MerchantProfile | None) -> str:
    if profile is None:
        return "(none)"
    status = "active" if profile.is_active else "inactive"
    return f"{profile.level.name} {profile.category.value}, score {profile.review_score}, {status}"


def _print_decision(decision: EligibilityDecision, success_message: str) -> None:
    """Print a decision; denials exit with status 1."""
    if decision.can_purchase:
        console.print(f"✅ {success_message}")
        return
    console.print(f"❌ Not eligible: {decision.reason}")
    console.print(f"Code: {decision.code.value if decision.code else '-'}")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
