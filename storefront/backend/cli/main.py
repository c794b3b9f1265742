#!/usr/bin/env python3
"""
Organic Storefront command line.

Entry points for operating the storefront API:
1. ``serve``      run the FastAPI application under uvicorn
2. ``products``   list the public catalog as the home page shows it
3. ``stats``      sign in as a company user and print the dashboard summary
4. ``sanitize``   show the storage object name an upload would get
5. ``check-deps`` verify every runtime package can be imported
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from storefront.backend.clients import BackendClient
from storefront.backend.core.dashboard import DashboardStore
from storefront.backend.core.media import sanitize_filename, storage_object_name
from storefront.backend.core.utils.config import load_config
from storefront.backend.core.utils.logging_setup import setup_logging
from storefront.backend.errors import StorefrontError
from storefront.backend.services import catalog

console = Console()


def print_banner():
    """Print the project banner."""
    banner = """
╔══════════════════════════════════════════════════════════════════════════════╗
║     Organic Storefront                                                       ║
║                                                                              ║
║     Shop, cart, checkout and company dashboard over a hosted backend         ║
╚══════════════════════════════════════════════════════════════════════════════╝
    """
    console.print(banner, style="bold green")


def _backend(cfg: dict, persist_session: bool = False) -> BackendClient:
    return BackendClient(
        cfg["backend"]["url"],
        cfg["backend"]["anon_key"],
        timeout=float(cfg["backend"]["timeout"]),
        persist_session=persist_session,
    )


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    default="configs/default_config.yaml",
    help="Path to configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable verbose output.")
@click.option("--debug", is_flag=True, default=False, help="Enable debug mode with additional logging.")
@click.pass_context
def main(ctx: click.Context, config: str, verbose: bool, debug: bool):
    """Operate the organic storefront API and inspect its backend."""
    log_level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    setup_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["debug"] = debug


def _load(ctx: click.Context) -> dict:
    try:
        return load_config(ctx.obj["config_path"])
    except FileNotFoundError as e:
        console.print(f"\n[bold red]Configuration error:[/bold red] {e}")
        raise SystemExit(1) from e


@main.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, type=int, show_default=True)
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int, reload: bool):
    """Run the storefront API."""
    import os

    import uvicorn

    print_banner()
    os.environ.setdefault("STOREFRONT_CONFIG", ctx.obj["config_path"])
    console.print(f"  Config file: {ctx.obj['config_path']}")
    console.print(f"  Listening on: http://{host}:{port}/api")
    uvicorn.run("storefront.backend.api.app:app", host=host, port=port, reload=reload)


@main.command()
@click.option(
    "--filter",
    "listing",
    type=click.Choice(["all", "deals", "bestsellers"]),
    default="all",
    help="Home-page filter.",
)
@click.option("--search", "-s", default=None, help="Product name contains.")
@click.option("--category", default=None, help="Main category.")
@click.pass_context
def products(ctx: click.Context, listing: str, search: str | None, category: str | None):
    """List approved products as the home page shows them."""
    cfg = _load(ctx)
    backend = _backend(cfg)
    try:
        cards = catalog.list_products(
            backend,
            listing,
            search,
            category,
            low_stock_threshold=int(cfg["catalog"]["low_stock_threshold"]),
        )
    except StorefrontError as e:
        console.print(f"\n[bold red]Backend error:[/bold red] {e}")
        raise SystemExit(1) from e
    finally:
        backend.close()

    table = Table(title=f"Products ({listing})")
    table.add_column("Product", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Off", justify="right")
    table.add_column("Stock")
    table.add_column("Rating", justify="right")
    table.add_column("Company")
    for card in cards:
        table.add_row(
            card.product_name,
            f"₹{card.price:,.2f}",
            f"{card.discount_percent}%" if card.discount_percent else "",
            card.stock_label,
            f"{card.reviews.average:.1f} ({card.reviews.count})" if card.reviews.count else "-",
            card.company_name or "",
        )
    console.print(table)


@main.command()
@click.option("--email", "-e", prompt=True, help="Company account email.")
@click.option("--password", "-p", prompt=True, hide_input=True, help="Company account password.")
@click.option("--force", is_flag=True, default=False, help="Ignore the five-minute cache.")
@click.pass_context
def stats(ctx: click.Context, email: str, password: str, force: bool):
    """Sign in as a company user and print the dashboard summary."""
    logger = logging.getLogger(__name__)
    cfg = _load(ctx)
    backend = _backend(cfg, persist_session=True)
    store = DashboardStore(
        ttl=float(cfg["dashboard"]["cache_ttl_seconds"]),
        persist_path=cfg["dashboard"]["persist_path"] or None,
        low_stock_threshold=int(cfg["catalog"]["low_stock_threshold"]),
    )
    store.load()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("[cyan]Signing in...", total=None)
            session = backend.auth.sign_in_with_password(email, password)
            progress.update(task, description="[cyan]Loading dashboard...")
            cache = store.fetch_stats(backend.for_session(session), session, force=force)
            progress.update(task, completed=True)
    except StorefrontError as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        logger.exception("Dashboard load failed")
        raise SystemExit(1) from e
    finally:
        backend.close()

    if cache.error:
        console.print(f"\n[bold red]Dashboard error:[/bold red] {cache.error}")
    result = cache.get()
    if result is None:
        raise SystemExit(1)

    summary = Table(title=result.company_name or "Dashboard", show_header=False)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Total products", str(result.total_products))
    summary.add_row("Active listings", str(result.active_listings))
    summary.add_row("Out of stock", str(result.out_of_stock_products))
    summary.add_row("Low stock", str(len(result.low_stock_products)))
    summary.add_row("Orders", str(result.total_orders))
    summary.add_row("Pending orders", str(result.pending_orders))
    summary.add_row("Sales", f"₹{result.total_sales_amount:,.2f}")
    console.print(summary)

    chart = Table(title="Orders, last 7 days")
    for label in result.chart_x_axis_labels:
        chart.add_column(label, justify="right")
    chart.add_row(*(str(n) for n in result.chart_sales_data))
    console.print(chart)

    if result.all_selling_products:
        selling = Table(title="Selling products")
        selling.add_column("Product", style="cyan")
        selling.add_column("Units", justify="right")
        selling.add_column("Revenue", justify="right")
        for item in result.all_selling_products:
            selling.add_row(item.product_name, str(item.units_sold), f"₹{item.revenue_generated:,.2f}")
        console.print(selling)


@main.command()
@click.argument("filenames", nargs=-1, required=True)
@click.option("--folder", default="images", show_default=True)
@click.option("--owner", default="<company-id>", show_default=True)
def sanitize(filenames: tuple[str, ...], folder: str, owner: str):
    """Show how uploaded FILENAMES are stored."""
    for name in filenames:
        console.print(f"{name}  →  [green]{sanitize_filename(name)}[/green]")
        console.print(f"    [dim]{storage_object_name(folder, owner, name)}[/dim]")


@main.command("check-deps")
def check_deps():
    """Verify every runtime package can be imported."""
    from storefront.backend.cli.check_deps import main as check

    raise SystemExit(check())


if __name__ == "__main__":
    main()
