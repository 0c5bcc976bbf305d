"""Main CLI entry point for the AI gateway."""

import asyncio
from typing import Any, Dict

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from aigateway import __version__
from aigateway.config import configure_logging, load_settings
from aigateway.exceptions import GatewayFailedError
from aigateway.gateway import AIGateway, create_gateway

# Load environment variables from .env file
load_dotenv()

console = Console()

MAX_PROMPT_LENGTH = 1000

_STATUS_STYLES = {
    "healthy": "green",
    "degraded": "yellow",
    "unhealthy": "red",
}


def _build_gateway(ctx: click.Context) -> AIGateway:
    settings = load_settings()
    if ctx.obj.get("verbose"):
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings)
    return create_gateway(settings)


def _stats_table(stats: Dict[str, Any]) -> Table:
    table = Table(title="AI Gateway Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Total requests", str(stats["total_requests"]))
    table.add_row("Primary successes", str(stats["primary_successes"]))
    table.add_row("Fallback successes", str(stats["fallback_successes"]))
    table.add_row("Rate-limit events", str(stats["rate_limit_events"]))
    table.add_row("Average latency (ms)", str(stats["average_latency_ms"]))

    pool = stats["pool_status"]
    table.add_row(
        "Primary keys",
        f"{pool['eligible']}/{pool['total']} eligible, "
        f"{pool['in_cooldown']} cooling down, {pool['with_errors']} with errors"
    )

    providers = stats["fallback_stats"]["available_providers"]
    table.add_row("Fallback providers", ", ".join(providers) if providers else "none")
    return table


@click.group()
@click.version_option(version=__version__, prog_name="aigateway")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """AI Gateway: resilient routing across AI providers.

    Diagnostics for the Gemini key pool and the Groq/OpenAI fallback chain.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Show gateway health."""
    gateway = _build_gateway(ctx)
    report = gateway.health_check()

    style = _STATUS_STYLES.get(report["status"], "white")
    console.print(f"[bold]Status:[/bold] [{style}]{report['status'].upper()}[/{style}]")
    console.print(f"Primary available: {'yes' if report['primary_available'] else 'no'}")
    console.print(f"Fallback available: {'yes' if report['fallback_available'] else 'no'}")

    if report["status"] == "unhealthy":
        ctx.exit(1)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show gateway statistics."""
    gateway = _build_gateway(ctx)
    console.print(_stats_table(gateway.get_stats()))


@cli.command()
@click.argument("prompt")
@click.option("--show-stats", is_flag=True, help="Print statistics after the call")
@click.pass_context
def generate(ctx: click.Context, prompt: str, show_stats: bool) -> None:
    """Send PROMPT through the gateway and print the response."""
    if not prompt.strip():
        raise click.BadParameter("Prompt is required", param_hint="PROMPT")
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise click.BadParameter(
            f"Prompt must be less than {MAX_PROMPT_LENGTH} characters", param_hint="PROMPT"
        )

    gateway = _build_gateway(ctx)

    async def _run():
        async with gateway:
            return await gateway.generate(prompt)

    try:
        result = asyncio.run(_run())
    except GatewayFailedError as e:
        console.print(f"[red]AI Gateway test failed:[/red] {e}")
        ctx.exit(1)
        return

    label = f"{result.provider_name}{' (fallback)' if result.used_fallback else ''}"
    console.print(f"[green]{label}[/green] [dim]{result.correlation_id} {result.elapsed_ms}ms[/dim]")
    console.print(result.text)

    if show_stats:
        console.print(_stats_table(gateway.get_stats()))


def main() -> int:
    """Main entry point."""
    try:
        cli()
        return 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
