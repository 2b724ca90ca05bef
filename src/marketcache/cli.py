"""
marketcache CLI
Inspect and maintain a running cache server, or start one.
"""

import json
import sys
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.table import Table

from marketcache.admin_client import AdminClient

console = Console()


def get_client(url: str) -> AdminClient:
    """Create a client instance."""
    return AdminClient(base_url=url)


def _fail(e: Exception) -> NoReturn:
    console.print(f"❌ [red]Error: {e}[/red]")
    sys.exit(1)


@click.group()
@click.option("--url", "-u", default="http://localhost:8000", envvar="MARKETCACHE_URL", help="Admin server URL")
@click.pass_context
def cli(ctx, url: str):
    """marketcache CLI - quota-governed cache for marketplace APIs."""
    ctx.ensure_object(dict)
    ctx.obj["url"] = url


@cli.command()
@click.pass_context
def health(ctx):
    """Check admin server health."""
    with get_client(ctx.obj["url"]) as client:
        try:
            status = client.health()
        except Exception as e:
            console.print(f"❌ [red]Connection failed: {e}[/red]")
            sys.exit(1)

        budget = status.get("tradera_api_budget", {})
        console.print("✅ [green]Server is healthy[/green]")
        console.print(
            f"   Tradera budget: {budget.get('remaining')}/{budget.get('daily_limit')} "
            f"(resets {budget.get('resets_at')})"
        )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stats(ctx, as_json: bool):
    """Show cache statistics."""
    with get_client(ctx.obj["url"]) as client:
        try:
            data = client.stats()
        except Exception as e:
            _fail(e)

    if as_json:
        console.print(json.dumps(data, indent=2))
        return

    memory = data["memory"]
    table = Table(title="Cache Statistics")
    table.add_column("Tier", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Details")

    table.add_row(
        "memory",
        f"{memory['size']}/{memory['max_size']}",
        f"hits={memory['hits']} misses={memory['misses']} hit_rate={memory['hit_rate']:.0%}",
    )
    persistent = data.get("persistent")
    if persistent:
        table.add_row(
            "file",
            str(persistent["count"]),
            f"{persistent['total_bytes']:,} bytes in {persistent['location']}",
        )
    else:
        table.add_row("file", "-", "[dim]disabled[/dim]")

    console.print(table)


@cli.command()
@click.pass_context
def cleanup(ctx):
    """Sweep expired entries from both tiers."""
    with get_client(ctx.obj["url"]) as client:
        try:
            result = client.cleanup()
        except Exception as e:
            _fail(e)

    console.print(
        f"🧹 Removed {result['memory_removed']} memory and "
        f"{result['persistent_removed']} file entries"
    )


@cli.command()
@click.option("--namespace", "-n", default=None, help="Namespace to clear (memory tier only)")
@click.option("--yes", is_flag=True, help="Skip confirmation when wiping everything")
@click.pass_context
def clear(ctx, namespace: Optional[str], yes: bool):
    """Clear the cache, or a single namespace."""
    if namespace is None and not yes:
        click.confirm("Wipe both cache tiers? Tradera results cost daily quota to refetch", abort=True)

    with get_client(ctx.obj["url"]) as client:
        try:
            result = client.clear(namespace=namespace)
        except Exception as e:
            _fail(e)

    target = f"namespace {namespace}" if namespace else "all namespaces"
    console.print(
        f"🗑️  Cleared {target}: {result['memory_removed']} memory, "
        f"{result['persistent_removed']} file entries"
    )


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def quota(ctx, as_json: bool):
    """Show the Tradera budget and Blocket rate window."""
    with get_client(ctx.obj["url"]) as client:
        try:
            data = client.quota()
        except Exception as e:
            _fail(e)

    if as_json:
        console.print(json.dumps(data, indent=2))
        return

    tradera = data["tradera"]
    blocket = data["blocket"]
    table = Table(title="Upstream Quota")
    table.add_column("Source", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Resets")

    color = "green" if tradera["remaining"] > 10 else "yellow" if tradera["remaining"] > 0 else "red"
    table.add_row(
        "tradera",
        f"{tradera['used']}/{tradera['daily_limit']}",
        f"[{color}]{tradera['remaining']}[/{color}]",
        tradera["reset_time"],
    )
    table.add_row(
        "blocket",
        f"{blocket['used']}/{blocket['max_requests']}",
        str(blocket["remaining"]),
        f"{blocket['retry_after']:.2f}s (window {blocket['window_seconds']}s)",
    )
    console.print(table)


@cli.command()
def serve():
    """Run the admin API server."""
    from marketcache.main import serve as run_server

    run_server()


def main():
    """Entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
