"""Aizu CLI - send test events and inspect identity from the command line."""

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from aizu import __version__
from aizu.client import Aizu
from aizu.config import API_KEY_ENV_VAR, API_URL_ENV_VAR
from aizu.exceptions import AizuError
from aizu.models import DeliveryResult
from aizu.storage import JsonFileStorage

console = Console()

DEFAULT_STATE_FILE = "~/.aizu/state.json"


# =============================================================================
# Helpers
# =============================================================================

def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    json_str = json.dumps(data, indent=2, default=str)
    console.print(Syntax(json_str, "json", theme="monokai", line_numbers=False))


def parse_properties(pairs: Tuple[str, ...]) -> Dict[str, Any]:
    """Turn ``key=value`` pairs into a property dict.

    Values that parse as JSON keep their type, anything else is a string.
    """
    properties: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--prop")
        try:
            properties[key] = json.loads(raw)
        except json.JSONDecodeError:
            properties[key] = raw
    return properties


def build_client(ctx: click.Context) -> Aizu:
    """Create a client from the global options, exiting on bad configuration."""
    try:
        return Aizu(
            api_key=ctx.obj["api_key"] or "",
            api_url=ctx.obj["api_url"] or "",
            storage=JsonFileStorage(ctx.obj["state_file"]),
            debug=ctx.obj["debug"],
            enable_batching=False,
        )
    except AizuError as e:
        print_error(str(e))
        sys.exit(1)


def print_results(results: List[DeliveryResult], output: str) -> None:
    if output == "json":
        print_json([
            {
                "outcome": r.outcome.value,
                "events": r.event_count,
                "attempts": r.attempts,
                "status_code": r.status_code,
                "category": r.category.value if r.category else None,
                "error": r.error_message,
            }
            for r in results
        ])
        return

    for result in results:
        if result.success:
            print_success(f"Delivered {result.event_count} event(s) in {result.attempts} attempt(s)")
        else:
            category = result.category.value if result.category else "unknown"
            print_error(
                f"Dropped {result.event_count} event(s) after {result.attempts} attempt(s) "
                f"[{category}]: {result.error_message}"
            )


def send(ctx: click.Context, action: Callable[[Aizu], Awaitable[None]]) -> None:
    """Run a tracking call, wait for delivery and report the outcome."""
    client = build_client(ctx)
    results: List[DeliveryResult] = []
    client.on_delivery_success(results.append)
    client.on_delivery_failure(results.append)

    async def _run() -> None:
        async with client:
            await action(client)

    asyncio.run(_run())

    if not results:
        console.print("[dim]Nothing was sent[/dim]")
        return
    print_results(results, ctx.obj["output"])
    if any(not r.success for r in results):
        sys.exit(1)


prop_option = click.option(
    "--prop", "-p", "props", multiple=True, metavar="KEY=VALUE",
    help="Event property (repeatable). Values are parsed as JSON when possible.",
)


# =============================================================================
# Commands
# =============================================================================

@click.group()
@click.version_option(version=__version__, prog_name="aizu")
@click.option("--api-key", envvar=API_KEY_ENV_VAR, help="Publishable key (pk_...)")
@click.option("--api-url", envvar=API_URL_ENV_VAR, help="Collection API base URL")
@click.option("--state-file", default=DEFAULT_STATE_FILE, show_default=True,
              help="File persisting the anonymous and session ids")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table",
              help="Output format")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    api_key: Optional[str],
    api_url: Optional[str],
    state_file: str,
    output: str,
    debug: bool,
):
    """Aizu CLI - send analytics events to the Aizu collection API.

    \b
    Examples:
      aizu track signup_completed -p plan=pro -p seats=3
      aizu pageview https://example.com/pricing --title Pricing
      aizu identify user_123 -p email=jane@example.com
      aizu identity show
    """
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url
    ctx.obj["state_file"] = state_file
    ctx.obj["output"] = output
    ctx.obj["debug"] = debug


@cli.command("track")
@click.argument("event_name")
@prop_option
@click.pass_context
def track(ctx: click.Context, event_name: str, props: Tuple[str, ...]):
    """Send a custom event."""
    properties = parse_properties(props)
    send(ctx, lambda client: client.track(event_name, properties))


@cli.command("pageview")
@click.argument("url")
@click.option("--title", "-t", default=None, help="Page title")
@click.option("--referrer", "-r", default=None, help="Referrer URL")
@prop_option
@click.pass_context
def pageview(
    ctx: click.Context,
    url: str,
    title: Optional[str],
    referrer: Optional[str],
    props: Tuple[str, ...],
):
    """Send a pageview for URL."""
    properties = parse_properties(props)
    properties["url"] = url
    if title:
        properties["title"] = title
    if referrer:
        properties["referrer"] = referrer
    send(ctx, lambda client: client.pageview(properties))


@cli.command("identify")
@click.argument("user_id")
@prop_option
@click.pass_context
def identify(ctx: click.Context, user_id: str, props: Tuple[str, ...]):
    """Associate this device with USER_ID."""
    properties = parse_properties(props)
    send(ctx, lambda client: client.identify(user_id, properties))


@cli.command("group")
@click.argument("group_id")
@prop_option
@click.pass_context
def group(ctx: click.Context, group_id: str, props: Tuple[str, ...]):
    """Associate this device with GROUP_ID."""
    properties = parse_properties(props)
    send(ctx, lambda client: client.group_identify(group_id, properties))


@cli.command("settings")
@click.pass_context
def settings(ctx: click.Context):
    """Fetch the project's remote settings."""
    client = build_client(ctx)

    async def _run():
        async with client:
            await client.init()
            return client.get_settings()

    remote = asyncio.run(_run())
    if remote is None:
        print_error("Could not load settings. Run with --debug for details.")
        sys.exit(1)

    data = remote.model_dump()
    if ctx.obj["output"] == "json":
        print_json(data)
        return

    table = Table(title="Remote Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(key, str(value))
    console.print(table)


@cli.group("identity")
def identity():
    """Inspect or reset the stored identity."""
    pass


@identity.command("show")
@click.pass_context
def identity_show(ctx: click.Context):
    """Show the anonymous and session ids."""
    client = build_client(ctx)
    data = {
        "anonymous_id": client.get_anonymous_id(),
        "session_id": client.get_session_id(),
    }
    if ctx.obj["output"] == "json":
        print_json(data)
        return

    table = Table(title="Identity")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Anonymous ID", data["anonymous_id"])
    table.add_row("Session ID", data["session_id"])
    console.print(table)


@identity.command("reset")
@click.option("--session-only", is_flag=True, help="Keep the anonymous id")
@click.pass_context
def identity_reset(ctx: click.Context, session_only: bool):
    """Start a new session and, unless --session-only, a new anonymous id."""
    client = build_client(ctx)
    session_id = client.reset_session()
    print_success(f"New session ID: {session_id}")
    if not session_only:
        anonymous_id = client.reset_anonymous_id()
        print_success(f"New anonymous ID: {anonymous_id}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
