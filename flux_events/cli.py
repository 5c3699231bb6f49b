import asyncio
import logging
from typing import Any, Optional

import orjson
import typer
from rich.console import Console

from flux_events.client import BaseEventClient
from flux_events.config import Network, settings
from flux_events.deepbook_client import DeepbookEventsClient
from flux_events.errors import FluxEventsError
from flux_events.events.registry import SubscriptionRegistry
from flux_events.events.types import DeepbookStreamType
from flux_events.package_client import PackageEventsClient
from flux_events.redis_cache import RedisCache

app = typer.Typer(help="flux-events CLI - stream Surflux package and Deepbook events")
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _make_cache(redis_url: Optional[str]) -> Optional[RedisCache]:
    if not redis_url:
        return None
    return RedisCache(redis_url, ttl_days=settings.cursor_ttl_days)


def _print_event(payload: Any) -> None:
    console.print_json(orjson.dumps(payload).decode())


async def _stream(
    client: BaseEventClient,
    pattern: str,
    duration: Optional[float],
    cache: Optional[RedisCache],
    **connect_options: Any,
) -> None:
    """Print matching events until the duration elapses or the task is cancelled."""
    client.on(pattern, _print_event)
    try:
        await client.connect(**connect_options)
        console.print(f"[green]Connected to {client.stream_label} stream[/green] (pattern: {pattern})")
        if duration is not None:
            await asyncio.sleep(duration)
        else:
            await asyncio.Event().wait()
    finally:
        await client.disconnect()
        if cache:
            await cache.close()
        if client.latest_timestamp_ms is not None:
            console.print(f"[dim]Cursor saved at {client.latest_timestamp_ms}[/dim]")


def _run(client_factory, pattern: str, duration: Optional[float], redis_url: Optional[str], **connect_options: Any) -> None:
    _configure_logging()
    cache = _make_cache(redis_url)
    try:
        client = client_factory(cache)
        asyncio.run(_stream(client, pattern, duration, cache, **connect_options))
    except (FluxEventsError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")


# ============================================================================
# Commands
# ============================================================================


@app.command(name="packages")
def watch_packages(
    package_id: Optional[str] = typer.Option(None, "--package-id", help="Only events from this package"),
    pattern: str = typer.Option("*", "--pattern", "-p", help="Type, short name, glob or *"),
    last_id: Optional[str] = typer.Option(None, "--last-id", help="Server-side resume hint"),
    from_timestamp: Optional[int] = typer.Option(
        None, "--from-timestamp", help="Only events newer than this (ms); skips the cached cursor"
    ),
    api_key: Optional[str] = typer.Option(None, "--api-key", help="Surflux API key (default: FLUX_API_KEY)"),
    network: Network = typer.Option(settings.network, "--network"),
    custom_url: Optional[str] = typer.Option(None, "--custom-url"),
    redis_url: Optional[str] = typer.Option(settings.redis_url, "--redis-url", help="Persist the cursor in Redis"),
    duration: Optional[float] = typer.Option(None, "--duration", help="Stop after N seconds"),
):
    """Stream Sui package events and print them as JSON."""

    def factory(cache):
        return PackageEventsClient(
            api_key=api_key,
            package_id=package_id,
            network=network,
            custom_url=custom_url,
            from_timestamp_ms=from_timestamp,
            cache=cache,
        )

    _run(factory, pattern, duration, redis_url, last_id=last_id)


@app.command(name="deepbook")
def watch_deepbook(
    pool_name: str = typer.Argument(..., help="Trading pool, e.g. SUI_USDC"),
    stream: DeepbookStreamType = typer.Option(DeepbookStreamType.ALL_UPDATES, "--stream", "-s"),
    event_type: Optional[str] = typer.Option(None, "--type", help="Server-side type filter (all-updates only)"),
    pattern: str = typer.Option("*", "--pattern", "-p", help="Event type, glob or *"),
    last_id: Optional[str] = typer.Option(None, "--last-id", help="Resume hint (timestamp-sequence)"),
    from_timestamp: Optional[int] = typer.Option(None, "--from-timestamp"),
    stream_key: Optional[str] = typer.Option(None, "--stream-key", help="Surflux stream key (default: FLUX_STREAM_KEY)"),
    network: Network = typer.Option(settings.network, "--network"),
    custom_url: Optional[str] = typer.Option(None, "--custom-url"),
    redis_url: Optional[str] = typer.Option(settings.redis_url, "--redis-url"),
    duration: Optional[float] = typer.Option(None, "--duration"),
):
    """Stream Deepbook market data for one pool."""

    def factory(cache):
        return DeepbookEventsClient(
            stream_key=stream_key,
            pool_name=pool_name,
            stream_type=stream,
            network=network,
            custom_url=custom_url,
            from_timestamp_ms=from_timestamp,
            cache=cache,
        )

    _run(factory, pattern, duration, redis_url, last_id=last_id, type=event_type)


@app.command(name="match")
def match(
    event_type: str = typer.Argument(..., help="Fully qualified event type"),
    pattern: str = typer.Argument(..., help="Subscription pattern"),
    short_names: bool = typer.Option(True, "--short-names/--no-short-names"),
):
    """Show whether a subscription pattern would receive an event type."""
    registry = SubscriptionRegistry(match_short_names=short_names)
    registry.register(pattern, lambda _: None)
    modes = [mode.value for _, mode in registry.match_all(event_type)]

    if not modes:
        console.print(f"[red]no match[/red]: {pattern!r} does not match {event_type!r}")
        raise typer.Exit(code=1)

    console.print(f"[green]match[/green]: {pattern!r} -> {event_type!r} ({', '.join(modes)})")


if __name__ == "__main__":
    app()
