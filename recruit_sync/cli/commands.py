"""CLI command implementations — outreach view, offline queue, insight chat."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta

import click
from rich import box
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from recruit_sync.chat.session import ChatSession
from recruit_sync.chat.stream import StreamingResponseClient
from recruit_sync.config import SyncSettings
from recruit_sync.network.monitor import HttpConnectivityProbe
from recruit_sync.offline.behavior import Screen, get_offline_banner
from recruit_sync.outreach.aggregator import OutreachAggregator, OutreachUnavailableError
from recruit_sync.outreach.types import OutreachItem, OutreachSection, OutreachView
from recruit_sync.storage.cache import CacheStore
from recruit_sync.storage.kv import KeyValueStore
from recruit_sync.storage.queue import PersistentQueue
from recruit_sync.sync.context import sync_context

logger = logging.getLogger(__name__)
console = Console(width=200)


# ── outreach ───────────────────────────────────────────────────────────────────


@click.command()
@click.option("--hot", "hot_only", is_flag=True, help="Only show hot leads.")
@click.pass_obj
def outreach(settings: SyncSettings, hot_only: bool) -> None:
    """Show the unified outreach view: engaged, waiting, responded, need to contact."""
    asyncio.run(_outreach_async(settings, hot_only))


async def _outreach_async(settings: SyncSettings, hot_only: bool) -> None:
    async with sync_context(settings) as (context, api):
        if not context.is_online:
            console.print(f"[yellow]{get_offline_banner(Screen.OUTREACH)}[/yellow]")
        aggregator = OutreachAggregator(
            api,
            context,
            stale_time=timedelta(seconds=settings.cache_stale_seconds),
        )
        try:
            view = await aggregator.refresh()
        except OutreachUnavailableError as exc:
            console.print(f"[red]{exc}[/red]")
            raise click.exceptions.Exit(1) from exc

    _render_outreach(view, hot_only)


def _render_outreach(view: OutreachView, hot_only: bool) -> None:
    if view.is_stale:
        console.print("[yellow]Showing cached data — it may be out of date.[/yellow]")
    if view.failed_sources:
        console.print(f"[dim]Unavailable: {', '.join(view.failed_sources)}[/dim]")

    channels = [
        f"email {'[green]connected[/green]' if view.email_connected else '[dim]not connected[/dim]'}",
        f"social {'[green]connected[/green]' if view.social_connected else '[dim]not connected[/dim]'}",
    ]
    console.print("  ".join(channels))

    for section in view.sections:
        items = [i for i in section.items if i.is_hot] if hot_only else section.items
        _render_section(section, items)


def _render_section(section: OutreachSection, items: list[OutreachItem]) -> None:
    console.print(f"\n[bold]{section.title}[/bold] [dim]({len(items)}) — {section.subtitle}[/dim]")
    if not items:
        console.print(f"  [dim]{section.empty_message}[/dim]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("", width=2)
    table.add_column("Coach", max_width=28)
    table.add_column("School", max_width=28)
    table.add_column("Channels", width=12)
    table.add_column("Last activity", width=12)
    table.add_column("Days", width=5)
    table.add_column("Next step", width=12)

    for item in items:
        table.add_row(
            "[red]●[/red]" if item.is_hot else "",
            item.contact.name,
            item.contact.school or "",
            _channels(item),
            _date(item.last_activity_at),
            "" if item.days_since_contact is None else str(item.days_since_contact),
            item.suggested_action.value.replace("_", " "),
        )
    console.print(table)


def _channels(item: OutreachItem) -> str:
    parts = []
    if item.has_email:
        parts.append("email")
    if item.is_following:
        parts.append("[cyan]follows[/cyan]")
    elif item.has_social:
        parts.append("social")
    return " ".join(parts)


def _date(moment: datetime | None) -> str:
    return moment.date().isoformat() if moment else ""


# ── queue ──────────────────────────────────────────────────────────────────────


@click.group()
def queue() -> None:
    """Inspect and manage actions queued while offline."""


@queue.command("list")
@click.pass_obj
def queue_list(settings: SyncSettings) -> None:
    """List queued actions in replay order."""
    asyncio.run(_queue_list_async(settings))


async def _queue_list_async(settings: SyncSettings) -> None:
    store = KeyValueStore(db_path=settings.db_path)
    try:
        actions = await PersistentQueue(store).list()
    finally:
        store.close()

    if not actions:
        console.print("[green]Offline queue is empty.[/green]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Type", width=8)
    table.add_column("Request")
    table.add_column("Queued", width=20)
    table.add_column("Retries", width=7)
    for action in actions:
        table.add_row(
            action.id,
            action.kind.value,
            f"{action.method.value} {action.endpoint}",
            action.queued_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(action.retry_count),
        )
    console.print(table)


@queue.command("drain")
@click.pass_obj
def queue_drain(settings: SyncSettings) -> None:
    """Replay queued actions against the backend now."""
    asyncio.run(_queue_drain_async(settings))


async def _queue_drain_async(settings: SyncSettings) -> None:
    async with sync_context(settings) as (context, _api):
        if not context.is_online:
            console.print("[yellow]Offline — queued actions will send when connected.[/yellow]")
            raise click.exceptions.Exit(1)
        task = context.schedule_drain()
        result = await task if task is not None else None
        remaining = await context.queue.count()

    if result is None:
        console.print("[red]Queue drain failed; see logs.[/red]")
        raise click.exceptions.Exit(1)
    console.print(
        f"Sent [bold]{result.success}[/bold], failed {result.failed}, "
        f"dropped {result.evicted}. [dim]{remaining} still queued.[/dim]"
    )


@queue.command("clear")
@click.confirmation_option(prompt="Discard every queued action?")
@click.pass_obj
def queue_clear(settings: SyncSettings) -> None:
    """Discard every queued action without sending it."""
    asyncio.run(_queue_clear_async(settings))


async def _queue_clear_async(settings: SyncSettings) -> None:
    store = KeyValueStore(db_path=settings.db_path)
    try:
        pending = PersistentQueue(store)
        count = await pending.count()
        await pending.clear()
    finally:
        store.close()
    console.print(f"Discarded {count} queued action(s).")


# ── insight ────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("prompt")
@click.option("--conversation", "conversation_id", default=None, help="Continue a saved conversation.")
@click.pass_obj
def insight(settings: SyncSettings, prompt: str, conversation_id: str | None) -> None:
    """Ask the recruiting assistant a question and stream the answer."""
    asyncio.run(_insight_async(settings, prompt, conversation_id))


async def _insight_async(settings: SyncSettings, prompt: str, conversation_id: str | None) -> None:
    async with sync_context(settings) as (context, api):
        if not context.is_online:
            console.print(f"[yellow]{get_offline_banner(Screen.INSIGHT)}[/yellow]")
            raise click.exceptions.Exit(1)

        session = ChatSession(api, StreamingResponseClient(api, word_delay=settings.stream_word_delay_ms / 1000))
        if conversation_id:
            await session.load_conversation(conversation_id)
            if session.error:
                console.print(f"[red]{session.error}[/red]")
                raise click.exceptions.Exit(1)

        with Live(console=console, refresh_per_second=12) as live:
            reply = await session.send_message(
                prompt,
                on_update=lambda text: live.update(_reply_panel(text)),
            )
            if reply is not None:
                live.update(_reply_panel(reply.content))

    if reply is None:
        console.print(f"[red]Insight failed: {session.error}[/red]")
        raise click.exceptions.Exit(1)


def _reply_panel(text: str) -> Panel:
    return Panel(text, title="[bold]Insight[/bold]", border_style="blue")


# ── account / diagnostics ──────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def signout(settings: SyncSettings) -> None:
    """Forget cached responses and queued actions for this account."""
    asyncio.run(_signout_async(settings))


async def _signout_async(settings: SyncSettings) -> None:
    store = KeyValueStore(db_path=settings.db_path)
    try:
        pending = PersistentQueue(store)
        queued = await pending.count()
        await pending.clear()
        cleared = await CacheStore(store).clear()
    finally:
        store.close()
    console.print(f"Signed out: removed {cleared} cached response(s) and {queued} queued action(s).")


@click.command()
@click.pass_obj
def network(settings: SyncSettings) -> None:
    """Probe connectivity to the backend once."""
    asyncio.run(_network_async(settings))


async def _network_async(settings: SyncSettings) -> None:
    url = settings.resolved_probe_url
    state = await HttpConnectivityProbe(url).check()
    if state.is_connected:
        console.print(f"[green]Online[/green] [dim]({url})[/dim]")
    else:
        console.print(f"[yellow]Offline[/yellow] [dim]({url} unreachable)[/dim]")


@click.command()
@click.pass_obj
def run(settings: SyncSettings) -> None:
    """Run the sync agent: drain the queue on reconnect and keep the outreach cache warm."""
    from recruit_sync.agent.runner import run_agent

    logging.getLogger().setLevel(logging.INFO)
    try:
        asyncio.run(run_agent(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted — goodbye")
