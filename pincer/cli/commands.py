"""CLI commands for pincer."""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from pincer import __logo__, __version__
from pincer.config.loader import load_config
from pincer.config.schema import Config

if TYPE_CHECKING:
    from pincer.agent.confirmation import ConfirmationGate
    from pincer.agent.loop import AgentLoop
    from pincer.bus.queue import MessageBus
    from pincer.cron.service import CronService

app = typer.Typer(
    name="pincer",
    help=f"{__logo__} pincer - Personal AI Assistant",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} pincer v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """pincer - Personal AI Assistant."""
    pass


# ============================================================================
# Runtime wiring
# ============================================================================


@dataclass
class Runtime:
    config: Config
    bus: MessageBus
    gate: ConfirmationGate
    cron: CronService
    agent: AgentLoop


def _build_runtime(config: Config) -> Runtime:
    from pincer.agent.confirmation import ConfirmationGate
    from pincer.agent.context import ContextBuilder
    from pincer.agent.loop import AgentLoop
    from pincer.agent.persona import PersonaDocument
    from pincer.agent.tools import ToolRegistry, register_builtin_tools
    from pincer.bus.queue import MessageBus
    from pincer.cron.service import CronService
    from pincer.memory import (
        ConversationStore,
        CronJobStore,
        Database,
        FactStore,
        SocialPostStore,
        UsageStore,
    )
    from pincer.providers.litellm_provider import LiteLLMProvider

    db = Database(config.database_path)
    conversations = ConversationStore(db)
    facts = FactStore(db)
    usage = UsageStore(db)

    bus = MessageBus()
    gate = ConfirmationGate(
        bus,
        timeout_seconds=config.confirmation_timeout,
        default_on_timeout=config.tools.confirmation.default_on_timeout == "approve",
    )
    cron = CronService(CronJobStore(db))

    tools = ToolRegistry()
    register_builtin_tools(tools, config.tools, gate, cron, SocialPostStore(db))

    context = ContextBuilder(
        PersonaDocument(config.persona_path), facts, conversations, fact_limit=config.agents.fact_limit
    )
    agent = AgentLoop(
        bus=bus,
        provider=LiteLLMProvider(),
        config=config,
        conversations=conversations,
        usage=usage,
        context=context,
        tools=tools,
    )
    cron.set_message_handler(agent.handle_scheduled)
    return Runtime(config=config, bus=bus, gate=gate, cron=cron, agent=agent)


def _load() -> Config:
    from pincer.core.logger import configure_logger

    config = load_config()
    configure_logger(config)
    return config


# ============================================================================
# Chat
# ============================================================================


@app.command()
def chat(
    message: str = typer.Option(..., "--message", "-m", help="Message to send to the agent"),
    profile: str = typer.Option(None, "--profile", "-p", help="Profile to use"),
    conversation: str = typer.Option(None, "--conversation", "-c", help="Conversation ID to continue"),
):
    """Send one message and stream the reply."""
    from pincer.bus.events import ApprovalRequest, InboundMessage, StreamChunk, ToolActivity

    config = _load()
    rt = _build_runtime(config)

    async def on_chunk(event: StreamChunk) -> None:
        console.print(event.chunk, end="", soft_wrap=True, highlight=False)

    async def on_tool(event: ToolActivity) -> None:
        if event.status == "started":
            console.print(f"\n[dim]→ {event.tool}[/dim]")

    async def on_approval(event: ApprovalRequest) -> None:
        console.print(f"\n[yellow]Approval requested:[/yellow] {event.description}")
        approved = await asyncio.to_thread(typer.confirm, "Run this command?", default=False)
        await rt.bus.respond_to_approval(event.invocation_id, approved, channel="cli")

    rt.bus.subscribe(StreamChunk, on_chunk)
    rt.bus.subscribe(ToolActivity, on_tool)
    rt.bus.subscribe(ApprovalRequest, on_approval)

    async def run() -> str:
        reply = await rt.agent.process_message(InboundMessage(
            conversation_id=conversation or str(uuid.uuid4()),
            channel="cli",
            profile=profile or config.default_profile_name(),
            content=message,
        ))
        await rt.agent.drain_background()
        return reply.content

    content = asyncio.run(run())
    console.print()
    if not content.strip():
        console.print("[dim](empty reply)[/dim]")


# ============================================================================
# Long-running service
# ============================================================================


@app.command()
def run():
    """Start the agent and scheduler until interrupted."""
    from pincer.bus.events import ApprovalRequest, OutboundMessage

    config = _load()
    rt = _build_runtime(config)

    async def on_outbound(event: OutboundMessage) -> None:
        console.print(f"[cyan]{event.channel}:{event.conversation_id}[/cyan] {event.content}")

    async def on_approval(event: ApprovalRequest) -> None:
        logger.warning(
            f"Approval requested for '{event.description}' with no interactive channel; "
            f"it will be denied in {event.timeout_seconds:g}s"
        )

    rt.bus.subscribe(OutboundMessage, on_outbound)
    rt.bus.subscribe(ApprovalRequest, on_approval)

    async def main_loop():
        await rt.cron.start()
        try:
            await rt.agent.run()
        finally:
            rt.cron.stop()
            rt.gate.deny_all()
            await rt.agent.wait_idle()

    console.print(f"{__logo__} Starting pincer (Ctrl+C to stop)")
    try:
        asyncio.run(main_loop())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


@app.command()
def status():
    """Show profiles and today's token usage."""
    config = _load()
    from pincer.memory import Database, UsageStore

    usage = UsageStore(Database(config.database_path))
    table = Table(title="Profiles")
    table.add_column("Profile", style="cyan")
    table.add_column("Model")
    table.add_column("Used today", justify="right")
    table.add_column("Daily limit", justify="right")
    for name, p in config.profiles.items():
        table.add_row(name, f"{p.provider}/{p.model}", str(usage.get_daily_usage(name)), str(p.max_tokens_per_day))
    console.print(table)


# ============================================================================
# Cron
# ============================================================================


cron_app = typer.Typer(help="Manage scheduled tasks")
app.add_typer(cron_app, name="cron")


def _cron_service():
    from pincer.cron.service import CronService
    from pincer.memory import CronJobStore, Database

    config = _load()
    return CronService(CronJobStore(Database(config.database_path))), config


@cron_app.command("list")
def cron_list():
    """List scheduled jobs."""
    service, _ = _cron_service()
    jobs = service.list_jobs()
    if not jobs:
        console.print("No scheduled jobs.")
        return

    table = Table(title="Scheduled Jobs")
    table.add_column("Name", style="cyan")
    table.add_column("Schedule")
    table.add_column("Profile")
    table.add_column("Status")
    table.add_column("Last Run")
    table.add_column("Next Run")
    for job in jobs:
        next_run = job.next_run
        table.add_row(
            job.name,
            job.cron,
            job.profile,
            "[green]enabled[/green]" if job.enabled else "[dim]disabled[/dim]",
            job.last_run or "",
            next_run.strftime("%Y-%m-%d %H:%M") if next_run else "",
        )
    console.print(table)


@cron_app.command("add")
def cron_add(
    name: str = typer.Option(..., "--name", "-n", help="Job name"),
    cron_expr: str = typer.Option(..., "--cron", "-c", help="Cron expression (e.g. '0 9 * * *')"),
    message: str = typer.Option(..., "--message", "-m", help="Message for agent"),
    profile: str = typer.Option(None, "--profile", "-p", help="Target profile"),
):
    """Add a scheduled job."""
    from pincer.errors import PincerError

    service, config = _cron_service()
    try:
        job = service.add_job(name, cron_expr, message, profile or config.default_profile_name())
    except PincerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Added job '{job.name}' ({job.cron})")


@cron_app.command("remove")
def cron_remove(name: str = typer.Argument(..., help="Job name to remove")):
    """Remove a scheduled job."""
    service, _ = _cron_service()
    if service.remove_job(name):
        console.print(f"[green]✓[/green] Removed job {name}")
    else:
        console.print(f"[red]Job {name} not found[/red]")


def _set_enabled(name: str, enabled: bool) -> None:
    from pincer.errors import JobNotFoundError

    service, _ = _cron_service()
    try:
        service.toggle_job(name, enabled)
    except JobNotFoundError:
        console.print(f"[red]Job {name} not found[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Job '{name}' {'enabled' if enabled else 'disabled'}")


@cron_app.command("enable")
def cron_enable(name: str = typer.Argument(..., help="Job name")):
    """Enable a job."""
    _set_enabled(name, True)


@cron_app.command("disable")
def cron_disable(name: str = typer.Argument(..., help="Job name")):
    """Disable a job."""
    _set_enabled(name, False)
