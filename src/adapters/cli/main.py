"""
adapters.cli.main - CLI adapter for the financial coaching runtime.

Mirrors src/adapters/rest/ but for terminal use. Uses the same
ServiceFactory and Orchestrator as the REST API so routing, tools,
handoffs and memory behave identically.

Commands
--------
  seed       Create a demo user with envelopes, transactions and goals
  ask        One-shot question (routed, or --agent to pick a specialist)
  chat       Interactive chat session
  agents     List the agent catalog
  tools      List the tool catalog
  history    Show a session transcript
  metrics    Show per-agent / per-tool call metrics

Usage
-----
  python run_cli.py seed --user demo
  python run_cli.py ask "How is my grocery budget doing?" --user demo
  python run_cli.py chat --user demo
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

# ── Ensure src/ is on the path ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from adapters.cli.session import resolve_session
from agents.orchestrator import Orchestrator
from domain.exceptions import DomainError
from domain.models import CallStats
from factory import ServiceFactory
from infrastructure.config import Settings
from infrastructure.persistence.migrations import run_migrations
from infrastructure.persistence.seed import seed_demo_user

__version__ = "0.3.0"

console = Console()
app = typer.Typer(
    help="Financial coaching agents CLI",
    add_completion=False,
    no_args_is_help=True,
)

_USER = typer.Option(None, "--user", "-u", help="User id (default: last used, or 'demo').")
_SESSION = typer.Option(None, "--session", "-s", help="Session id (default: last used).")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

def _configure_logging(config: Settings) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def _orchestrator(*, quiet: bool = False) -> AsyncIterator[Orchestrator]:
    """Initialize the runtime, yield its orchestrator, drain on exit."""
    config = Settings.from_env()
    _configure_logging(config)
    factory = ServiceFactory(config)
    if quiet:
        await factory.initialize()
    else:
        with console.status("[bold cyan]Starting agents…", spinner="dots"):
            await factory.initialize()
    try:
        yield factory.create_orchestrator()
    finally:
        await factory.shutdown()


def _fail(exc: DomainError) -> None:
    console.print(f"[bold red]{exc.code.value}[/bold red]: {exc.message}")
    raise typer.Exit(code=1)


def _stats_row(table: Table, name: str, stats: CallStats) -> None:
    table.add_row(
        name,
        str(stats.calls),
        str(stats.errors),
        str(stats.timeouts),
        f"{stats.average_duration_ms:.1f}",
        f"{stats.success_rate:.1f}%",
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"finance-coach v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Data
# ---------------------------------------------------------------------------

@app.command()
def seed(
    user: str = typer.Option("demo", "--user", "-u", help="User id to seed."),
    name: str = typer.Option("Demo User", "--name", help="Display name."),
) -> None:
    """Create (or refresh) a demo user with budgeting data."""
    async def _run() -> None:
        config = Settings.from_env()
        _configure_logging(config)
        factory = ServiceFactory(config)
        await run_migrations(factory._connection)
        counts = await seed_demo_user(
            factory.create_user_repository(),
            factory.create_financial_repository(),
            user,
            name,
        )
        console.print(Panel(
            f"[bold green]Seeded user '{user}'[/bold green]\n"
            + "\n".join(f"  {k}: {v}" for k, v in counts.items())
            + f"\n\nTry: [bold]python run_cli.py ask \"How is my budget?\" --user {user}[/bold]",
            border_style="green",
        ))

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Commands: Conversation
# ---------------------------------------------------------------------------

@app.command()
def ask(
    message: str = typer.Argument(..., help="Your question."),
    agent: Optional[str] = typer.Option(None, "--agent", "-a", help="Agent to ask directly."),
    user: Optional[str] = _USER,
    session: Optional[str] = _SESSION,
) -> None:
    """Ask a one-shot question."""
    current = resolve_session(user, session)

    async def _run() -> None:
        async with _orchestrator() as orchestrator:
            try:
                with console.status("[bold cyan]Thinking…", spinner="dots"):
                    result = await orchestrator.route_and_run(
                        message, current.session_id, current.user_id, agent,
                    )
            except DomainError as exc:
                _fail(exc)
            _print_reply(result.agent_name, result.response, result.degraded)
            for record in result.handoffs:
                console.print(
                    f"[dim]handoff {record.from_agent} → {record.to_agent}: "
                    f"{record.outcome.value}[/dim]"
                )

    asyncio.run(_run())


@app.command()
def chat(
    user: Optional[str] = _USER,
    session: Optional[str] = _SESSION,
    new: bool = typer.Option(False, "--new", help="Start a fresh session."),
) -> None:
    """Start an interactive chat session."""
    current = resolve_session(user, session, new=new)

    async def _run() -> None:
        async with _orchestrator() as orchestrator:
            console.print(Panel(
                f"[bold]Financial Coach[/bold]\n"
                f"User [bold]{current.user_id}[/bold], session [dim]{current.session_id}[/dim]\n"
                "Prefix a message with [bold]@agent_name[/bold] to pick a specialist.\n"
                "Type [bold]exit[/bold] / [bold]quit[/bold] to stop.",
                border_style="cyan",
            ))

            while True:
                try:
                    user_input = Prompt.ask("\n[bold cyan]You[/bold cyan]")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                text = user_input.strip()
                if text.lower() in ("exit", "quit", "q", "bye"):
                    console.print("[dim]Goodbye![/dim]")
                    break
                if not text:
                    continue

                agent_name = None
                if text.startswith("@") and " " in text:
                    agent_name, text = text[1:].split(" ", 1)

                try:
                    with console.status("[bold cyan]Thinking…", spinner="dots"):
                        result = await orchestrator.route_and_run(
                            text, current.session_id, current.user_id, agent_name,
                        )
                except DomainError as exc:
                    console.print(f"[bold red]{exc.code.value}[/bold red]: {exc.message}")
                    continue
                console.print()
                _print_reply(result.agent_name, result.response, result.degraded)

    asyncio.run(_run())


def _print_reply(agent_name: str, response: str, degraded: bool) -> None:
    console.print(Panel(
        Markdown(response),
        title=agent_name.replace("_", " ").title(),
        border_style="yellow" if degraded else "green",
    ))


# ---------------------------------------------------------------------------
# Commands: Introspection
# ---------------------------------------------------------------------------

@app.command()
def agents(
    role: Optional[str] = typer.Option(None, "--role", help="Filter by role."),
) -> None:
    """List the agent catalog."""
    async def _run() -> None:
        async with _orchestrator(quiet=True) as orchestrator:
            try:
                definitions = orchestrator.list_agents(role)
            except DomainError as exc:
                _fail(exc)
            t = Table(box=box.SIMPLE, title="Agents")
            t.add_column("Name", style="bold")
            t.add_column("Role")
            t.add_column("Priority", justify="right")
            t.add_column("Risk")
            t.add_column("Tools")
            t.add_column("Hands off to")
            for a in definitions:
                t.add_row(
                    a.name, a.role.value, str(a.priority), a.risk_level.value,
                    ", ".join(a.tools), ", ".join(a.handoff_targets),
                )
            console.print(t)

    asyncio.run(_run())


@app.command()
def tools(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Filter by category."),
) -> None:
    """List the tool catalog."""
    async def _run() -> None:
        async with _orchestrator(quiet=True) as orchestrator:
            try:
                catalog = orchestrator.list_tools(category)
            except DomainError as exc:
                _fail(exc)
            t = Table(box=box.SIMPLE, title="Tools")
            t.add_column("Name", style="bold")
            t.add_column("Category")
            t.add_column("Risk")
            t.add_column("Description")
            for tool in catalog:
                t.add_row(tool.name, tool.category.value, tool.risk_level.value, tool.description)
            console.print(t)

    asyncio.run(_run())


@app.command()
def history(
    user: Optional[str] = _USER,
    session: Optional[str] = _SESSION,
    limit: int = typer.Option(20, "--limit", "-n"),
    offset: int = typer.Option(0, "--offset"),
) -> None:
    """Show a session transcript."""
    current = resolve_session(user, session)

    async def _run() -> None:
        async with _orchestrator(quiet=True) as orchestrator:
            page = await orchestrator.get_history(current.session_id, limit, offset)
            if not page.entries:
                console.print(f"[dim]No messages in session {current.session_id}.[/dim]")
                return
            for entry in page.entries:
                who = "You" if entry.role == "user" else (entry.agent_name or "assistant")
                style = "cyan" if entry.role == "user" else "green"
                console.print(f"[bold {style}]{who}[/bold {style}] [dim]{entry.timestamp}[/dim]")
                console.print(entry.content)
                console.print()
            console.print(
                f"[dim]{page.offset + 1}–{page.offset + len(page.entries)} of {page.total}"
                f"{' (more)' if page.has_more else ''}[/dim]"
            )

    asyncio.run(_run())


@app.command()
def metrics() -> None:
    """Show call metrics of this process's runtime."""
    async def _run() -> None:
        async with _orchestrator(quiet=True) as orchestrator:
            snapshot = orchestrator.get_metrics()
            for title, rows, totals in (
                ("Agents", snapshot.agents, snapshot.agent_totals),
                ("Tools", snapshot.tools, snapshot.tool_totals),
            ):
                t = Table(box=box.SIMPLE, title=title)
                for column in ("Name", "Calls", "Errors", "Timeouts", "Avg ms", "Success"):
                    t.add_column(column, justify="left" if column == "Name" else "right")
                for name, stats in rows.items():
                    _stats_row(t, name, stats)
                _stats_row(t, "[bold]total[/bold]", totals)
                console.print(t)
            console.print(f"Handoffs: {snapshot.handoffs}")
            console.print(f"Active executions: {snapshot.active_executions}")

    asyncio.run(_run())


# ---------------------------------------------------------------------------
# Global version option
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Financial coaching agents CLI"""


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
