"""CLI: Typer app wired to a CrewEngine."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from crew_council.application.broadcaster import (
    AGENT_UPDATED,
    COUNCIL_CONTRIBUTION,
    LOG,
    TASK_UPDATED,
)
from crew_council.application.engine import CrewEngine
from crew_council.config import load_config
from crew_council.domain import Event, InvalidEngine, NotFound
from crew_council.infrastructure.telemetry import setup_telemetry
from crew_council.infrastructure.wiring import build_engine

app = typer.Typer(help="crew-council: route requests to specialist agents or convene a council.")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _render_event(console: Console, event: Event, task_id: str) -> None:
    """Render one engine event for the task being watched."""
    data = event.data
    if event.kind == LOG:
        console.print(f"[dim]{data.get('time', '')[11:19]}[/dim] {data.get('message', '')}")
    elif event.kind == TASK_UPDATED and data.get("id") == task_id:
        status = data.get("status")
        colour = {"queued": "white", "running": "cyan", "done": "green", "failed": "red"}.get(status, "white")
        who = data.get("assignedAgent") or ", ".join(data.get("councilMembers") or [])
        suffix = f" [dim]({who})[/dim]" if who else ""
        console.print(f"[{colour}]◆ {status}[/{colour}]{suffix}")
    elif event.kind == COUNCIL_CONTRIBUTION and data.get("taskId") == task_id:
        mark = "[green]✓[/green]" if data.get("ok") else "[red]✗[/red]"
        console.print(f"{mark} [bold]{data.get('agentName')}[/bold]: {data.get('response', '')[:120]}")
    elif event.kind == AGENT_UPDATED:
        console.print(f"[magenta]↻ agent {data.get('name')} updated[/magenta]")


async def _run_and_watch(engine: CrewEngine, prompt: str, mode: Optional[str]) -> dict:
    console = Console()
    sub = engine.subscribe()
    try:
        task = engine.create_task(prompt, mode)
        async for event in sub:
            _render_event(console, event, task.id)
            if event.kind == TASK_UPDATED and event.data.get("id") == task.id \
                    and event.data.get("status") in ("done", "failed"):
                return event.data
    finally:
        engine.unsubscribe(sub)
        await engine.aclose()
    return engine.get_task(task.id).to_dict()


@app.command()
def run(
    prompt: str = typer.Argument(..., help="What you want the crew to do."),
    council: bool = typer.Option(False, "--council", "-c", help="Convene a council instead of one agent."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """Run one task to completion, streaming its events."""
    _configure_logging(verbose)
    config = load_config()
    setup_telemetry(config)
    engine = build_engine(config)

    result = asyncio.run(_run_and_watch(engine, prompt, "council" if council else None))

    output = result.get("output") or {}
    if result.get("status") == "failed":
        rprint(Panel(output.get("content", ""), title="Task failed", border_style="red"))
        raise typer.Exit(code=1)
    rprint(Panel(output.get("content", ""), title=f"Result ({output.get('kind', 'text')})", border_style="green"))


@app.command()
def agents() -> None:
    """List the agent roster."""
    config = load_config()
    engine = build_engine(config)
    table = Table(title=f"Agents ({config.registry_path})")
    table.add_column("Name", style="bold")
    table.add_column("Primary")
    table.add_column("Secondary")
    table.add_column("Engine")
    table.add_column("Knowledge")
    for agent in engine.list_agents():
        marker = " [dim](orchestrator)[/dim]" if agent.name == config.orchestrator_name else ""
        table.add_row(
            agent.name + marker,
            agent.primary_specialty,
            ", ".join(agent.secondary_specialties),
            agent.current_engine or f"[dim]{config.default_engine}[/dim]",
            str(len(agent.knowledge_bundles)),
        )
    Console().print(table)


@app.command("set-engine")
def set_engine(
    name: str = typer.Argument(..., help="Agent name."),
    engine_id: str = typer.Argument(..., help="Engine to assign."),
) -> None:
    """Switch an agent's completion engine and save the registry."""
    engine = build_engine(load_config())
    try:
        agent = asyncio.run(engine.update_engine(name, engine_id))
    except (NotFound, InvalidEngine) as e:
        rprint(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    rprint(f"[green]{agent.name}[/green] now uses [bold]{agent.current_engine}[/bold]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(3001, help="Port."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose (DEBUG) logging to stderr."),
) -> None:
    """Start the HTTP API (REST + Server-Sent Events)."""
    import uvicorn

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    uvicorn.run("crew_council.interfaces.http_api:app", host=host, port=port)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
