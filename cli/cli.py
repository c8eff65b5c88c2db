"""CLI for RunInsight.

Developer CLI to run the tool server and the insight API locally, and to ask
questions about Strava activity history from the terminal using the same
InsightClient code path as the HTTP API.
"""

import asyncio
import json

import typer
import uvicorn
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from runinsight.coach.insight_client import InsightClient
from runinsight.coach.schemas import InsightPayload
from runinsight.config.settings import settings
from runinsight.core.logger import setup_logger
from runinsight.tools.registry import TOOL_REGISTRY

# Initialize Rich console for output
console = Console()

# Initialize Typer app
app = typer.Typer(
    name="runinsight",
    help="RunInsight CLI - ask questions about your Strava running data",
    add_completion=False,
)

DEFAULT_HOST = "127.0.0.1"
EXAMPLE_QUESTIONS = (
    "What are my 5 fastest runs?",
    "Show me my fastest mile splits",
    "Analyze my running performance this year",
)


def _setup_logging(debug: bool = False, log_file: str | None = None, component: str = "cli") -> None:
    """Set up logging for CLI commands.

    Args:
        debug: Enable debug logging level
        log_file: Optional log file path
        component: Log label for the process
    """
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=log_file, component=component)


def _print_insight(payload: InsightPayload) -> None:
    console.print(Panel(Text(payload.answer), title="Answer", border_style="green"))
    if payload.supporting_activities:
        console.print("[bold]Supporting activities:[/bold]")
        for activity in payload.supporting_activities:
            console.print(f"  - {activity.name} ({activity.start_date})")


async def _ask_once(question: str) -> InsightPayload:
    client = InsightClient()
    try:
        return await client.get_insight(question)
    finally:
        await client.disconnect()


async def _run_chat() -> None:
    """Interactive question loop over a single tool server connection."""
    client = InsightClient()
    console.print(
        Panel(
            Text("RunInsight - Interactive Mode", style="bold cyan"),
            subtitle="Ask questions about your Strava data or type 'quit' to exit",
            border_style="cyan",
        )
    )
    console.print("[dim]Example questions:[/dim]")
    for example in EXAMPLE_QUESTIONS:
        console.print(f"[dim]  - {example}[/dim]")
    console.print()

    try:
        await client.connect()
        while True:
            try:
                question = console.input("[bold cyan]Query>[/bold cyan] ").strip()
            except (KeyboardInterrupt, EOFError):
                console.print("\n[yellow]Interrupted. Exiting...[/yellow]")
                break

            if not question:
                continue
            if question.lower() in {"quit", "exit"}:
                console.print("[yellow]Exiting...[/yellow]")
                break

            try:
                console.print("[dim]Processing...[/dim]")
                _print_insight(await client.get_insight(question))
            except Exception as e:
                logger.exception(f"Error in interactive mode: {e}")
                console.print(f"[red]Error:[/red] {e}")
            console.print()
    finally:
        await client.disconnect()


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about your activity history"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw insight payload as JSON"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """Ask a single question and print the answer.

    The tool server must be running (see `serve-tools`).
    """
    _setup_logging(debug)
    try:
        payload = asyncio.run(_ask_once(question))
    except Exception as e:
        logger.exception(f"Insight request failed: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    if as_json:
        console.print_json(payload.model_dump_json(by_alias=True))
    else:
        _print_insight(payload)


@app.command()
def chat(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also write logs to this file"),
) -> None:
    """Start an interactive question session."""
    _setup_logging(debug, log_file)
    try:
        asyncio.run(_run_chat())
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command("serve-tools")
def serve_tools(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.tool_server_port, "--port", "-p", help="Port to bind to"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """Run the analytics tool server."""
    _setup_logging(debug, component="tools")
    logger.info(f"Starting tool server on {host}:{port}")
    uvicorn.run("runinsight.mcp_server.main:create_tool_app", host=host, port=port, factory=True)


@app.command("serve-api")
def serve_api(
    host: str = typer.Option(DEFAULT_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.api_port, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
) -> None:
    """Run the insight HTTP API."""
    logger.info(f"Starting insight API on {host}:{port} (reload={reload})")
    uvicorn.run("runinsight.main:create_app", host=host, port=port, reload=reload, factory=True)


@app.command()
def tools(
    as_json: bool = typer.Option(False, "--json", help="Print full descriptors including input schemas"),
) -> None:
    """List the analytics tools available to the model."""
    if as_json:
        console.print_json(json.dumps([descriptor.to_dict() for descriptor in TOOL_REGISTRY.values()]))
        return

    table = Table(title="RunInsight tools")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")
    for descriptor in TOOL_REGISTRY.values():
        table.add_row(descriptor.name, descriptor.description)
    console.print(table)


if __name__ == "__main__":
    app()
