"""
DeepThink CLI.

Commands:
- ask: Run one query and stream its progress to the terminal
- serve: Run the WebSocket server
- init: Write a default deepthink.toml
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel

from .config import RunConfig, create_default_config, load_config
from .utils.logging import setup_logging

app = typer.Typer(
    name="deepthink",
    help="Multi-round, multi-expert reasoning engine",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


def _resolve_config_path(config: Optional[Path]) -> Optional[Path]:
    """Use ./deepthink.toml when present and no path was given."""
    if config is not None:
        return config
    default = Path("deepthink.toml")
    return default if default.exists() else None


@app.command()
def init(
    path: Path = typer.Argument(Path("deepthink.toml"), help="Where to write the config"),
) -> None:
    """
    Write a default configuration file.

    Example:
        deepthink init
        deepthink init config/deepthink.toml
    """
    if path.exists():
        console.print(f"[yellow]Warning:[/yellow] {path} already exists, not overwriting.")
        raise typer.Exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    create_default_config(path)
    console.print(
        Panel.fit(
            f"[green]✓[/green] Wrote {path}\n\n"
            "[dim]Next steps:[/dim]\n"
            "1. Set OPENAI_API_KEY (and TAVILY_API_KEY for web research)\n"
            "2. Ask something: deepthink ask \"What is 2+2?\"",
            title="Config Created",
            border_style="green",
        )
    )


@app.command()
def ask(
    query: str = typer.Argument(..., help="Question to reason about"),
    rounds: int = typer.Option(1, "--rounds", "-r", min=1, help="Maximum reasoning rounds"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Model override for this run"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Endpoint override for this run"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Log level"),
    as_json: bool = typer.Option(False, "--json", help="Print raw wire events as JSON lines"),
) -> None:
    """
    Run one query through research, experts and synthesis.

    Example:
        deepthink ask "What is 2+2?"
        deepthink ask "Compare Rust and Go for CLIs" --rounds 2 --json
    """
    setup_logging(level=log_level)

    request: dict = {"maxRounds": rounds}
    if model:
        request["model"] = model
    if base_url:
        request["baseUrl"] = base_url

    try:
        ok = asyncio.run(_ask(_resolve_config_path(config), query, RunConfig.from_request(request), as_json))
    except KeyboardInterrupt:
        raise typer.Exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not ok:
        raise typer.Exit(1)


async def _ask(config_path: Optional[Path], query: str, run_config: RunConfig, as_json: bool) -> bool:
    """Stream a run to the console. Returns False if the run did not complete."""
    from .engine import DeepThinkEngine
    from .llm.factory import ClientCache
    from .search import build_search_manager

    config = load_config(config_path)
    cache = ClientCache(max_size=config.engine.client_cache_size)
    engine = DeepThinkEngine(config, cache, build_search_manager(config.search))

    completed = False
    try:
        async for event in engine.stream(query, run_config):
            wire = event.to_wire()
            if as_json:
                console.print_json(json.dumps(wire))
            else:
                _render_event(wire)
            if wire["type"] == "complete":
                completed = True
            elif wire["type"] == "error":
                return False
    except asyncio.CancelledError:
        engine.abort()
        console.print("\n[yellow]Interrupted by user[/yellow]")
        raise
    finally:
        await cache.aclose()

    return completed


def _render_event(wire: dict) -> None:
    """Print a human-readable line for one wire event."""
    event_type = wire["type"]

    if event_type == "state_update":
        node = wire["node"]
        if wire["status"] == "started":
            round_number = wire["data"].get("round")
            console.print(f"[bold blue]▶[/bold blue] {node} (round {round_number})")
        else:
            extra = ""
            if "searchResults" in wire:
                extra = f" [dim]{len(wire['searchResults'])} results[/dim]"
            console.print(f"[green]✓[/green] {node}{extra}")

    elif event_type == "expert_complete":
        data = wire["data"]
        if data["status"] == "success":
            console.print(f"  [green]•[/green] {data['name']} [dim]({data['durationSeconds']:.1f}s)[/dim]")
        else:
            console.print(f"  [red]✗[/red] {escape(data['name'])}: {escape(str(data.get('error')))}")

    elif event_type == "complete":
        console.print()
        console.print(Panel(Markdown(wire["data"]["final_output"]), title="Answer", border_style="green"))

    elif event_type == "error":
        console.print(f"[red]Error:[/red] {escape(wire['message'])}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: str = typer.Option("INFO", "--log-level", "-l", help="Log level"),
) -> None:
    """
    Run the WebSocket server.

    Example:
        deepthink serve --port 8000
    """
    import uvicorn

    from .web import create_app

    setup_logging(level=log_level)

    try:
        settings = load_config(_resolve_config_path(config))
    except Exception as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    uvicorn.run(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        log_config=None,
    )


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
