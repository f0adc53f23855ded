"""CLI Entry Point - Operator commands for assessment sessions.

This module provides the ``assessment`` command for inspecting the section
catalog and for looking at, checking, resetting or removing a session.
"""

import asyncio
import atexit
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt

from src.cli.ui.display import (
    TYPE_LABELS,
    display_catalog,
    display_progress,
    display_turn,
    display_validation,
)
from src.shared.exceptions import AssessmentException
from src.shared.service_registry import get_turn_coordinator

# Main application
app = typer.Typer(
    name="assessment",
    help="Career assessment session tools",
    no_args_is_help=True,
    pretty_exceptions_enable=True,
)
console = Console()


# Global event loop for CLI - reuse across commands
_cli_loop: asyncio.AbstractEventLoop | None = None


def _get_cli_loop() -> asyncio.AbstractEventLoop:
    """Get or create the CLI event loop."""
    global _cli_loop
    if _cli_loop is None or _cli_loop.is_closed():
        _cli_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_cli_loop)
    return _cli_loop


def _cleanup_loop() -> None:
    """Close the Redis pool and the loop at exit."""
    global _cli_loop
    if _cli_loop is not None and not _cli_loop.is_closed():
        try:
            from src.shared.database import close_redis
            _cli_loop.run_until_complete(close_redis())
        finally:
            _cli_loop.close()
            _cli_loop = None


atexit.register(_cleanup_loop)


def run_async(coro):
    """Helper to run async functions in sync context."""
    loop = _get_cli_loop()
    return loop.run_until_complete(coro)


def _fail(error: AssessmentException) -> None:
    console.print(f"[red]Error:[/red] {error.message}")
    raise typer.Exit(1)


# =============================================================================
# Catalog
# =============================================================================

@app.command("catalog")
def catalog() -> None:
    """Show the section catalog and the question types it requires."""
    coordinator = get_turn_coordinator()
    display_catalog(coordinator.engine.catalog)

    sequence = coordinator.engine.catalog.full_sequence()
    console.print(
        "\n[dim]Sequence: "
        + ", ".join(answer_type.value for answer_type in sequence)
        + "[/dim]"
    )


# =============================================================================
# Session commands
# =============================================================================

@app.command("progress")
def progress(
    session_id: str = typer.Argument(..., help="Session identifier"),
) -> None:
    """Show overall and per-section progress for a session."""
    coordinator = get_turn_coordinator()
    try:
        state, overall = run_async(coordinator.progress(session_id))
    except AssessmentException as e:
        _fail(e)

    display_progress(
        session_id,
        state.current_section,
        overall,
        coordinator.engine.all_section_progress(state),
    )

    required = coordinator.engine.required_type(state)
    console.print(f"[bold]Next:[/bold] {TYPE_LABELS[required.value]}")


@app.command("validate")
def validate(
    session_id: str = typer.Argument(..., help="Session identifier"),
) -> None:
    """Check a stored session for inconsistencies.

    Exits with status 1 when violations are found.
    """
    coordinator = get_turn_coordinator()
    try:
        result = run_async(coordinator.validate(session_id))
    except AssessmentException as e:
        _fail(e)

    display_validation(session_id, result)
    if not result.is_valid:
        raise typer.Exit(1)


@app.command("reset")
def reset(
    session_id: str = typer.Argument(..., help="Session identifier"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Start a session's assessment over. Persona and anchors are kept."""
    if not yes and not typer.confirm(f"Reset the assessment for {session_id}?"):
        raise typer.Abort()

    coordinator = get_turn_coordinator()
    try:
        state = run_async(coordinator.reset(session_id))
    except AssessmentException as e:
        _fail(e)

    console.print(f"[green]Assessment reset.[/green] Current section: {state.current_section}")


@app.command("delete")
def delete(
    session_id: str = typer.Argument(..., help="Session identifier"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a session and all its data."""
    if not yes and not typer.confirm(f"Delete session {session_id}?"):
        raise typer.Abort()

    coordinator = get_turn_coordinator()
    try:
        run_async(coordinator.delete(session_id))
    except AssessmentException as e:
        _fail(e)

    console.print(f"[green]Session {session_id} deleted.[/green]")


@app.command("chat")
def chat(
    session_id: str = typer.Argument(..., help="Session identifier"),
) -> None:
    """Take the assessment interactively in the terminal.

    Type 'quit' to stop; progress is saved after every answer.
    """
    coordinator = get_turn_coordinator()

    console.print(Panel.fit(
        "[bold blue]Career Assessment[/bold blue]",
        border_style="blue",
    ))

    message = "Hi, I'd like to start the career assessment."
    while True:
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as spinner:
                spinner.add_task(description="Thinking...", total=None)
                result = run_async(coordinator.process_turn(session_id, message))
        except AssessmentException as e:
            _fail(e)

        if result.turn is not None:
            display_turn(result.turn.model_dump(by_alias=True))

        if result.is_complete:
            console.print("\n[green]Assessment complete![/green]")
            break

        console.print(
            f"[dim]{result.progress.questions_completed}/{result.progress.total_questions} answered[/dim]"
        )
        message = Prompt.ask("\n[bold]Your answer[/bold]")
        if message.lower() in ("quit", "exit", "q"):
            console.print("[yellow]Assessment paused.[/yellow]")
            break


@app.command("config")
def config() -> None:
    """Show the active configuration and feature flags."""
    from src.shared.config import get_settings
    from src.shared.feature_flags import get_feature_flags

    settings = get_settings()

    console.print(Panel.fit(
        "[bold]Configuration[/bold]",
        border_style="cyan",
    ))

    console.print("\n[bold]Environment:[/bold]")
    console.print(f"  Mode: {settings.environment}")
    console.print(f"  Log level: {settings.log_level}")

    console.print("\n[bold]Sessions:[/bold]")
    console.print(f"  Redis: {settings.redis_url}")
    console.print(f"  Namespace: {settings.session_namespace or '(none)'}")
    console.print(f"  TTL: {settings.session_ttl_seconds}s")

    console.print("\n[bold]Generation:[/bold]")
    console.print(f"  Model: {settings.default_model}")
    console.print(f"  Timeout: {settings.generation_timeout_seconds}s")
    console.print(f"  Retries: {settings.generation_max_retries}")
    if settings.anthropic_api_key:
        console.print(f"  Anthropic: [green]***{settings.anthropic_api_key[-4:]}[/green]")
    else:
        console.print("  Anthropic: [red]Not set[/red]")

    console.print("\n[bold]Feature flags:[/bold]")
    for name, enabled in get_feature_flags().get_all_states().items():
        console.print(f"  {name}: {'[green]on[/green]' if enabled else '[dim]off[/dim]'}")


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Career assessment session tools.

    Use 'assessment --help' to see all available commands.
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
