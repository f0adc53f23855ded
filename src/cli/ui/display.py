"""Display Utilities - Rich output formatting."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.modules.assessment.catalog import SectionCatalog
from src.modules.assessment.interface import Progress, SectionProgress, ValidationResult

console = Console()

TYPE_LABELS = {
    "text": "[cyan]text[/cyan]",
    "multiple_choice": "[green]multiple choice[/green]",
    "ranking": "[magenta]ranking[/magenta]",
    "complete": "[bold]complete[/bold]",
}


def display_catalog(catalog: SectionCatalog) -> None:
    """Display the section catalog in a formatted table."""
    console.print(Panel.fit(
        f"[bold cyan]Assessment Catalog[/bold cyan]\n"
        f"{len(catalog)} sections, {catalog.total_questions} questions",
        border_style="cyan",
    ))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("#", style="dim", width=3)
    table.add_column("Section", min_width=20)
    table.add_column("Questions", width=10)
    table.add_column("Types", min_width=30)

    for position, section in enumerate(catalog, start=1):
        table.add_row(
            str(position),
            f"{section.title} [dim]({section.key})[/dim]",
            str(section.required_count),
            ", ".join(TYPE_LABELS[t.value] for t in section.type_sequence),
        )

    console.print(table)


def display_progress_bar(
    label: str,
    percent: int,
    width: int = 20,
    filled_char: str = "█",
    empty_char: str = "░",
) -> str:
    """Create a text-based progress bar."""
    filled = int(percent / 100 * width)
    empty = width - filled

    bar = filled_char * filled + empty_char * empty
    return f"{label}: [{bar}] {percent}%"


def display_progress(
    session_id: str,
    current_section: str,
    progress: Progress,
    sections: list[SectionProgress],
) -> None:
    """Display overall and per-section progress for a session."""
    console.print(Panel.fit(
        f"[bold]Session[/bold] {session_id}\n"
        f"{display_progress_bar('Overall', progress.percent_complete)} "
        f"({progress.questions_completed}/{progress.total_questions})",
        border_style="cyan",
    ))

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Section", min_width=20)
    table.add_column("Answered", width=10)
    table.add_column("Status", width=12)

    for section in sections:
        if section.is_complete:
            status = "[green]done[/green]"
        elif section.section == current_section:
            status = "[yellow]current[/yellow]"
        else:
            status = "[dim]pending[/dim]"
        table.add_row(
            section.section,
            f"{section.questions_completed}/{section.total_questions}",
            status,
        )

    console.print(table)

    counts = ", ".join(f"{name}: {count}" for name, count in progress.type_counts.items())
    console.print(f"\n[dim]Answers by type: {counts}[/dim]")


def display_validation(session_id: str, result: ValidationResult) -> None:
    """Display the outcome of a state consistency check."""
    if result.is_valid:
        console.print(f"[green]Session {session_id} is consistent[/green]")
        return

    console.print(f"[red]Session {session_id} has {len(result.violations)} violation(s):[/red]")
    for violation in result.violations:
        console.print(f"  - {violation}")


def display_turn(turn: dict) -> None:
    """Display a generated assistant turn."""
    body = turn["content"]
    if turn.get("question"):
        body += f"\n\n[bold]{turn['question']}[/bold]"

    console.print(Panel(
        body,
        title=f"[bold blue]Atlas[/bold blue] {TYPE_LABELS.get(turn['type'], '')}",
        border_style="blue",
    ))

    for index, option in enumerate(turn.get("options") or turn.get("items") or [], start=1):
        console.print(f"  [{index}] {option['text']}")
