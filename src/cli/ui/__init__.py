"""CLI UI Components - Rich displays for catalog, progress and turns."""

from src.cli.ui.display import (
    display_catalog,
    display_progress,
    display_progress_bar,
    display_turn,
    display_validation,
)

__all__ = [
    "display_catalog",
    "display_progress",
    "display_progress_bar",
    "display_turn",
    "display_validation",
]
