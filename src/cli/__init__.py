"""CLI Module - Operator command-line interface for assessment sessions.

This module provides a CLI built with Typer and Rich.

Usage:
    assessment --help                Show all commands
    assessment catalog               Show sections and required question types
    assessment progress <session>    Show a session's progress
    assessment validate <session>    Check a stored session for inconsistencies
    assessment reset <session>       Start a session's assessment over
    assessment delete <session>      Remove a session
    assessment chat <session>        Take the assessment in the terminal
"""

from src.cli.main import app, main

__all__ = ["app", "main"]
