"""Public API for the slashkit TUI package."""

from .completers import SlashCompleter

__all__ = ["SlashCompleter"]
