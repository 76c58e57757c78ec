"""Commands: slash command model, loaders, aggregation service and dispatch."""

from .builtin import builtin_commands
from .custom import CommandResult, expand_custom_command
from .handler import CommandHandler
from .loaders import BuiltinCommandLoader, ExtensionCommandLoader, FileCommandLoader
from .refresher import CommandRefresher, CustomCommandManager
from .resolve import ParsedSlashCommand, parse_slash_command
from .service import CommandService, CommandSnapshot, build_snapshot
from .types import CommandContext, CommandKind, CommandLoader, SlashCommand

__all__ = [
    "BuiltinCommandLoader",
    "CommandContext",
    "CommandHandler",
    "CommandKind",
    "CommandLoader",
    "CommandRefresher",
    "CommandResult",
    "CommandService",
    "CommandSnapshot",
    "CustomCommandManager",
    "ExtensionCommandLoader",
    "FileCommandLoader",
    "ParsedSlashCommand",
    "SlashCommand",
    "build_snapshot",
    "builtin_commands",
    "expand_custom_command",
    "parse_slash_command",
]
