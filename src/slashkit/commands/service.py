"""CommandService: aggregate slash commands from independent loaders.

Loaders run concurrently and fail independently. Their results are merged
in loader order (built-in, then file, then extension), name conflicts are
resolved, and the result is published as one immutable CommandSnapshot.

Conflict resolution:

- Non-extension commands are placed first and never renamed; a later one
  with the same name replaces an earlier one.
- An extension command whose name is already taken (as a name or alias)
  becomes ``<extension>.<name>``, then ``<extension>.<name>1``,
  ``<extension>.<name>2``... until free.
- Aliases that clash with a name or an earlier alias are dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping, Sequence

from slashkit.core.cancellation import CancellationToken, is_cancellation
from slashkit.core.debug import debug_logger

from .resolve import ParsedSlashCommand, parse_slash_command
from .types import CommandLoader, SlashCommand

if TYPE_CHECKING:
    from .refresher import CustomCommandManager

log = debug_logger.get_logger("commands")


@dataclass(frozen=True)
class CommandEntry:
    command: SlashCommand
    path: tuple[str, ...]


@dataclass(frozen=True)
class CommandSnapshot:
    """A fully built command set.

    ``command_map`` maps top-level names and aliases to commands.
    ``lookup`` maps every path of names/aliases, at every depth, to the
    command and its canonical path.
    """

    commands: tuple[SlashCommand, ...]
    command_map: Mapping[str, SlashCommand]
    lookup: Mapping[tuple[str, ...], CommandEntry]


EMPTY_SNAPSHOT = CommandSnapshot((), MappingProxyType({}), MappingProxyType({}))


# ── Snapshot construction ───────────────────────────────────────────


def _name_map(commands: Sequence[SlashCommand]) -> dict[str, SlashCommand]:
    """Names first, then aliases that are still free."""
    result: dict[str, SlashCommand] = {}
    for cmd in commands:
        result.setdefault(cmd.name, cmd)
    for cmd in commands:
        for alias in cmd.alt_names:
            result.setdefault(alias, cmd)
    return result


def _freeze_tree(cmd: SlashCommand) -> SlashCommand:
    """Return a copy of *cmd* with every node carrying its own command_map."""
    if not cmd.sub_commands:
        return replace(cmd, command_map=None)
    children = tuple(_freeze_tree(c) for c in cmd.sub_commands)
    return replace(cmd, sub_commands=children, command_map=MappingProxyType(_name_map(children)))


def resolve_conflicts(commands: Sequence[SlashCommand]) -> list[SlashCommand]:
    placed: dict[str, SlashCommand] = {}
    for cmd in commands:
        if not cmd.extension_name:
            placed[cmd.name] = cmd

    def _taken(name: str) -> bool:
        return name in placed or any(name in c.alt_names for c in placed.values())

    for cmd in commands:
        if not cmd.extension_name:
            continue
        final = cmd.name
        if _taken(final):
            final = f"{cmd.extension_name}.{cmd.name}"
            suffix = 1
            while _taken(final):
                final = f"{cmd.extension_name}.{cmd.name}{suffix}"
                suffix += 1
        placed[final] = cmd if final == cmd.name else replace(cmd, name=final)

    result: list[SlashCommand] = []
    claimed: set[str] = set(placed)
    for cmd in placed.values():
        aliases = tuple(a for a in cmd.alt_names if a not in claimed)
        claimed.update(aliases)
        result.append(cmd if aliases == cmd.alt_names else replace(cmd, alt_names=aliases))
    return result


def _index(
    cmd: SlashCommand,
    keys: tuple[tuple[str, ...], ...],
    canonical: tuple[str, ...],
    lookup: dict[tuple[str, ...], CommandEntry],
) -> None:
    entry = CommandEntry(cmd, canonical)
    for key in keys:
        lookup.setdefault(key, entry)
    if not cmd.command_map:
        return
    for child in cmd.sub_commands:
        names = [k for k, v in cmd.command_map.items() if v is child]
        if not names:
            continue
        child_keys = tuple(k + (n,) for k in keys for n in names)
        _index(child, child_keys, canonical + (child.name,), lookup)


def build_snapshot(commands: Sequence[SlashCommand]) -> CommandSnapshot:
    resolved = [_freeze_tree(c) for c in resolve_conflicts(commands)]
    command_map = _name_map(resolved)
    lookup: dict[tuple[str, ...], CommandEntry] = {}
    for cmd in resolved:
        keys = tuple((n,) for n, c in command_map.items() if c is cmd)
        _index(cmd, keys, (cmd.name,), lookup)
    return CommandSnapshot(
        commands=tuple(resolved),
        command_map=MappingProxyType(command_map),
        lookup=MappingProxyType(lookup),
    )


# ── Service ─────────────────────────────────────────────────────────


class CommandService:
    def __init__(self, loaders: Sequence[CommandLoader]):
        """*loaders* in precedence order: built-in first, then file, then extension."""
        self.loaders = tuple(loaders)
        self._snapshot = EMPTY_SNAPSHOT
        self._listeners: dict[Callable[[], None], None] = {}
        self._current_token: CancellationToken | None = None
        self._pending: set[asyncio.Task] = set()
        self.loader_errors: list[BaseException] = []

    @classmethod
    async def create(
        cls, loaders: Sequence[CommandLoader], signal: CancellationToken | None = None
    ) -> CommandService:
        service = cls(loaders)
        await service.reload_commands(signal)
        return service

    @property
    def snapshot(self) -> CommandSnapshot:
        return self._snapshot

    def get_commands(self) -> tuple[SlashCommand, ...]:
        return self._snapshot.commands

    def get_command_map(self) -> Mapping[str, SlashCommand]:
        return self._snapshot.command_map

    def resolve(self, query: str) -> ParsedSlashCommand:
        return parse_slash_command(query, self._snapshot.command_map)

    async def _run_loader(self, loader: CommandLoader, signal: CancellationToken) -> list[SlashCommand]:
        return list(await loader.load_commands(signal))

    async def reload_commands(self, signal: CancellationToken | None = None) -> None:
        """Reload from every loader and publish a new snapshot.

        Without *signal*, any in-flight reload started the same way is
        cancelled first. A caller-supplied *signal* is used as-is.
        """
        if signal is None:
            if self._current_token is not None:
                self._current_token.cancel("superseded by a newer reload")
            self._current_token = CancellationToken()
            token = self._current_token
        else:
            token = signal

        try:
            results = await asyncio.gather(
                *(self._run_loader(loader, token) for loader in self.loaders),
                return_exceptions=True,
            )
            if token.cancelled:
                return

            commands: list[SlashCommand] = []
            errors: list[BaseException] = []
            for result in results:
                if isinstance(result, BaseException):
                    if is_cancellation(result):
                        continue
                    errors.append(result)
                    log.debug("a command loader failed:", result)
                    continue
                commands.extend(result)

            snapshot = build_snapshot(commands)
            if token.cancelled:
                return
            self._snapshot = snapshot
            self.loader_errors = errors
        except Exception:
            if token.cancelled:
                return
            raise
        finally:
            if signal is None and self._current_token is token:
                self._current_token = None
        self._notify()

    # ── notification ──

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        # keyed by callback: a repeated subscribe is a no-op
        self._listeners[listener] = None

        def _unsubscribe() -> None:
            self._listeners.pop(listener, None)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:
                log.error("command listener failed:", e)

    def attach(self, manager: CustomCommandManager) -> Callable[[], None]:
        """Reload whenever *manager* signals a change. Returns the unsubscribe function."""
        return manager.subscribe(self._schedule_reload)

    def _schedule_reload(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.reload_commands())
            return
        task = loop.create_task(self.reload_commands())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def wait_for_pending(self) -> None:
        """Wait for reloads scheduled through attach() to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
