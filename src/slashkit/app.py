"""Application context: wires the extension manager to the command service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from .commands import (
    BuiltinCommandLoader,
    CommandContext,
    CommandHandler,
    CommandRefresher,
    CommandService,
    ExtensionCommandLoader,
    FileCommandLoader,
    builtin_commands,
)
from .core.config import Config
from .extensions import ExtensionManager, FolderTrust
from .extensions.trust import ConsentCallback, SettingCallback


@dataclass
class App:
    config: Config
    extensions: ExtensionManager
    refresher: CommandRefresher
    commands: CommandService
    handler: CommandHandler
    unsubscribe: Callable[[], None] = field(default=lambda: None, repr=False)

    async def start(self) -> None:
        """Load installed extensions and publish the first command snapshot."""
        await self.extensions.load_extensions()
        await self.commands.wait_for_pending()

    def close(self) -> None:
        self.unsubscribe()


def create_app(
    config: Config,
    *,
    request_consent: ConsentCallback | None = None,
    request_setting: SettingCallback | None = None,
) -> App:
    refresher = CommandRefresher()
    manager = ExtensionManager(
        config,
        trust=FolderTrust(config.trusted_folders),
        request_consent=request_consent,
        request_setting=request_setting,
        command_manager=refresher,
    )
    service = CommandService(
        [
            BuiltinCommandLoader(builtin_commands()),
            FileCommandLoader(config),
            ExtensionCommandLoader(manager),
        ]
    )
    unsubscribe = service.attach(refresher)
    context = CommandContext(config=config, service=service, extensions=manager)
    return App(
        config=config,
        extensions=manager,
        refresher=refresher,
        commands=service,
        handler=CommandHandler(service, context),
        unsubscribe=unsubscribe,
    )
