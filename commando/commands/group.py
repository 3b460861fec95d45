import logging
from typing import Any

logger = logging.getLogger(__name__)


class CommandGroup:
    """A named group of commands that can be enabled or disabled as a whole."""

    def __init__(self, registry: Any, id: str, name: str | None = None, guarded: bool = False) -> None:
        if not id or not isinstance(id, str):
            raise TypeError("Group ID must be a non-empty string.")
        self.registry = registry
        self.id = id.lower()
        self.name = name or id
        self.guarded = guarded
        self.commands: dict[str, Any] = {}

    async def set_enabled_in(self, scope: Any, enabled: bool) -> None:
        if self.guarded:
            raise ValueError("The group is guarded.")
        await self.registry.bot.scopes.set_group_enabled(scope, self, enabled)

    def is_enabled_in(self, scope: Any) -> bool:
        if self.guarded:
            return True
        return self.registry.bot.scopes.is_group_enabled(scope, self.id)

    async def reload(self) -> None:
        for command in list(self.commands.values()):
            await command.reload()

    def __repr__(self) -> str:
        return f"<CommandGroup id={self.id!r} commands={len(self.commands)}>"
