"""Catalog of commands, groups and argument types."""

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..errors import CommandRegistrationError
from .base import Command
from .decorators import FunctionCommand
from .group import CommandGroup
from .types import DEFAULT_TYPES, ArgumentType

logger = logging.getLogger(__name__)

DEFAULT_GROUPS = [("commands", "Commands", True), ("util", "Utility", False)]


class Registry:
    """Holds the commands, groups and argument types of one bot."""

    def __init__(self, bot: Any = None) -> None:
        from ..core.command_loader import CommandLoader

        self.bot = bot
        self.commands: dict[str, Command] = {}
        self.groups: dict[str, CommandGroup] = {}
        self.types: dict[str, ArgumentType] = {}
        self.unknown_command: Command | None = None
        self.loader = CommandLoader(self)

    # Groups

    def register_group(self, group: CommandGroup | tuple | str, name: str | None = None, guarded: bool = False) -> CommandGroup:
        if isinstance(group, str):
            group = CommandGroup(self, group, name, guarded)
        elif isinstance(group, (tuple, list)):
            group = CommandGroup(self, *group)
        if not isinstance(group, CommandGroup):
            raise TypeError(f"Invalid group object to register: {group!r}")

        existing = self.groups.get(group.id)
        if existing is not None:
            existing.name = group.name
            logger.warning(f"Group {group.id} is already registered; renamed to {group.name}")
            return existing

        self.groups[group.id] = group
        logger.debug(f"Registered group {group.id}")
        return group

    def register_groups(self, groups: Iterable[Any]) -> None:
        for group in groups:
            self.register_group(group)

    def register_default_groups(self) -> None:
        self.register_groups(DEFAULT_GROUPS)

    # Commands

    def build_command(self, definition: Any) -> Command:
        """Turn a Command subclass, decorated function or instance into a Command."""
        if isinstance(definition, type) and issubclass(definition, Command):
            return definition(self)
        if callable(definition) and hasattr(definition, "_command_info"):
            return FunctionCommand(self, definition, **definition._command_info)
        if isinstance(definition, Command):
            return definition
        raise TypeError(f"Invalid command object to register: {definition!r}")

    def register_command(self, definition: Any) -> Command:
        command = self.build_command(definition)

        for name in (command.name, *command.aliases):
            for other in self.commands.values():
                if other.name == name or name in other.aliases:
                    raise CommandRegistrationError(f'A command with the name/alias "{name}" is already registered.')

        group = self.groups.get(command.group_id)
        if group is None:
            raise CommandRegistrationError(f'Group "{command.group_id}" is not registered.')
        if any(other.member_name == command.member_name for other in group.commands.values()):
            raise CommandRegistrationError(
                f'A command with the member name "{command.member_name}" is already registered in {group.id}'
            )
        if command.unknown and self.unknown_command is not None:
            raise CommandRegistrationError("An unknown command is already registered.")

        command.group = group
        group.commands[command.name] = command
        self.commands[command.name] = command
        if command.unknown:
            self.unknown_command = command

        logger.info(f"Registered command {group.id}:{command.member_name}")
        return command

    def register_commands(self, definitions: Iterable[Any]) -> list[Command]:
        return [self.register_command(definition) for definition in definitions]

    def register_commands_in(self, path: str | Path) -> list[Command]:
        """Register every command found in ``<path>/<group>/<member>.py`` files."""
        self.loader.add_directory(path)
        return self.loader.load_directory(Path(path))

    async def reregister_command(self, new_command: Any, old_command: Command) -> Command:
        """Replace a registered command with a new definition of the same command."""
        command = self.build_command(new_command)
        if command.name != old_command.name:
            raise CommandRegistrationError("Command name cannot change.")
        if command.group_id != old_command.group_id:
            raise CommandRegistrationError("Command group cannot change.")
        if command.unknown and self.unknown_command not in (None, old_command):
            raise CommandRegistrationError("An unknown command is already registered.")

        if command.source_path is None:
            command.source_path = old_command.source_path
        self.discard_command(old_command)
        try:
            self.register_command(command)
        except Exception:
            self.register_command(old_command)
            raise

        logger.info(f"Reregistered command {command.group_id}:{command.member_name}")
        await self._emit("command_reregister", command, old_command)
        return command

    async def unregister_command(self, command: Command) -> None:
        self.discard_command(command)
        logger.info(f"Unregistered command {command.group_id}:{command.member_name}")
        await self._emit("command_unregister", command)

    async def reload_command(self, command: Command) -> Command:
        if command.source_path is None:
            raise ValueError(f"Command {command.name} was not loaded from a file and can't be reloaded.")
        new_command = self.loader.read_command(command.source_path, command.name)
        return await self.reregister_command(new_command, command)

    def discard_command(self, command: Command) -> None:
        self.commands.pop(command.name, None)
        if command.group is not None:
            command.group.commands.pop(command.name, None)
        if self.unknown_command is command:
            self.unknown_command = None

    # Types

    def register_type(self, type_: ArgumentType | type[ArgumentType]) -> ArgumentType:
        if isinstance(type_, type) and issubclass(type_, ArgumentType):
            type_ = type_(self)
        if not isinstance(type_, ArgumentType):
            raise TypeError(f"Invalid type object to register: {type_!r}")
        if type_.id in self.types:
            raise CommandRegistrationError(f'An argument type with the ID "{type_.id}" is already registered.')
        self.types[type_.id] = type_
        logger.debug(f"Registered argument type {type_.id}")
        return type_

    def register_types(self, types: Iterable[Any]) -> None:
        for type_ in types:
            self.register_type(type_)

    def register_default_types(self) -> None:
        self.register_types(DEFAULT_TYPES)

    # Lookup

    def find_groups(self, search: str | None = None, exact: bool = False) -> list[CommandGroup]:
        """
        Find groups by ID or name.

        Args:
            search: Text to look for; every group when empty
            exact: Require equality instead of substring containment

        Returns:
            The matching groups. An inexact search returns only the group whose
            ID or name equals ``search`` when there is one.
        """
        if not search:
            return list(self.groups.values())

        search = search.lower()
        if exact:
            return [group for group in self.groups.values() if group.id == search or group.name.lower() == search]

        matched = [group for group in self.groups.values() if search in group.id or search in group.name.lower()]
        for group in matched:
            if group.id == search or group.name.lower() == search:
                return [group]
        return matched

    def find_commands(self, search: str | None = None, exact: bool = False) -> list[Command]:
        """
        Find commands by name, alias or ``group:member``.

        Args:
            search: Text to look for; every command when empty
            exact: Require equality instead of substring containment

        Returns:
            The matching commands. An inexact search returns only the command
            whose name or an alias equals ``search`` when there is one.
        """
        if not search:
            return list(self.commands.values())

        search = search.lower()

        def qualified(command: Command) -> str:
            return f"{command.group_id}:{command.member_name}"

        if exact:
            return [
                command
                for command in self.commands.values()
                if command.name == search or search in command.aliases or qualified(command) == search
            ]

        matched = [
            command
            for command in self.commands.values()
            if search in command.name
            or qualified(command) == search
            or any(search in alias for alias in command.aliases)
        ]
        for command in matched:
            if command.name == search or search in command.aliases:
                return [command]
        return matched

    def resolve_group(self, group: Any) -> CommandGroup:
        if isinstance(group, CommandGroup):
            return group
        if isinstance(group, str):
            groups = self.find_groups(group, exact=True)
            if len(groups) == 1:
                return groups[0]
        raise ValueError("Unable to resolve group.")

    def resolve_command(self, command: Any) -> Command:
        if isinstance(command, Command):
            return command
        if getattr(command, "command", None) is not None and isinstance(command.command, Command):
            return command.command
        if isinstance(command, str):
            commands = self.find_commands(command, exact=True)
            if len(commands) == 1:
                return commands[0]
        raise ValueError("Unable to resolve command.")

    async def _emit(self, event_name: str, *args: Any) -> None:
        if self.bot is not None:
            await self.bot.events.emit(event_name, *args)
