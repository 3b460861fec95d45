"""Argument types using strategy pattern."""

import asyncio
import logging
import math
import re
from abc import ABC, abstractmethod
from typing import Any

from ..core.utils import disambiguation, escape_markdown

logger = logging.getLogger(__name__)

USER_PATTERN = re.compile(r"^(?:<@!?)?([0-9]+)>?$")
ROLE_PATTERN = re.compile(r"^(?:<@&)?([0-9]+)>?$")
CHANNEL_PATTERN = re.compile(r"^(?:<#)?([0-9]+)>?$")

# Lists longer than this are summarised instead of disambiguated.
MAX_DISAMBIGUATION = 15


def _one_of_message(options: list[Any]) -> str:
    return "Please enter one of the following options: " + ", ".join(f"`{option}`" for option in options)


class ArgumentType(ABC):
    """Base class for argument types.

    ``validate`` returns True to accept a value, False to reject it with the
    generic message, or a string explaining why it was rejected.
    """

    id: str = ""

    def __init__(self, registry: Any, type_id: str | None = None) -> None:
        self.registry = registry
        if type_id is not None:
            self.id = type_id
        if not self.id or self.id != self.id.lower():
            raise ValueError("Argument type ID must be lowercase.")

    @abstractmethod
    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        pass

    @abstractmethod
    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        pass

    def is_empty(self, value: Any, ctx: Any, arg: Any, current: Any = None) -> bool:
        if isinstance(value, list):
            return len(value) == 0
        return not value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"


class StringType(ArgumentType):
    id = "string"

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        if arg.one_of and value.lower() not in arg.one_of:
            return _one_of_message(arg.one_of)
        if arg.min is not None and len(value) < arg.min:
            return f"Please keep the {arg.label} above or exactly {arg.min} characters."
        if arg.max is not None and len(value) > arg.max:
            return f"Please keep the {arg.label} below or exactly {arg.max} characters."
        return True

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> str:
        return value


class _NumberType(ArgumentType):
    converter: type = float

    def _convert(self, value: str) -> int | float | None:
        try:
            number = self.converter(value)
        except (TypeError, ValueError):
            return None
        if isinstance(number, float) and math.isnan(number):
            return None
        return number

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        number = self._convert(value)
        if number is None:
            return False
        if arg.one_of and number not in arg.one_of:
            return _one_of_message(arg.one_of)
        if arg.min is not None and number < arg.min:
            return f"Please enter a number above or exactly {arg.min}."
        if arg.max is not None and number > arg.max:
            return f"Please enter a number below or exactly {arg.max}."
        return True

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> int | float:
        return self.converter(value)


class IntegerType(_NumberType):
    id = "integer"
    converter = int


class FloatType(_NumberType):
    id = "float"
    converter = float


class BooleanType(ArgumentType):
    id = "boolean"
    truthy = frozenset({"true", "t", "yes", "y", "on", "enable", "enabled", "1", "+"})
    falsy = frozenset({"false", "f", "no", "n", "off", "disable", "disabled", "0", "-"})

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        lowered = value.lower()
        return lowered in self.truthy or lowered in self.falsy

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool:
        lowered = value.lower()
        if lowered in self.truthy:
            return True
        if lowered in self.falsy:
            return False
        raise ValueError("Unknown boolean value.")


class _EntityType(ArgumentType):
    """A chat entity given by mention, ID, or part of its name.

    Subclasses provide the lookups. A unique partial match is accepted, and
    among several partial matches a unique exact match wins.
    """

    pattern = USER_PATTERN
    label = ""
    # Name searches only make sense inside a guild
    guild_only = True

    async def fetch(self, message: Any, entity_id: int) -> Any:
        raise NotImplementedError

    async def search(self, message: Any, query: str) -> list[Any]:
        raise NotImplementedError

    def names(self, entity: Any) -> list[str]:
        return [entity.name]

    def accepts(self, entity: Any) -> bool:
        return True

    async def _resolve(self, value: str, ctx: Any) -> tuple[Any, list[Any]]:
        message = ctx.message
        match = self.pattern.match(value)
        if message.is_direct and (self.guild_only or not match):
            return None, []

        if match:
            entity = await self.fetch(message, int(match.group(1)))
            return (entity if entity is not None and self.accepts(entity) else None), []

        search = value.lower()
        found = [entity for entity in await self.search(message, search) if self.accepts(entity)]
        if len(found) == 1:
            return found[0], found
        exact = [entity for entity in found if any(name and name.lower() == search for name in self.names(entity))]
        if len(exact) == 1:
            return exact[0], found
        return None, exact or found

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        entity, candidates = await self._resolve(value, ctx)
        if entity is not None:
            return not arg.one_of or entity.id in arg.one_of
        if not candidates:
            return False
        if len(candidates) > MAX_DISAMBIGUATION:
            return f"Multiple {self.label} found. Please be more specific."
        return disambiguation([escape_markdown(self.names(entity)[0]) for entity in candidates], self.label) + "\n"

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        entity, _ = await self._resolve(value, ctx)
        return entity


class UserType(_EntityType):
    """A user given by mention, ID, or (in a guild) part of their name."""

    id = "user"
    label = "users"
    guild_only = False

    async def fetch(self, message: Any, entity_id: int) -> Any:
        return await message.fetch_user(entity_id)

    async def search(self, message: Any, query: str) -> list[Any]:
        return await message.search_users(query)

    def names(self, entity: Any) -> list[str]:
        return [entity.username]


class MemberType(_EntityType):
    """A member of the message's guild, matched by username or nickname."""

    id = "member"
    label = "users"

    async def fetch(self, message: Any, entity_id: int) -> Any:
        return await message.fetch_member(entity_id)

    async def search(self, message: Any, query: str) -> list[Any]:
        return await message.search_members(query)

    def names(self, entity: Any) -> list[str]:
        return [entity.user.username, entity.nickname]


class RoleType(_EntityType):
    id = "role"
    label = "roles"
    pattern = ROLE_PATTERN

    async def fetch(self, message: Any, entity_id: int) -> Any:
        return await message.fetch_role(entity_id)

    async def search(self, message: Any, query: str) -> list[Any]:
        return await message.search_roles(query)


class ChannelType(_EntityType):
    """A channel of the message's guild; ``kinds`` restricts which channel kinds are accepted."""

    id = "channel"
    label = "channels"
    pattern = CHANNEL_PATTERN
    kinds: frozenset[str] | None = None

    async def fetch(self, message: Any, entity_id: int) -> Any:
        return await message.fetch_channel(entity_id)

    async def search(self, message: Any, query: str) -> list[Any]:
        return await message.search_channels(query)

    def accepts(self, entity: Any) -> bool:
        return self.kinds is None or entity.kind in self.kinds


class TextChannelType(ChannelType):
    id = "text-channel"
    label = "text channels"
    kinds = frozenset({"text", "news"})


class VoiceChannelType(ChannelType):
    id = "voice-channel"
    label = "voice channels"
    kinds = frozenset({"voice", "stage"})


class CategoryChannelType(ChannelType):
    id = "category-channel"
    label = "categories"
    kinds = frozenset({"category"})


class CommandType(ArgumentType):
    id = "command"

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        commands = self.registry.find_commands(value)
        if len(commands) == 1:
            return True
        if not commands:
            return False
        if len(commands) > MAX_DISAMBIGUATION:
            return "Multiple commands found. Please be more specific."
        return disambiguation([escape_markdown(command.name) for command in commands], "commands") + "\n"

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        return self.registry.find_commands(value)[0]


class GroupType(ArgumentType):
    id = "group"

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        groups = self.registry.find_groups(value)
        if len(groups) == 1:
            return True
        if not groups:
            return False
        if len(groups) > MAX_DISAMBIGUATION:
            return "Multiple groups found. Please be more specific."
        return disambiguation([escape_markdown(group.name) for group in groups], "groups") + "\n"

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        return self.registry.find_groups(value)[0]


class CommandOrGroupType(ArgumentType):
    id = "command-or-group"

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        groups = self.registry.find_groups(value)
        if len(groups) == 1:
            return True
        commands = self.registry.find_commands(value)
        if len(commands) == 1:
            return True
        if not commands and not groups:
            return False
        lines = []
        if len(commands) > 1:
            lines.append(disambiguation([command.name for command in commands], "commands"))
        if len(groups) > 1:
            lines.append(disambiguation([group.name for group in groups], "groups"))
        return "\n".join(lines)

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        groups = self.registry.find_groups(value)
        if groups:
            return groups[0]
        return self.registry.find_commands(value)[0]


class OneOf(ArgumentType):
    """Union of argument types, tried in priority order."""

    def __init__(self, registry: Any, types: list[ArgumentType]) -> None:
        if not types:
            raise ValueError("OneOf needs at least one argument type.")
        self.types = list(types)
        super().__init__(registry, "|".join(type_.id for type_ in self.types))

    async def _results(self, value: Any, ctx: Any, arg: Any, current: Any) -> list[bool | str]:
        async def check(type_: ArgumentType) -> bool | str:
            if type_.is_empty(value, ctx, arg, current):
                return False
            return await type_.validate(value, ctx, arg, current)

        return await asyncio.gather(*(check(type_) for type_ in self.types))

    async def validate(self, value: str, ctx: Any, arg: Any, current: Any = None) -> bool | str:
        results = await self._results(value, ctx, arg, current)
        if any(result and not isinstance(result, str) for result in results):
            return True
        errors = [result for result in results if isinstance(result, str)]
        if errors:
            return "\n".join(errors)
        return False

    async def parse(self, value: str, ctx: Any, arg: Any, current: Any = None) -> Any:
        results = await self._results(value, ctx, arg, current)
        for type_, result in zip(self.types, results):
            if result and not isinstance(result, str):
                return await type_.parse(value, ctx, arg, current)
        raise ValueError(f'Couldn\'t parse value "{value}" with union type {self.id}.')

    def is_empty(self, value: Any, ctx: Any, arg: Any, current: Any = None) -> bool:
        return all(type_.is_empty(value, ctx, arg, current) for type_ in self.types)


DEFAULT_TYPES: list[type[ArgumentType]] = [
    StringType,
    IntegerType,
    FloatType,
    BooleanType,
    UserType,
    MemberType,
    RoleType,
    ChannelType,
    TextChannelType,
    VoiceChannelType,
    CategoryChannelType,
    CommandType,
    GroupType,
    CommandOrGroupType,
]
