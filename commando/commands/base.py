"""Base command class."""

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.utils import UNSET, build_usage, escape_markdown, format_permissions, permission_name
from .collector import ArgumentCollector

logger = logging.getLogger(__name__)

ARGS_TYPES = ("single", "multiple")


@dataclass(frozen=True)
class Throttling:
    usages: int
    duration: float

    def __post_init__(self) -> None:
        if not isinstance(self.usages, int) or self.usages < 1:
            raise ValueError("Command throttling usages must be a number >= 1.")
        if not isinstance(self.duration, (int, float)) or self.duration < 1:
            raise ValueError("Command throttling duration must be a number >= 1.")


@dataclass
class Throttle:
    start: float
    usages: int = 0
    expiry: asyncio.TimerHandle | None = None

    def expired(self, duration: float) -> bool:
        return time.monotonic() - self.start >= duration


class Command:
    """
    A command that can be run by the dispatcher.

    Subclasses call ``super().__init__(registry, name=..., group=..., ...)`` and
    implement :meth:`run`. Names, aliases, group and member names are lowercased.

    Args:
        registry: The registry the command will be registered in
        name: Unique command name
        group: ID of the group the command belongs to
        member_name: Name unique within the group, defaults to ``name``
        description: Short description
        aliases: Alternative names
        auto_aliases: Add dash-less aliases for names containing dashes
        format: Usage format, generated from ``args`` when omitted
        details: Long description
        examples: Usage examples
        guild_only: Only usable in guild channels
        owner_only: Only usable by the bot owners
        client_permissions: Permissions the bot needs in the channel
        user_permissions: Permissions the user needs in the channel
        nsfw: Only usable in NSFW channels
        throttling: ``Throttling`` or ``{"usages": int, "duration": seconds}``
        default_handling: Whether the dispatcher resolves this command by name
        args: Argument definitions for the collector
        args_prompt_limit: Re-prompts allowed while collecting arguments
        args_type: ``single`` or ``multiple`` when there are no ``args``
        args_count: Maximum values for ``multiple``
        args_single_quotes: Whether single quotes group words
        patterns: Regular expressions that trigger the command anywhere in a message
        guarded: Can't be disabled
        hidden: Hidden from listings
        unknown: Runs for unknown commands
    """

    def __init__(
        self,
        registry: Any,
        *,
        name: str,
        group: str,
        member_name: str | None = None,
        description: str = "",
        aliases: list[str] | None = None,
        auto_aliases: bool = True,
        format: str | None = None,
        details: str | None = None,
        examples: list[str] | None = None,
        guild_only: bool = False,
        owner_only: bool = False,
        client_permissions: list[str] | None = None,
        user_permissions: list[str] | None = None,
        nsfw: bool = False,
        throttling: Throttling | dict[str, Any] | None = None,
        default_handling: bool = True,
        args: list[Any] | None = None,
        args_prompt_limit: float | None = None,
        args_type: str = "single",
        args_count: int = 0,
        args_single_quotes: bool = True,
        patterns: list[str | re.Pattern] | None = None,
        guarded: bool = False,
        hidden: bool = False,
        unknown: bool = False,
    ) -> None:
        if not name or not isinstance(name, str):
            raise TypeError("Command name must be a non-empty string.")
        if not group or not isinstance(group, str):
            raise TypeError("Command group must be a non-empty string.")
        if args_type not in ARGS_TYPES:
            raise ValueError(f"Command args_type must be one of {', '.join(ARGS_TYPES)}.")
        if args_count and args_count < 2:
            raise ValueError("Command args_count must be at least 2.")
        if args_prompt_limit is None:
            args_prompt_limit = registry.bot.settings.args_prompt_limit if registry.bot is not None else math.inf
        if args_prompt_limit < 0:
            raise ValueError("Command args_prompt_limit must be a number >= 0.")

        self.registry = registry
        self.name = name.lower()
        self.group_id = group.lower()
        self.group: Any = None
        self.member_name = (member_name or name).lower()
        self.description = description
        self.details = details
        self.examples = examples or []

        self.aliases = [alias.lower() for alias in aliases or []]
        if auto_aliases:
            for candidate in [self.name, *self.aliases]:
                collapsed = candidate.replace("-", "")
                if collapsed != candidate and collapsed not in self.aliases:
                    self.aliases.append(collapsed)

        self.guild_only = guild_only
        self.owner_only = owner_only
        self.client_permissions = list(client_permissions or [])
        self.user_permissions = list(user_permissions or [])
        self.nsfw = nsfw
        self.default_handling = default_handling
        self.guarded = guarded
        self.hidden = hidden
        self.unknown = unknown

        if isinstance(throttling, dict):
            throttling = Throttling(**throttling)
        self.throttling: Throttling | None = throttling
        self._throttles: dict[int, Throttle] = {}

        self.args_collector = ArgumentCollector(registry, args, args_prompt_limit) if args else None
        self.format = format if format is not None else (self.args_collector.format if self.args_collector else None)
        self.args_type = args_type
        self.args_count = args_count
        self.args_single_quotes = args_single_quotes

        self.patterns = [re.compile(pattern) if isinstance(pattern, str) else pattern for pattern in patterns or []]
        for pattern in self.patterns:
            if not isinstance(pattern, re.Pattern):
                raise TypeError("Command patterns must be regular expressions.")

        self.source_path: Path | None = None

    @property
    def bot(self) -> Any:
        return self.registry.bot

    async def has_permission(self, ctx: Any, owner_override: bool = True) -> bool | str:
        """Check whether the author may run the command; a string explains why not."""
        if not self.owner_only and not self.user_permissions:
            return True
        is_owner = self.bot.is_owner(ctx.author.id)
        if owner_override and is_owner:
            return True
        if self.owner_only and (owner_override or not is_owner):
            return f"The `{self.name}` command can only be used by the bot owner."

        if not ctx.is_direct and self.user_permissions:
            missing = await ctx.message.missing_permissions(ctx.author.id, self.user_permissions)
            if len(missing) == 1:
                return (
                    f"The `{self.name}` command requires you to have the "
                    f'"{permission_name(missing[0])}" permission.'
                )
            if missing:
                return (
                    f"The `{self.name}` command requires you to have the following permissions: "
                    f"{format_permissions(missing)}"
                )
        return True

    async def run(self, ctx: Any, args: Any, from_pattern: bool = False, result: Any = None) -> Any:
        """Run the command.

        Args:
            ctx: The dispatch context
            args: Collected argument values, pattern match, or parsed argument string
            from_pattern: Whether the command was triggered by one of its patterns
            result: The argument collector result, if a collector was used

        Returns:
            A sent message, a list of sent messages, or None
        """
        raise NotImplementedError(f"{type(self).__name__} doesn't have a run() method.")

    async def on_blocked(self, ctx: Any, reason: str, data: dict[str, Any] | None = None) -> Any:
        data = data or {}
        if reason == "guildOnly":
            return await ctx.reply(f"The `{self.name}` command must be used in a server channel.")
        if reason == "nsfw":
            return await ctx.reply(f"The `{self.name}` command can only be used in NSFW channels.")
        if reason == "permission":
            if data.get("response"):
                return await ctx.reply(data["response"])
            return await ctx.reply(f"You do not have permission to use the `{self.name}` command.")
        if reason == "clientPermissions":
            missing = data.get("missing", [])
            if len(missing) == 1:
                return await ctx.reply(
                    f'I need the "{permission_name(missing[0])}" permission for the `{self.name}` command to work.'
                )
            return await ctx.reply(
                f"I need the following permissions for the `{self.name}` command to work: "
                f"{format_permissions(missing)}"
            )
        if reason == "throttling":
            return await ctx.reply(
                f"You may not use the `{self.name}` command again for another {data['remaining']:.1f} seconds."
            )
        return None

    async def on_error(
        self, error: Exception, ctx: Any, args: Any, from_pattern: bool = False, result: Any = None
    ) -> Any:
        owners = [f"<@{owner}>" for owner in sorted(self.bot.owners)]
        if len(owners) > 1:
            owners[-1] = f"or {owners[-1]}"
        owner_list = (", " if len(owners) > 2 else " ").join(owners) or "the bot owner"
        invite = self.bot.settings.invite
        contact = f" in this server: {invite}" if invite else "."
        return await ctx.reply(
            f"An error occurred while running the command: `{type(error).__name__}: {escape_markdown(str(error))}`\n"
            f"You shouldn't ever receive an error like this.\n"
            f"Please contact {owner_list}{contact}"
        )

    def throttle(self, user_id: int) -> Throttle | None:
        """Get or create the throttle of a user, or None if they can't be throttled."""
        if self.throttling is None or self.bot.is_owner(user_id):
            return None

        throttle = self._throttles.get(user_id)
        if throttle is None or throttle.expired(self.throttling.duration):
            if throttle is not None and throttle.expiry is not None:
                throttle.expiry.cancel()
            throttle = Throttle(start=time.monotonic())
            throttle.expiry = asyncio.get_running_loop().call_later(
                self.throttling.duration, self._expire_throttle, user_id, throttle
            )
            self._throttles[user_id] = throttle
        return throttle

    def _expire_throttle(self, user_id: int, throttle: Throttle) -> None:
        if self._throttles.get(user_id) is throttle:
            del self._throttles[user_id]

    async def set_enabled_in(self, scope: Any, enabled: bool) -> None:
        """Enable or disable the command in a scope (None for globally)."""
        if self.guarded:
            raise ValueError("The command is guarded.")
        await self.bot.scopes.set_command_enabled(scope, self, enabled)

    def is_enabled_in(self, scope: Any, bypass_group: bool = False) -> bool:
        if self.guarded:
            return True
        scopes = self.bot.scopes
        group_enabled = bypass_group or self.group is None or self.group.is_enabled_in(scope)
        return group_enabled and scopes.is_command_enabled(scope, self.name)

    async def is_usable(self, ctx: Any = None) -> bool:
        if ctx is None:
            return self.is_enabled_in(None)
        if self.guild_only and ctx.is_direct:
            return False
        permission = await self.has_permission(ctx)
        return self.is_enabled_in(ctx.guild_id) and permission is True

    def usage(self, arg_string: str | None = None, prefix: Any = UNSET, user: Any = UNSET) -> str:
        if prefix is UNSET:
            prefix = self.bot.scopes.prefix_for(None)
        if user is UNSET:
            user = self.bot.user
        command = f"{self.name} {arg_string}" if arg_string else self.name
        return build_usage(command, prefix, user)

    async def reload(self) -> "Command":
        return await self.registry.reload_command(self)

    async def unload(self) -> None:
        await self.registry.unregister_command(self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.group_id}:{self.member_name}>"
