import asyncio
import inspect
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..commands.context import DispatchContext
from ..transport.base import IncomingMessage
from .awaiting import AwaitingReplies
from .utils import UNSET

logger = logging.getLogger(__name__)

FIRST_TOKEN = re.compile(r"^([^\s]+)", re.IGNORECASE)


@dataclass
class Inhibition:
    reason: str
    response: Any = None


class Dispatcher:
    """Turns incoming messages into command runs.

    Handles prefix and mention parsing, pattern commands, inhibitors, and
    replaying commands when their trigger message is edited.
    """

    def __init__(self, bot: Any, registry: Any) -> None:
        self.bot = bot
        self.registry = registry
        self.inhibitors: list[Callable] = []
        self.awaiting = AwaitingReplies()
        self._command_patterns: dict[str, re.Pattern] = {}
        self._results: dict[int, DispatchContext | None] = {}
        self._expiry: dict[int, asyncio.TimerHandle] = {}

    def add_inhibitor(self, inhibitor: Callable) -> bool:
        """
        Add a function that can stop commands from running.

        The inhibitor is called with the dispatch context and returns a falsy
        value to allow the command, or a reason string, a ``(reason, response)``
        tuple or an :class:`Inhibition` to block it. It may be a coroutine.

        Returns:
            False if the inhibitor was already added
        """
        if not callable(inhibitor):
            raise TypeError("The inhibitor must be a function.")
        if inhibitor in self.inhibitors:
            return False
        self.inhibitors.append(inhibitor)
        return True

    def remove_inhibitor(self, inhibitor: Callable) -> bool:
        if not callable(inhibitor):
            raise TypeError("The inhibitor must be a function.")
        if inhibitor not in self.inhibitors:
            return False
        self.inhibitors.remove(inhibitor)
        return True

    async def handle_message(self, message: IncomingMessage, previous: IncomingMessage | None = None) -> None:
        """Handle a new message, or an edit of ``previous``. Never raises."""
        try:
            await self._handle_message(message, previous)
        except Exception as e:
            logger.error(f"Error handling message {message.id}: {e}")
            await self.bot.events.emit("error", e, message)

    async def _handle_message(self, message: IncomingMessage, previous: IncomingMessage | None) -> None:
        if not self.should_handle(message, previous):
            return

        settings = self.bot.settings
        old_ctx = None
        if previous is not None:
            # Uncached edits (never seen or past the editable window) dispatch like new messages
            old_ctx = self._results.get(previous.id)
            if old_ctx is None and not settings.non_command_editable:
                return
            ctx = self.parse_message(message)
            if ctx is not None and old_ctx is not None:
                ctx.responses = old_ctx.responses
                ctx.response_positions = old_ctx.response_positions
        else:
            ctx = self.parse_message(message)

        responses: Any = UNSET
        if ctx is not None:
            inhibition = await self.inhibit(ctx)
            if inhibition is not None:
                responses = await inhibition.response if inhibition.response is not None else UNSET
            elif ctx.command is None:
                await self.bot.events.emit("unknown_command", ctx)
                responses = await ctx.reply(
                    f"Unknown command. Use {ctx.any_usage('help')} to view the list of all commands."
                )
            elif not ctx.command.is_enabled_in(message.guild_id):
                if ctx.command.unknown:
                    await self.bot.events.emit("unknown_command", ctx)
                else:
                    responses = await ctx.reply(f"The `{ctx.command.name}` command is disabled.")
            else:
                responses = await ctx.run()
                if isinstance(responses, list):
                    responses = [await response if inspect.isawaitable(response) else response for response in responses]
            await ctx.finalize(None if responses is UNSET else responses)
        elif old_ctx is not None:
            await old_ctx.finalize(None)
            if not settings.non_command_editable:
                self._forget(message.id)

        self._cache_context(message, previous, ctx, responses)

    def should_handle(self, message: IncomingMessage, previous: IncomingMessage | None = None) -> bool:
        author = message.author
        if author.is_bot:
            return False
        own_id = self.bot.user.id if self.bot.user is not None else None
        if self.bot.settings.selfbot and author.id != own_id:
            return False
        if not self.bot.settings.selfbot and author.id == own_id:
            return False
        if self.awaiting.is_awaiting(author.id, message.channel_id):
            return False
        if previous is not None and message.content == previous.content:
            return False
        return True

    def parse_message(self, message: IncomingMessage) -> DispatchContext | None:
        """Find the command a message triggers; None if it isn't a command message."""
        content = message.content or ""
        for command in self.registry.commands.values():
            for pattern in command.patterns:
                match = pattern.search(content)
                if match:
                    return DispatchContext(self, message, command, pattern_matches=match)

        prefix = self.bot.scopes.prefix_for(message.guild_id)
        ctx = self.match_default(message, self.command_pattern(prefix), 2)
        if ctx is None and message.is_direct and not self.bot.settings.selfbot:
            ctx = self.match_default(message, FIRST_TOKEN, 1)
        return ctx

    def match_default(self, message: IncomingMessage, pattern: re.Pattern, name_index: int = 1) -> DispatchContext | None:
        content = message.content or ""
        match = pattern.search(content)
        if not match:
            return None

        arg_string = content[match.end(name_index):]
        commands = self.registry.find_commands(match.group(name_index), exact=True)
        if len(commands) != 1 or not commands[0].default_handling:
            return DispatchContext(self, message, self.registry.unknown_command, arg_string)
        return DispatchContext(self, message, commands[0], arg_string)

    def command_pattern(self, prefix: str) -> re.Pattern:
        pattern = self._command_patterns.get(prefix)
        if pattern is None:
            pattern = self.build_command_pattern(prefix)
        return pattern

    def build_command_pattern(self, prefix: str) -> re.Pattern:
        """
        Build the regular expression matching ``<prefix><name>`` or ``@bot [prefix]<name>``.

        Group 1 is the prefix or mention and group 2 the command name.
        """
        alternatives = []
        escaped = re.escape(prefix) if prefix else ""
        if prefix:
            alternatives.append(rf"{escaped}\s*")
        if self.bot.user is not None:
            after_mention = rf"(?:{escaped}\s*)?" if prefix else ""
            alternatives.append(rf"<@!?{self.bot.user.id}>\s+{after_mention}")
        if not alternatives:
            # Without a prefix or a known bot user nothing can match.
            alternatives.append(r"(?!)")

        pattern = re.compile(rf"^({'|'.join(alternatives)})([^\s]+)", re.IGNORECASE)
        self._command_patterns[prefix] = pattern
        logger.debug(f'Built command pattern for prefix "{prefix}": {pattern.pattern}')
        return pattern

    def clear_patterns(self) -> None:
        self._command_patterns.clear()

    async def inhibit(self, ctx: DispatchContext) -> Inhibition | None:
        for inhibitor in self.inhibitors:
            result = inhibitor(ctx)
            if inspect.isawaitable(result):
                result = await result
            if not result:
                continue

            if isinstance(result, str):
                result = Inhibition(result)
            elif isinstance(result, tuple) and len(result) == 2:
                result = Inhibition(*result)
            if not isinstance(result, Inhibition) or not isinstance(result.reason, str):
                raise TypeError(
                    f'Inhibitor "{getattr(inhibitor, "__name__", inhibitor)}" had an invalid result; '
                    "must be a string, a (reason, response) tuple or an Inhibition."
                )
            if result.response is not None and not inspect.isawaitable(result.response):
                raise TypeError(f"Inhibition response for {result.reason} must be awaitable.")

            logger.debug(f"Message {ctx.message.id} inhibited: {result.reason}")
            await self.bot.events.emit("command_blocked", ctx, result.reason, result)
            return result
        return None

    def _cache_context(
        self, message: IncomingMessage, previous: IncomingMessage | None, ctx: DispatchContext | None, responses: Any
    ) -> None:
        settings = self.bot.settings
        if settings.command_editable_duration <= 0:
            return
        if ctx is None and not settings.non_command_editable:
            return

        if responses is None:
            self._forget(message.id)
            return

        self._results[message.id] = ctx
        if message.id not in self._expiry:
            self._expiry[message.id] = asyncio.get_running_loop().call_later(
                settings.command_editable_duration, self._forget, message.id
            )

    def _forget(self, message_id: int) -> None:
        self._results.pop(message_id, None)
        handle = self._expiry.pop(message_id, None)
        if handle is not None:
            handle.cancel()

    def get_cached_context(self, message_id: int) -> DispatchContext | None:
        return self._results.get(message_id)

    def close(self) -> None:
        for handle in self._expiry.values():
            handle.cancel()
        self._expiry.clear()
        self._results.clear()
