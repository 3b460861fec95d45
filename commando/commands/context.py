"""Per-message dispatch state: the resolved command and the bot's responses to it."""

import logging
import math
import time
from typing import Any

from ..core.utils import DIRECT, build_usage, destination_key, parse_args, strip_wrapping_quotes
from ..errors import CommandFormatError, FriendlyError
from ..transport.base import IncomingMessage, SentMessage

logger = logging.getLogger(__name__)


class DispatchContext:
    """
    Binds one incoming message to the command it triggered.

    ``responses`` maps a destination (channel id or ``"direct"``) to the
    messages the bot sent for this trigger. It is None until the context is
    finalized; a context created for an edit inherits the previous context's
    responses, and responding then edits those messages in place.
    """

    def __init__(
        self,
        dispatcher: Any,
        message: IncomingMessage,
        command: Any = None,
        arg_string: str | None = None,
        pattern_matches: Any = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.bot = dispatcher.bot
        self.message = message
        self.command = command
        self.arg_string = arg_string
        self.pattern_matches = pattern_matches
        self.responses: dict[Any, list[Any]] | None = None
        self.response_positions: dict[Any, int] | None = None

    @property
    def is_command(self) -> bool:
        return self.command is not None

    @property
    def author(self) -> Any:
        return self.message.author

    @property
    def channel_id(self) -> int:
        return self.message.channel_id

    @property
    def guild_id(self) -> int | None:
        return self.message.guild_id

    @property
    def is_direct(self) -> bool:
        return self.message.is_direct

    def usage(self, arg_string: str | None = None) -> str:
        if self.is_direct:
            return self.command.usage(arg_string, None, None)
        return self.command.usage(arg_string, self.bot.scopes.prefix_for(self.guild_id), self.bot.user)

    def any_usage(self, command: str) -> str:
        if self.is_direct:
            return build_usage(command, None, None)
        return build_usage(command, self.bot.scopes.prefix_for(self.guild_id), self.bot.user)

    def parse_args(self) -> str | list[str]:
        """Parse the argument string according to the command's ``args_type``."""
        arg_string = self.arg_string or ""
        if self.command.args_type == "single":
            return strip_wrapping_quotes(arg_string.strip(), self.command.args_single_quotes)
        if self.command.args_type == "multiple":
            return parse_args(arg_string, self.command.args_count, self.command.args_single_quotes)
        raise ValueError(f'Unknown args_type "{self.command.args_type}".')

    async def _block(self, reason: str, data: dict[str, Any] | None = None) -> Any:
        logger.debug(f"Command {self.command.name} blocked for {self.author.id}: {reason}")
        await self.bot.events.emit("command_blocked", self, reason, data or {})
        return await self.command.on_blocked(self, reason, data or {})

    async def run(self) -> Any:
        """Check the command can run, collect its arguments and run it."""
        command = self.command

        if command.guild_only and self.is_direct:
            return await self._block("guildOnly")

        if command.nsfw and not self.message.nsfw and not self.bot.is_owner(self.author.id):
            return await self._block("nsfw")

        permission = await command.has_permission(self)
        if permission is not True:
            data = {"response": permission if isinstance(permission, str) else None}
            return await self._block("permission", data)

        if not self.is_direct and command.client_permissions and self.bot.user is not None:
            missing = await self.message.missing_permissions(self.bot.user.id, command.client_permissions)
            if missing:
                return await self._block("clientPermissions", {"missing": missing})

        throttle = command.throttle(self.author.id)
        if throttle is not None and throttle.usages + 1 > command.throttling.usages:
            remaining = throttle.start + command.throttling.duration - time.monotonic()
            return await self._block("throttling", {"throttle": throttle, "remaining": remaining})

        args = self.pattern_matches
        collector_result = None
        if args is None and command.args_collector is not None:
            collector_args = command.args_collector.args
            count = math.inf if collector_args[-1].infinite else len(collector_args)
            provided = parse_args((self.arg_string or "").strip(), count, command.args_single_quotes)
            collector_result = await command.args_collector.obtain(self, provided)
            if collector_result.cancelled:
                await self.bot.events.emit(
                    "command_cancel", command, collector_result.cancelled, self, collector_result
                )
                if not collector_result.prompts or collector_result.cancelled == "promptLimit":
                    return await self.reply(str(CommandFormatError(self)))
                return await self.reply("Cancelled command.")
            args = collector_result.values
        if args is None:
            args = self.parse_args()
        from_pattern = self.pattern_matches is not None

        if throttle is not None:
            throttle.usages += 1

        try:
            logger.debug(f"Running command {command.group_id}:{command.member_name}")
            await self.bot.events.emit("command_run", command, self, args, from_pattern, collector_result)
            value = await command.run(self, args, from_pattern, collector_result)
            if value is not None and not isinstance(value, (SentMessage, list)):
                raise TypeError(
                    f"Command {command.name}'s run() returned an unknown type ({type(value).__name__}). "
                    "Command run methods must return a sent message, a list of sent messages, or None."
                )
            return value
        except Exception as e:
            logger.error(f"Error running command {command.name}: {e}")
            await self.bot.events.emit("command_error", command, e, self, args, from_pattern, collector_result)
            if isinstance(e, FriendlyError):
                return await self.reply(str(e))
            return await command.on_error(e, self, args, from_pattern, collector_result)

    # Responding

    async def respond(self, content: str, kind: str = "reply", lang: str | None = None, from_edit: bool = False) -> Any:
        """
        Send a response, or edit the matching previous one when replaying an edit.

        Args:
            content: Message text
            kind: ``plain``, ``reply``, ``direct`` or ``code``
            lang: Language of a ``code`` block
            from_edit: Set when called because there was no previous response to edit

        Returns:
            The sent or edited message
        """
        should_edit = self.responses is not None and not from_edit

        if kind == "reply" and self.is_direct:
            kind = "plain"
        if kind != "direct" and not self.is_direct and self.bot.user is not None:
            if await self.message.missing_permissions(self.bot.user.id, ["SEND_MESSAGES"]):
                kind = "direct"
        if kind == "code":
            body = content.replace("```", "`\u200b``")
            content = f"```{lang or ''}\n{body}\n```"
            kind = "plain"

        if should_edit:
            destination = DIRECT if kind == "direct" or self.is_direct else self.channel_id
            return await self.edit_current_response(destination, content, kind)

        if kind == "direct":
            return await self.message.send_direct(content)
        if kind == "reply":
            return await self.message.reply(content)
        if kind == "plain":
            return await self.message.send(content)
        raise ValueError(f"Unknown response type {kind}.")

    async def edit_response(self, response: Any, content: str, kind: str = "reply") -> Any:
        if response is None:
            return await self.respond(content, kind, from_edit=True)
        if isinstance(response, list):
            for extra in reversed(response[1:]):
                await extra.delete()
            return await response[0].edit(content)
        return await response.edit(content)

    async def edit_current_response(self, destination: Any, content: str, kind: str = "reply") -> Any:
        responses = self.responses.setdefault(destination, [])
        self.response_positions.setdefault(destination, -1)
        self.response_positions[destination] += 1
        position = self.response_positions[destination]
        response = responses[position] if position < len(responses) else None
        return await self.edit_response(response, content, kind)

    async def say(self, content: str) -> Any:
        return await self.respond(content, "plain")

    async def reply(self, content: str) -> Any:
        return await self.respond(content, "reply")

    async def direct(self, content: str) -> Any:
        return await self.respond(content, "direct")

    async def code(self, lang: str | None, content: str) -> Any:
        return await self.respond(content, "code", lang)

    async def finalize(self, responses: Any) -> None:
        """Delete unused previous responses and record the new ones."""
        if self.responses is not None:
            await self.delete_remaining_responses()

        self.responses = {}
        self.response_positions = {}
        if responses is None:
            return
        for response in responses if isinstance(responses, list) else [responses]:
            first = response[0] if isinstance(response, list) else response
            key = destination_key(first)
            self.responses.setdefault(key, []).append(response)
            self.response_positions.setdefault(key, -1)

    async def delete_remaining_responses(self) -> None:
        for key, responses in self.responses.items():
            for response in responses[self.response_positions.get(key, -1) + 1 :]:
                for message in response if isinstance(response, list) else [response]:
                    try:
                        await message.delete()
                    except Exception as e:
                        logger.warning(f"Failed to delete stale response {message.id}: {e}")

    def __repr__(self) -> str:
        command = self.command.name if self.command else None
        return f"<DispatchContext message={self.message.id} command={command!r}>"
