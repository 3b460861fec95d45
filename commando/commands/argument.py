"""A single command argument and its interactive prompt loop."""

import inspect
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from ..core.utils import escape_markdown, is_bounded
from .types import ArgumentType, OneOf

logger = logging.getLogger(__name__)

CANCELLED_USER = "user"
CANCELLED_TIME = "time"
CANCELLED_PROMPT_LIMIT = "promptLimit"

# Invalid values at least this long are not echoed back.
MAX_ECHO_LENGTH = 1850


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass
class ArgumentResult:
    value: Any = None
    cancelled: str | None = None
    prompts: list[Any] = field(default_factory=list)
    answers: list[Any] = field(default_factory=list)


class Argument:
    """
    One argument of a command.

    Args:
        registry: Registry used to resolve type IDs
        key: Name of the value in the collected arguments
        prompt: Text shown when the value is missing
        label: Name shown in messages, defaults to ``key``
        type: A registered type ID, an ArgumentType, or a list of either
            (tried in order as a union)
        min: Minimum value, or length for strings
        max: Maximum value, or length for strings
        one_of: Allowed values
        default: Value used when none is given; a callable is called with
            ``(ctx, argument)``. None means the argument is required.
        infinite: Whether the argument takes all remaining values
        validate: Custom validator ``(value, ctx, argument, current)``
        parse: Custom parser ``(value, ctx, argument, current)``
        is_empty: Custom emptiness check ``(value, ctx, argument, current)``
        error: Message shown instead of any validation error
        wait: Seconds to wait for an answer; 0 or infinity waits forever
    """

    def __init__(
        self,
        registry: Any,
        key: str,
        prompt: str,
        label: str | None = None,
        type: str | ArgumentType | list[str | ArgumentType] | None = None,
        min: float | None = None,
        max: float | None = None,
        one_of: list[Any] | None = None,
        default: Any = None,
        infinite: bool = False,
        validate: Callable | None = None,
        parse: Callable | None = None,
        is_empty: Callable | None = None,
        error: str | None = None,
        wait: float | None = None,
    ) -> None:
        if not key:
            raise ValueError("Argument key must be specified.")
        if not isinstance(prompt, str) or not prompt:
            raise ValueError("Argument prompt must be a non-empty string.")
        if type is None and (validate is None or parse is None):
            raise ValueError('Argument must have either "type" or both "validate" and "parse" specified.')
        if min is not None and max is not None and min > max:
            raise ValueError("Argument min must be less than or equal to max.")
        for name, hook in (("validate", validate), ("parse", parse), ("is_empty", is_empty)):
            if hook is not None and not callable(hook):
                raise TypeError(f"Argument {name} must be a function.")

        self.registry = registry
        self.key = key
        self.label = label or key
        self.prompt = prompt
        self.error = error
        self.type = self._resolve_type(type) if type is not None else None
        self.min = min
        self.max = max
        self.one_of = [value.lower() if isinstance(value, str) else value for value in one_of] if one_of else None
        self.default = default
        self.infinite = infinite
        self.validator = validate
        self.parser = parse
        self.empty_checker = is_empty
        if wait is None:
            wait = registry.bot.settings.argument_wait if registry.bot is not None else 30
        if not isinstance(wait, (int, float)) or math.isnan(wait) or wait < 0:
            raise TypeError("Argument wait must be a non-negative number.")
        self.wait = wait

    @property
    def optional(self) -> bool:
        return self.default is not None

    def _resolve_type(self, type_: Any) -> ArgumentType:
        if isinstance(type_, ArgumentType):
            return type_
        if isinstance(type_, (list, tuple)):
            return OneOf(self.registry, [self._resolve_type(member) for member in type_])
        if isinstance(type_, str):
            if type_ not in self.registry.types:
                raise ValueError(f'Argument type "{type_}" isn\'t registered.')
            return self.registry.types[type_]
        raise TypeError(f"Invalid argument type: {type_!r}")

    async def obtain(self, ctx: Any, value: Any = None, prompt_limit: float = math.inf) -> ArgumentResult:
        """Get a valid value for this argument, prompting the author while it is missing or invalid."""
        empty = self.is_value_empty(value, ctx)
        if empty and self.default is not None:
            return ArgumentResult(value=await self.resolve_default(ctx))
        if self.infinite:
            return await self._obtain_infinite(ctx, value, prompt_limit)

        wait = self.wait if is_bounded(self.wait) else None
        result = ArgumentResult()
        current = None
        valid = False if empty else await self.validate_value(value, ctx)

        while not valid or isinstance(valid, str):
            if len(result.prompts) >= prompt_limit:
                result.cancelled = CANCELLED_PROMPT_LIMIT
                return result

            if empty:
                text = self.prompt
            else:
                text = valid or f"You provided an invalid {self.label}. Please try again."
            instructions = "Respond with `cancel` to cancel the command."
            if wait:
                instructions += f" The command will automatically be cancelled in {self.wait} seconds."
            result.prompts.append(await ctx.reply(f"{text}\n{instructions}"))

            current = await ctx.message.wait_for_reply(wait)
            if current is None:
                result.cancelled = CANCELLED_TIME
                return result
            result.answers.append(current)
            value = current.content or ""
            if value.lower() == "cancel":
                result.cancelled = CANCELLED_USER
                return result

            empty = self.is_value_empty(value, ctx, current)
            valid = await self.validate_value(value, ctx, current)

        result.value = await self.parse_value(value, ctx, current)
        return result

    async def _obtain_infinite(self, ctx: Any, values: list[Any] | None, prompt_limit: float) -> ArgumentResult:
        wait = self.wait if is_bounded(self.wait) else None
        timeout_notice = f" The command will automatically be cancelled in {self.wait} seconds." if wait else ""
        results: list[Any] = []
        result = ArgumentResult()
        current = None
        position = 0

        while True:
            value = values[position] if values and position < len(values) else None
            valid = await self.validate_value(value, ctx) if value else False
            attempts = 0

            while not valid or isinstance(valid, str):
                attempts += 1
                if attempts > prompt_limit:
                    result.cancelled = CANCELLED_PROMPT_LIMIT
                    return result

                if value:
                    escaped = escape_markdown(value).replace("@", "@\u200b")
                    shown = escaped if len(escaped) < MAX_ECHO_LENGTH else "[too long to show]"
                    text = valid or f'You provided an invalid {self.label}, "{shown}". Please try again.'
                    result.prompts.append(await ctx.reply(
                        f"{text}\nRespond with `cancel` to cancel the command, "
                        f"or `finish` to finish entry up to this point.{timeout_notice}"
                    ))
                elif not results:
                    result.prompts.append(await ctx.reply(
                        f"{self.prompt}\nRespond with `cancel` to cancel the command, "
                        f"or `finish` to finish entry.{timeout_notice}"
                    ))

                current = await ctx.message.wait_for_reply(wait)
                if current is None:
                    result.cancelled = CANCELLED_TIME
                    return result
                result.answers.append(current)
                value = current.content or ""

                lowered = value.lower()
                if lowered == "finish":
                    if results:
                        result.value = results
                    elif self.default is not None:
                        result.value = await self.resolve_default(ctx)
                    else:
                        result.cancelled = CANCELLED_USER
                    return result
                if lowered == "cancel":
                    result.cancelled = CANCELLED_USER
                    return result

                valid = await self.validate_value(value, ctx, current)

            results.append(await self.parse_value(value, ctx, current))

            if values:
                position += 1
                if position == len(values):
                    result.value = results
                    return result

    async def validate_value(self, value: Any, ctx: Any, current: Any = None) -> bool | str:
        if self.validator is not None:
            valid = await _maybe_await(self.validator(value, ctx, self, current))
        else:
            valid = await self.type.validate(value, ctx, self, current)
        if not valid or isinstance(valid, str):
            return self.error or valid
        return valid

    async def parse_value(self, value: Any, ctx: Any, current: Any = None) -> Any:
        if self.parser is not None:
            return await _maybe_await(self.parser(value, ctx, self, current))
        return await self.type.parse(value, ctx, self, current)

    def is_value_empty(self, value: Any, ctx: Any, current: Any = None) -> bool:
        if self.empty_checker is not None:
            return bool(self.empty_checker(value, ctx, self, current))
        if self.type is not None:
            return self.type.is_empty(value, ctx, self, current)
        if isinstance(value, list):
            return len(value) == 0
        return not value

    async def resolve_default(self, ctx: Any) -> Any:
        if callable(self.default):
            return await _maybe_await(self.default(ctx, self))
        return self.default

    def __repr__(self) -> str:
        return f"<Argument key={self.key!r} type={self.type!r}>"
