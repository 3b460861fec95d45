import logging
import math
from dataclasses import dataclass, field
from typing import Any

from .argument import Argument

logger = logging.getLogger(__name__)


@dataclass
class ArgumentCollectorResult:
    values: dict[str, Any] | None = None
    cancelled: str | None = None
    prompts: list[Any] = field(default_factory=list)
    answers: list[Any] = field(default_factory=list)


class ArgumentCollector:
    """Obtains the arguments of a command in order."""

    def __init__(self, registry: Any, args: list[Argument | dict[str, Any]], prompt_limit: float = math.inf) -> None:
        if not args:
            raise ValueError("Collector args must be a non-empty list.")
        if prompt_limit is None or prompt_limit < 0:
            raise ValueError("Collector prompt limit must be a non-negative number.")

        self.registry = registry
        self.prompt_limit = prompt_limit
        self.args: list[Argument] = []

        has_infinite = False
        has_optional = False
        keys: set[str] = set()
        for definition in args:
            if has_infinite:
                raise ValueError("No other argument may come after an infinite argument.")
            arg = definition if isinstance(definition, Argument) else Argument(registry, **definition)
            if arg.default is None and has_optional:
                raise ValueError("Required arguments may not come after optional arguments.")
            if arg.key in keys:
                raise ValueError(f'Duplicate argument key "{arg.key}".')
            keys.add(arg.key)
            has_infinite = has_infinite or arg.infinite
            has_optional = has_optional or arg.default is not None
            self.args.append(arg)

    async def obtain(
        self, ctx: Any, provided: list[Any] | None = None, prompt_limit: float | None = None
    ) -> ArgumentCollectorResult:
        """Obtain every argument, feeding pre-supplied values in order.

        The author is marked as awaiting replies in the channel for the whole
        collection, so their answers are not dispatched as commands.
        """
        provided = provided or []
        if prompt_limit is None:
            prompt_limit = self.prompt_limit

        result = ArgumentCollectorResult()
        values: dict[str, Any] = {}
        async with ctx.dispatcher.awaiting.hold(ctx.message.author.id, ctx.message.channel_id):
            for index, arg in enumerate(self.args):
                if arg.infinite:
                    value = provided[index:]
                else:
                    value = provided[index] if index < len(provided) else None
                arg_result = await arg.obtain(ctx, value, prompt_limit)
                result.prompts.extend(arg_result.prompts)
                result.answers.extend(arg_result.answers)
                if arg_result.cancelled:
                    logger.debug(f"Argument {arg.key} cancelled ({arg_result.cancelled})")
                    result.cancelled = arg_result.cancelled
                    return result
                values[arg.key] = arg_result.value

        result.values = values
        return result

    @property
    def format(self) -> str:
        parts = []
        for arg in self.args:
            label = f"{arg.label}..." if arg.infinite else arg.label
            parts.append(f"[{label}]" if arg.default is not None else f"<{label}>")
        return " ".join(parts)
