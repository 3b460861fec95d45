"""Decorator for defining commands as plain coroutine functions."""

from collections.abc import Awaitable, Callable
from typing import Any

from .base import Command


def command(name: str, group: str, description: str = "", **info: Any) -> Callable:
    """
    Mark a coroutine ``func(ctx, args)`` as a command.

    The metadata is stored on the function and turned into a
    :class:`FunctionCommand` when the function is registered. Keyword arguments
    are the same as :class:`Command`'s.
    """

    def decorator(func: Callable) -> Callable:
        func._command_info = {"name": name, "group": group, "description": description, **info}
        return func

    return decorator


class FunctionCommand(Command):
    def __init__(self, registry: Any, callback: Callable[..., Awaitable[Any]], **info: Any) -> None:
        super().__init__(registry, **info)
        self.callback = callback

    async def run(self, ctx: Any, args: Any, from_pattern: bool = False, result: Any = None) -> Any:
        return await self.callback(ctx, args)
