"""Exceptions raised by the command framework."""

from typing import Any


class FriendlyError(Exception):
    """An error whose message is safe to show to the user verbatim."""


class CommandFormatError(FriendlyError):
    """Raised (or replied) when a command was used with an invalid format."""

    def __init__(self, ctx: Any) -> None:
        command = ctx.command
        super().__init__(
            f"Invalid command usage. The `{command.name}` command's accepted format is: "
            f"{ctx.usage(command.format)}. "
            f"Use {ctx.any_usage(f'help {command.name}')} for more information."
        )


class CommandRegistrationError(ValueError):
    """Raised when a command, group or argument type can't be registered."""
