from .commands import (
    Argument,
    ArgumentCollector,
    ArgumentType,
    Command,
    CommandGroup,
    DispatchContext,
    OneOf,
    Registry,
    command,
)
from .core.bot import CommandoBot, build_bot
from .errors import CommandFormatError, CommandRegistrationError, FriendlyError

__version__ = "0.1.0"

__all__ = [
    "Argument",
    "ArgumentCollector",
    "ArgumentType",
    "Command",
    "CommandFormatError",
    "CommandGroup",
    "CommandRegistrationError",
    "CommandoBot",
    "DispatchContext",
    "FriendlyError",
    "OneOf",
    "Registry",
    "build_bot",
    "command",
]
