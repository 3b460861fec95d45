from .argument import Argument, ArgumentResult
from .base import Command, Throttling
from .collector import ArgumentCollector, ArgumentCollectorResult
from .context import DispatchContext
from .decorators import FunctionCommand, command
from .group import CommandGroup
from .registry import Registry
from .types import (
    ArgumentType,
    BooleanType,
    CategoryChannelType,
    ChannelType,
    CommandOrGroupType,
    CommandType,
    FloatType,
    GroupType,
    IntegerType,
    MemberType,
    OneOf,
    RoleType,
    StringType,
    TextChannelType,
    UserType,
    VoiceChannelType,
)

__all__ = [
    "Argument",
    "ArgumentResult",
    "ArgumentCollector",
    "ArgumentCollectorResult",
    "ArgumentType",
    "BooleanType",
    "Command",
    "CommandGroup",
    "CommandOrGroupType",
    "CommandType",
    "DispatchContext",
    "FloatType",
    "FunctionCommand",
    "GroupType",
    "IntegerType",
    "OneOf",
    "Registry",
    "StringType",
    "Throttling",
    "UserType",
    "MemberType",
    "RoleType",
    "ChannelType",
    "TextChannelType",
    "VoiceChannelType",
    "CategoryChannelType",
    "command",
]
