"""Text helpers shared by the dispatcher, commands and argument types."""

import math
import re
from typing import Any


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks "not given" where None is a meaningful value.
UNSET: Any = _Unset()

DIRECT = "direct"
NBSP = "\xa0"

_SMART_SINGLE = re.compile("[\u2018\u2019]")
_SMART_DOUBLE = re.compile("[\u201c\u201d]")

_ARGS_PATTERN = re.compile(r"""\s*(?:("|')([\s\S]*?)\1|(\S+))\s*""")
_ARGS_PATTERN_DOUBLE = re.compile(r"""\s*(?:(")([\s\S]*?)"|(\S+))\s*""")
_WRAPPED = re.compile(r"""^("|')([\s\S]*)\1$""")
_WRAPPED_DOUBLE = re.compile(r"""^(")([\s\S]*)"$""")

_MARKDOWN = re.compile(r"([\\*_`~|])")

# Permission names understood by the transport, with their display names.
PERMISSIONS: dict[str, str] = {
    "CREATE_INSTANT_INVITE": "Create Instant Invite",
    "KICK_MEMBERS": "Kick Members",
    "BAN_MEMBERS": "Ban Members",
    "ADMINISTRATOR": "Administrator",
    "MANAGE_CHANNELS": "Manage Channels",
    "MANAGE_GUILD": "Manage Server",
    "ADD_REACTIONS": "Add Reactions",
    "VIEW_AUDIT_LOG": "View Audit Log",
    "PRIORITY_SPEAKER": "Priority Speaker",
    "STREAM": "Video",
    "VIEW_CHANNEL": "View Channels",
    "SEND_MESSAGES": "Send Messages",
    "SEND_TTS_MESSAGES": "Send TTS Messages",
    "MANAGE_MESSAGES": "Manage Messages",
    "EMBED_LINKS": "Embed Links",
    "ATTACH_FILES": "Attach Files",
    "READ_MESSAGE_HISTORY": "Read Message History",
    "MENTION_ROLES": "Mention @everyone, @here, and All Roles",
    "USE_EXTERNAL_EMOJIS": "Use External Emojis",
    "VIEW_GUILD_INSIGHTS": "View Server Insights",
    "CONNECT": "Connect",
    "SPEAK": "Speak",
    "MUTE_MEMBERS": "Mute Members",
    "DEAFEN_MEMBERS": "Deafen Members",
    "MOVE_MEMBERS": "Move Members",
    "USE_VOICE_ACTIVITY": "Use Voice Activity",
    "CHANGE_NICKNAME": "Change Nickname",
    "MANAGE_NICKNAMES": "Manage Nicknames",
    "MANAGE_ROLES": "Manage Roles",
    "MANAGE_WEBHOOKS": "Manage Webhooks",
    "MANAGE_THREADS": "Manage Threads",
    "SEND_MESSAGES_IN_THREADS": "Send Messages in Threads",
    "MODERATE_MEMBERS": "Timeout Members",
}


def permission_name(permission: str) -> str:
    return PERMISSIONS.get(permission, permission.replace("_", " ").title())


def format_permissions(permissions: list[str]) -> str:
    """
    Join permission names into a human-readable list.

    Args:
        permissions: Permission names such as ``SEND_MESSAGES``

    Returns:
        The display names separated by commas
    """
    return ", ".join(permission_name(permission) for permission in permissions)


def remove_smart_quotes(text: str, allow_single_quote: bool = True) -> str:
    if allow_single_quote:
        text = _SMART_SINGLE.sub("'", text)
    return _SMART_DOUBLE.sub('"', text)


def strip_wrapping_quotes(text: str, allow_single_quote: bool = True) -> str:
    pattern = _WRAPPED if allow_single_quote else _WRAPPED_DOUBLE
    match = pattern.match(text)
    return match.group(2) if match else text


def parse_args(arg_string: str, arg_count: float = 0, allow_single_quote: bool = True) -> list[str]:
    """
    Split an argument string into values, honouring quotes.

    Args:
        arg_string: The raw text following the command name
        arg_count: Maximum number of values; the last one receives the rest of
            the text. ``0`` means no limit, ``math.inf`` never folds.
        allow_single_quote: Whether single quotes group words like double quotes

    Returns:
        The list of values
    """
    text = remove_smart_quotes(arg_string, allow_single_quote)
    pattern = _ARGS_PATTERN if allow_single_quote else _ARGS_PATTERN_DOUBLE
    result: list[str] = []
    remaining = arg_count or len(text)
    position = 0
    exhausted = False

    while True:
        remaining -= 1
        if remaining == 0:
            break
        match = pattern.search(text, position)
        if not match:
            exhausted = True
            break
        result.append(match.group(2) or match.group(3) or "")
        position = match.end()

    if not exhausted and position < len(text):
        result.append(strip_wrapping_quotes(text[position:], allow_single_quote))

    return result


def escape_markdown(text: str) -> str:
    return _MARKDOWN.sub(r"\\\1", text)


def disambiguation(items: list[str], label: str) -> str:
    item_list = ",   ".join(f'"{item.replace(" ", NBSP)}"' for item in items)
    return f"Multiple {label} found, please be more specific: {item_list}"


def build_usage(command: str, prefix: str | None = None, user: Any = None) -> str:
    """
    Build a usage string such as ``!ping`` or ``@Bot ping``.

    Args:
        command: The command text, including any arguments
        prefix: Prefix to show, or None for no prefix form
        user: The bot user for the mention form, or None

    Returns:
        The formatted usage string
    """
    nbcmd = command.replace(" ", NBSP)
    if not prefix and user is None:
        return f"``{nbcmd}``"

    prefix_part = ""
    if prefix:
        if len(prefix) > 1 and not prefix.endswith(" "):
            prefix += " "
        prefix = prefix.replace(" ", NBSP)
        prefix_part = f"``{prefix}{nbcmd}``"

    mention_part = ""
    if user is not None:
        mention_part = f"``@{user.username.replace(' ', NBSP)}{NBSP}{nbcmd}``"

    separator = " or " if prefix_part and mention_part else ""
    return f"{prefix_part}{separator}{mention_part}"


def is_bounded(seconds: float | None) -> bool:
    return bool(seconds) and seconds > 0 and not math.isinf(seconds)


def destination_key(message: Any) -> Any:
    """Response-map key for a sent message: its channel id, or ``"direct"``."""
    return DIRECT if message.is_direct else message.channel_id
