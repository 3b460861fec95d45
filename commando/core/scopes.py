import logging
from dataclasses import dataclass, field
from typing import Any

from .event_system import EventSystem

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"


def scope_key(scope: Any) -> str:
    """Normalise a scope (guild id, ``"global"`` or None) to a string key."""
    if scope is None or scope == GLOBAL_SCOPE:
        return GLOBAL_SCOPE
    return str(scope)


@dataclass
class ScopeSettings:
    prefix: str | None = None
    commands: dict[str, bool] = field(default_factory=dict)
    groups: dict[str, bool] = field(default_factory=dict)


class ScopeManager:
    """Resolved per-scope state the dispatcher reads: prefix and enabled flags.

    A scope without its own value falls back to the global scope. Flags are
    keyed by command name and group id so they survive command reloads.
    """

    def __init__(self, events: EventSystem, default_prefix: str = "!") -> None:
        self.events = events
        self.default_prefix = default_prefix
        self._scopes: dict[str, ScopeSettings] = {}

    def get(self, scope: Any) -> ScopeSettings:
        return self._scopes.setdefault(scope_key(scope), ScopeSettings())

    def prefix_for(self, scope: Any = None) -> str:
        key = scope_key(scope)
        if key != GLOBAL_SCOPE:
            local = self._scopes.get(key)
            if local is not None and local.prefix is not None:
                return local.prefix
        global_scope = self._scopes.get(GLOBAL_SCOPE)
        if global_scope is not None and global_scope.prefix is not None:
            return global_scope.prefix
        return self.default_prefix

    def apply_prefix(self, scope: Any, prefix: str | None) -> None:
        if prefix is not None and prefix.lower() == "none":
            prefix = ""
        self.get(scope).prefix = prefix

    async def set_prefix(self, scope: Any, prefix: str | None) -> None:
        """Set (or with None, reset) the command prefix of a scope."""
        self.apply_prefix(scope, prefix)
        logger.info(f"Command prefix for {scope_key(scope)} set to {prefix!r}")
        await self.events.emit("command_prefix_change", _event_scope(scope), self.get(scope).prefix)

    def is_command_enabled(self, scope: Any, name: str) -> bool:
        return self._flag(scope, "commands", name)

    def is_group_enabled(self, scope: Any, group_id: str) -> bool:
        return self._flag(scope, "groups", group_id)

    async def set_command_enabled(self, scope: Any, command: Any, enabled: bool) -> None:
        self.get(scope).commands[command.name] = bool(enabled)
        await self.events.emit("command_status_change", _event_scope(scope), command, bool(enabled))

    async def set_group_enabled(self, scope: Any, group: Any, enabled: bool) -> None:
        self.get(scope).groups[group.id] = bool(enabled)
        await self.events.emit("group_status_change", _event_scope(scope), group, bool(enabled))

    def load(self, scope: Any, values: dict[str, Any]) -> None:
        """Apply stored settings (``prefix``, ``cmd-<name>``, ``grp-<id>``) without emitting."""
        settings = self.get(scope)
        for key, value in values.items():
            if key == "prefix":
                self.apply_prefix(scope, value)
            elif key.startswith("cmd-"):
                settings.commands[key[4:]] = bool(value)
            elif key.startswith("grp-"):
                settings.groups[key[4:]] = bool(value)

    def _flag(self, scope: Any, kind: str, name: str) -> bool:
        key = scope_key(scope)
        for candidate in (key, GLOBAL_SCOPE):
            settings = self._scopes.get(candidate)
            if settings is not None and name in getattr(settings, kind):
                return getattr(settings, kind)[name]
        return True


def _event_scope(scope: Any) -> Any:
    return None if scope_key(scope) == GLOBAL_SCOPE else scope
