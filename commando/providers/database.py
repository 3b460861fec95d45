import logging
from typing import Any

from sqlalchemy import select

from ..database import DatabaseManager, ScopeSetting
from .base import SettingProvider

logger = logging.getLogger(__name__)


class DatabaseSettingProvider(SettingProvider):
    """Stores each scope's settings as one JSON row through SQLAlchemy.

    On init the stored prefix and enabled flags are applied to the bot's scopes,
    and later prefix or status changes are written back.
    """

    def __init__(self, db: DatabaseManager) -> None:
        self.db = db
        self.bot: Any = None
        self.settings: dict[str, dict[str, Any]] = {}
        self._listeners = {
            "command_prefix_change": self._on_prefix_change,
            "command_status_change": self._on_command_status_change,
            "group_status_change": self._on_group_status_change,
        }

    async def init(self, bot: Any) -> None:
        self.bot = bot
        await self.db.create_tables()

        async with self.db.session() as session:
            result = await session.execute(select(ScopeSetting))
            rows = result.scalars().all()

        for row in rows:
            self.settings[row.scope_id] = dict(row.settings or {})
            bot.scopes.load(row.scope_id, self.settings[row.scope_id])
        logger.info(f"Loaded settings for {len(rows)} scope(s)")

        for event_name, listener in self._listeners.items():
            bot.events.add_listener(event_name, listener)

    async def destroy(self) -> None:
        if self.bot is not None:
            for event_name, listener in self._listeners.items():
                self.bot.events.remove_listener(event_name, listener)
        await self.db.close()

    def get(self, scope: Any, key: str, default: Any = None) -> Any:
        return self.settings.get(self.scope_id(scope), {}).get(key, default)

    async def set(self, scope: Any, key: str, value: Any) -> Any:
        scope_id = self.scope_id(scope)
        values = self.settings.setdefault(scope_id, {})
        values[key] = value
        await self._save(scope_id, values)
        return value

    async def remove(self, scope: Any, key: str) -> Any:
        scope_id = self.scope_id(scope)
        values = self.settings.get(scope_id)
        if values is None or key not in values:
            return None
        value = values.pop(key)
        await self._save(scope_id, values)
        return value

    async def clear(self, scope: Any) -> None:
        scope_id = self.scope_id(scope)
        self.settings.pop(scope_id, None)
        async with self.db.session() as session:
            row = await session.get(ScopeSetting, scope_id)
            if row is not None:
                await session.delete(row)

    async def _save(self, scope_id: str, values: dict[str, Any]) -> None:
        async with self.db.session() as session:
            row = await session.get(ScopeSetting, scope_id)
            if row is None:
                session.add(ScopeSetting(scope_id=scope_id, settings=dict(values)))
            else:
                row.settings = dict(values)

    async def _on_prefix_change(self, scope: Any, prefix: str | None) -> None:
        if prefix is None:
            await self.remove(scope, "prefix")
        else:
            await self.set(scope, "prefix", prefix)

    async def _on_command_status_change(self, scope: Any, command: Any, enabled: bool) -> None:
        await self.set(scope, f"cmd-{command.name}", enabled)

    async def _on_group_status_change(self, scope: Any, group: Any, enabled: bool) -> None:
        await self.set(scope, f"grp-{group.id}", enabled)


