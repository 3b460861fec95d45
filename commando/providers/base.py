from abc import ABC, abstractmethod
from typing import Any

from ..core.scopes import scope_key


class SettingProvider(ABC):
    """Persistent key/value settings per scope (a guild id, or ``"global"``)."""

    @abstractmethod
    async def init(self, bot: Any) -> None:
        """Load stored settings, apply them to the bot and start tracking changes."""

    @abstractmethod
    async def destroy(self) -> None:
        pass

    @abstractmethod
    def get(self, scope: Any, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    async def set(self, scope: Any, key: str, value: Any) -> Any:
        pass

    @abstractmethod
    async def remove(self, scope: Any, key: str) -> Any:
        pass

    @abstractmethod
    async def clear(self, scope: Any) -> None:
        pass

    @staticmethod
    def scope_id(scope: Any) -> str:
        return scope_key(scope)
