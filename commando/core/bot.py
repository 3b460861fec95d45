import logging
from typing import Any

from config.settings import CommandoSettings, settings as default_settings

from ..commands.registry import Registry
from ..middleware import ErrorHandlerMiddleware, LoggingMiddleware
from ..transport.base import MessageAuthor
from .dispatcher import Dispatcher
from .event_system import EventSystem
from .hot_reload import HotReloadManager
from .scopes import ScopeManager

logger = logging.getLogger(__name__)


class CommandoBot:
    """Ties the registry, dispatcher, scopes and settings provider of one bot together."""

    def __init__(self, settings: CommandoSettings | None = None, owners: list[int] | None = None) -> None:
        self.settings = settings or default_settings
        self.owners: set[int] = set(owners if owners is not None else self.settings.owners)

        self.events = EventSystem()
        self.error_handler = ErrorHandlerMiddleware()
        self.events.add_middleware(LoggingMiddleware())
        self.events.add_middleware(self.error_handler)

        self.scopes = ScopeManager(self.events, self.settings.command_prefix)
        self.registry = Registry(self)
        self.dispatcher = Dispatcher(self, self.registry)
        self.hot_reload = HotReloadManager(self)
        self.provider: Any = None
        self._user: MessageAuthor | None = None

    @property
    def user(self) -> MessageAuthor | None:
        """The bot's own account, once the transport knows it."""
        return self._user

    @user.setter
    def user(self, user: MessageAuthor | None) -> None:
        self._user = user
        self.dispatcher.clear_patterns()

    @property
    def command_prefix(self) -> str:
        return self.scopes.prefix_for(None)

    def is_owner(self, user_id: int) -> bool:
        return user_id in self.owners

    def set_provider(self, provider: Any) -> None:
        """Use a settings provider; it is initialised when the bot starts."""
        self.provider = provider

    async def start(self) -> None:
        if self.provider is not None:
            await self.provider.init(self)
            logger.info(f"Settings provider {type(self.provider).__name__} initialised")

        if self.settings.hot_reload:
            for directory in self.registry.loader.directories:
                self.hot_reload.add_watch_directory(directory)
            self.hot_reload.start_watching()

        await self.events.emit("bot_ready", self)

    async def close(self) -> None:
        try:
            await self.events.emit("bot_stopping", self)
            self.hot_reload.stop_watching()
            self.dispatcher.close()
            if self.provider is not None:
                await self.provider.destroy()
            logger.info("Cleanup completed")
        except Exception as e:
            logger.error(f"Error during cleanup: {e}")


def build_bot(settings: CommandoSettings | None = None) -> CommandoBot:
    """Create a bot with the default types and groups and the configured command directories loaded."""
    bot = CommandoBot(settings)
    bot.registry.register_default_types()
    bot.registry.register_default_groups()
    for directory in bot.settings.commands_directories:
        bot.registry.loader.add_directory(directory)
    bot.registry.loader.load_all()
    return bot
