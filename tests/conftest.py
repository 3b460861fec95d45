"""Pytest configuration and shared fixtures."""

import itertools
import logging
from unittest.mock import MagicMock

import pytest

from commando.commands.decorators import FunctionCommand
from commando.core.bot import CommandoBot
from commando.transport.base import GuildChannel, GuildMember, GuildRole, IncomingMessage, MessageAuthor, SentMessage
from config.settings import CommandoSettings

# Disable logging during tests
logging.disable(logging.CRITICAL)

OWNER_ID = 99
BOT_ID = 42
AUTHOR_ID = 111111111
CHANNEL_ID = 444444444
GUILD_ID = 123456789

_ids = itertools.count(1000)


class FakeSentMessage(SentMessage):
    """A sent message that records edits and deletion."""

    def __init__(self, content: str, channel_id: int = CHANNEL_ID, is_direct: bool = False) -> None:
        self.id = next(_ids)
        self.channel_id = channel_id
        self.is_direct = is_direct
        self.content = content
        self.edits: list[str] = []
        self.deleted = False

    async def edit(self, content: str) -> "FakeSentMessage":
        self.content = content
        self.edits.append(content)
        return self

    async def delete(self) -> None:
        self.deleted = True


class FakeMessage(IncomingMessage):
    """An incoming message whose answers to prompts are scripted.

    Each entry of ``replies`` is the text of the next answer, or None for a
    timeout. Everything sent through the message is recorded in ``sent``.
    """

    def __init__(
        self,
        content: str,
        author: MessageAuthor | None = None,
        guild_id: int | None = GUILD_ID,
        channel_id: int = CHANNEL_ID,
        replies: list[str | None] | None = None,
        nsfw: bool = False,
        missing: list[str] | None = None,
        users: list[MessageAuthor] | None = None,
        id: int | None = None,
        members: list[GuildMember] | None = None,
        roles: list[GuildRole] | None = None,
        channels: list[GuildChannel] | None = None,
    ) -> None:
        super().__init__(
            id=id if id is not None else next(_ids),
            content=content,
            author=author or MessageAuthor(AUTHOR_ID, "tester"),
            channel_id=channel_id,
            guild_id=guild_id,
            nsfw=nsfw,
        )
        self.replies = list(replies or [])
        self.missing = list(missing or [])
        self.users = list(users or [])
        self.members = list(members or [])
        self.roles = list(roles or [])
        self.channels = list(channels or [])
        self.sent: list[tuple[str, FakeSentMessage]] = []
        self.waits: list[float | None] = []

    def _record(self, kind: str, content: str, is_direct: bool = False) -> FakeSentMessage:
        sent = FakeSentMessage(content, self.channel_id, is_direct or self.is_direct)
        self.sent.append((kind, sent))
        return sent

    async def send(self, content: str) -> FakeSentMessage:
        return self._record("plain", content)

    async def reply(self, content: str) -> FakeSentMessage:
        return self._record("reply", content)

    async def send_direct(self, content: str) -> FakeSentMessage:
        return self._record("direct", content, is_direct=True)

    async def wait_for_reply(self, timeout: float | None) -> "FakeMessage | None":
        self.waits.append(timeout)
        if not self.replies:
            return None
        text = self.replies.pop(0)
        if text is None:
            return None
        return FakeMessage(text, self.author, self.guild_id, self.channel_id)

    async def missing_permissions(self, user_id: int, permissions: list[str]) -> list[str]:
        return [permission for permission in permissions if permission in self.missing]

    async def fetch_user(self, user_id: int) -> MessageAuthor | None:
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    async def search_users(self, query: str) -> list[MessageAuthor]:
        return [user for user in self.users if query in user.username.lower()]

    async def fetch_member(self, user_id: int) -> GuildMember | None:
        return next((member for member in self.members if member.id == user_id), None)

    async def search_members(self, query: str) -> list[GuildMember]:
        return [
            member
            for member in self.members
            if query in member.user.username.lower() or query in (member.nickname or "").lower()
        ]

    async def fetch_role(self, role_id: int) -> GuildRole | None:
        return next((role for role in self.roles if role.id == role_id), None)

    async def search_roles(self, query: str) -> list[GuildRole]:
        return [role for role in self.roles if query in role.name.lower()]

    async def fetch_channel(self, channel_id: int) -> GuildChannel | None:
        return next((channel for channel in self.channels if channel.id == channel_id), None)

    async def search_channels(self, query: str) -> list[GuildChannel]:
        return [channel for channel in self.channels if query in channel.name.lower()]

    @property
    def texts(self) -> list[str]:
        return [sent.content for _, sent in self.sent]


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return CommandoSettings(_env_file=None, owners=[OWNER_ID], discord_token=None, commands_directories=[])


@pytest.fixture
def bot(settings):
    """A bot with the default types and groups registered."""
    bot = CommandoBot(settings)
    bot.user = MessageAuthor(BOT_ID, "Commando", is_bot=True)
    bot.registry.register_default_types()
    bot.registry.register_default_groups()
    return bot


@pytest.fixture
def registry(bot):
    return bot.registry


@pytest.fixture
def dispatcher(bot):
    return bot.dispatcher


@pytest.fixture
def make_message():
    """Factory for scripted incoming messages."""
    return FakeMessage


@pytest.fixture
def mock_hikari_bot():
    """Mock hikari gateway bot."""
    gateway = MagicMock()
    gateway.cache = MagicMock()
    gateway.rest = MagicMock()
    gateway.get_me = MagicMock(return_value=MagicMock(id=BOT_ID, username="Commando", is_bot=True))
    gateway.cache.get_guild = MagicMock(return_value=None)
    gateway.cache.get_member = MagicMock(return_value=None)
    gateway.cache.get_guild_channel = MagicMock(return_value=None)
    gateway.cache.get_user = MagicMock(return_value=None)
    gateway.cache.get_members_view_for_guild = MagicMock(return_value={})
    gateway.cache.get_role = MagicMock(return_value=None)
    gateway.cache.get_roles_view_for_guild = MagicMock(return_value={})
    gateway.cache.get_guild_channels_view_for_guild = MagicMock(return_value={})
    return gateway


@pytest.fixture
def command_factory(registry):
    """Factory for commands that record the arguments they ran with."""

    def factory(name="ping", group="util", run=None, **info):
        calls = []

        async def callback(ctx, args):
            calls.append(args)
            if run is not None:
                return await run(ctx, args)
            return None

        command = FunctionCommand(registry, callback, name=name, group=group, **info)
        command.calls = calls
        return command

    return factory
