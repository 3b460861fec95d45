"""Contracts the dispatcher needs from a chat transport."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class MessageAuthor:
    id: int
    username: str
    is_bot: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(slots=True)
class GuildMember:
    """A user as a member of one guild."""

    user: MessageAuthor
    nickname: str | None = None

    @property
    def id(self) -> int:
        return self.user.id

    @property
    def display_name(self) -> str:
        return self.nickname or self.user.username

    @property
    def mention(self) -> str:
        return self.user.mention


@dataclass(slots=True)
class GuildRole:
    id: int
    name: str

    @property
    def mention(self) -> str:
        return f"<@&{self.id}>"


@dataclass(slots=True)
class GuildChannel:
    id: int
    name: str
    # text, news, voice, stage, category, forum or other
    kind: str = "text"

    @property
    def mention(self) -> str:
        return f"<#{self.id}>"


class SentMessage(ABC):
    """A message the bot sent, which may later be edited or deleted."""

    id: int
    channel_id: int
    is_direct: bool

    @abstractmethod
    async def edit(self, content: str) -> "SentMessage":
        pass

    @abstractmethod
    async def delete(self) -> None:
        pass


class IncomingMessage(ABC):
    """A chat message as seen by the dispatcher.

    Adapters fill in the identity fields and implement delivery. The permission
    and user lookups default to "nothing known" so a minimal adapter only has to
    provide the abstract methods.
    """

    def __init__(
        self,
        id: int,
        content: str | None,
        author: MessageAuthor,
        channel_id: int,
        guild_id: int | None = None,
        nsfw: bool = False,
    ) -> None:
        self.id = id
        self.content = content
        self.author = author
        self.channel_id = channel_id
        self.guild_id = guild_id
        self.nsfw = nsfw

    @property
    def is_direct(self) -> bool:
        return self.guild_id is None

    @abstractmethod
    async def send(self, content: str) -> SentMessage:
        """Send a plain message to the channel this message was posted in."""

    @abstractmethod
    async def reply(self, content: str) -> SentMessage:
        """Reply to the author in the channel this message was posted in."""

    @abstractmethod
    async def send_direct(self, content: str) -> SentMessage:
        """Send a direct message to the author."""

    @abstractmethod
    async def wait_for_reply(self, timeout: float | None) -> Optional["IncomingMessage"]:
        """Wait for the next message from the author in this channel.

        Returns None if nothing arrives within ``timeout`` seconds (None waits forever).
        """

    async def missing_permissions(self, user_id: int, permissions: list[str]) -> list[str]:
        """Return which of ``permissions`` the user lacks in this channel."""
        return []

    async def fetch_user(self, user_id: int) -> MessageAuthor | None:
        return None

    async def search_users(self, query: str) -> list[MessageAuthor]:
        """Users in this message's scope whose name contains ``query``."""
        return []

    async def fetch_member(self, user_id: int) -> GuildMember | None:
        """The member of this message's guild with the given ID."""
        return None

    async def search_members(self, query: str) -> list[GuildMember]:
        """Members of this message's guild whose username or nickname contains ``query``."""
        return []

    async def fetch_role(self, role_id: int) -> GuildRole | None:
        return None

    async def search_roles(self, query: str) -> list[GuildRole]:
        return []

    async def fetch_channel(self, channel_id: int) -> GuildChannel | None:
        return None

    async def search_channels(self, query: str) -> list[GuildChannel]:
        """Channels of this message's guild whose name contains ``query``."""
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id} author={self.author.id} channel={self.channel_id}>"
