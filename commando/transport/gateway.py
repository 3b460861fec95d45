"""hikari gateway adapter: feeds Discord messages into the dispatcher."""

import asyncio
import logging
from typing import Any, Optional

import hikari

from .base import GuildChannel, GuildMember, GuildRole, IncomingMessage, MessageAuthor, SentMessage

logger = logging.getLogger(__name__)

DEFAULT_INTENTS = (
    hikari.Intents.ALL_MESSAGES
    | hikari.Intents.GUILD_MEMBERS
    | hikari.Intents.GUILDS
    | hikari.Intents.MESSAGE_CONTENT
)

CHANNEL_KINDS = {
    "GUILD_TEXT": "text",
    "GUILD_NEWS": "news",
    "GUILD_VOICE": "voice",
    "GUILD_STAGE": "stage",
    "GUILD_CATEGORY": "category",
    "GUILD_FORUM": "forum",
}


def to_author(user: Any) -> MessageAuthor:
    return MessageAuthor(id=int(user.id), username=user.username, is_bot=bool(user.is_bot))


def to_member(member: Any) -> GuildMember:
    return GuildMember(user=to_author(member), nickname=member.nickname)


def to_role(role: Any) -> GuildRole:
    return GuildRole(id=int(role.id), name=role.name)


def to_channel(channel: Any) -> GuildChannel:
    kind = CHANNEL_KINDS.get(getattr(channel.type, "name", ""), "other")
    return GuildChannel(id=int(channel.id), name=channel.name or "", kind=kind)


def calculate_member_permissions(
    member: hikari.Member, guild: hikari.Guild, channel: hikari.GuildChannel | None = None
) -> hikari.Permissions:
    """
    Calculate the effective permissions for a member in a guild or channel.

    Args:
        member: The guild member to calculate permissions for
        guild: The guild the member belongs to
        channel: Optional channel whose overwrites apply

    Returns:
        The calculated permissions for the member
    """
    if guild.owner_id == member.id:
        return ~hikari.Permissions.NONE

    everyone_role = guild.get_role(guild.id)
    permissions = everyone_role.permissions if everyone_role else hikari.Permissions.NONE

    for role_id in member.role_ids:
        role = guild.get_role(role_id)
        if role:
            permissions |= role.permissions

    if permissions & hikari.Permissions.ADMINISTRATOR:
        return ~hikari.Permissions.NONE

    overwrites = getattr(channel, "permission_overwrites", None)
    if overwrites:
        everyone_overwrite = overwrites.get(guild.id)
        if everyone_overwrite:
            permissions &= ~everyone_overwrite.deny
            permissions |= everyone_overwrite.allow

        allow = deny = hikari.Permissions.NONE
        for role_id in member.role_ids:
            role_overwrite = overwrites.get(role_id)
            if role_overwrite:
                allow |= role_overwrite.allow
                deny |= role_overwrite.deny
        permissions &= ~deny
        permissions |= allow

        member_overwrite = overwrites.get(member.id)
        if member_overwrite:
            permissions &= ~member_overwrite.deny
            permissions |= member_overwrite.allow

    return permissions


class HikariSentMessage(SentMessage):
    def __init__(self, transport: "HikariTransport", message: hikari.Message, is_direct: bool = False) -> None:
        self.transport = transport
        self.message = message
        self.id = int(message.id)
        self.channel_id = int(message.channel_id)
        self.is_direct = is_direct

    async def edit(self, content: str) -> "HikariSentMessage":
        message = await self.transport.rest.edit_message(self.channel_id, self.id, content)
        return HikariSentMessage(self.transport, message, self.is_direct)

    async def delete(self) -> None:
        await self.transport.rest.delete_message(self.channel_id, self.id)


class HikariMessage(IncomingMessage):
    def __init__(self, transport: "HikariTransport", message: Any, content: str | None = None) -> None:
        guild_id = getattr(message, "guild_id", None)
        super().__init__(
            id=int(message.id),
            content=message.content if content is None else content,
            author=to_author(message.author),
            channel_id=int(message.channel_id),
            guild_id=int(guild_id) if guild_id is not None else None,
            nsfw=transport.is_nsfw(message.channel_id),
        )
        self.transport = transport
        self.message = message

    async def send(self, content: str) -> SentMessage:
        sent = await self.transport.rest.create_message(self.channel_id, content)
        return HikariSentMessage(self.transport, sent, self.is_direct)

    async def reply(self, content: str) -> SentMessage:
        if self.is_direct:
            return await self.send(content)
        sent = await self.transport.rest.create_message(self.channel_id, f"{self.author.mention}, {content}")
        return HikariSentMessage(self.transport, sent)

    async def send_direct(self, content: str) -> SentMessage:
        channel = await self.transport.rest.create_dm_channel(self.author.id)
        sent = await self.transport.rest.create_message(channel.id, content)
        return HikariSentMessage(self.transport, sent, is_direct=True)

    async def wait_for_reply(self, timeout: float | None) -> Optional[IncomingMessage]:
        def predicate(event: hikari.MessageCreateEvent) -> bool:
            return event.author_id == self.author.id and event.channel_id == self.channel_id

        try:
            event = await self.transport.gateway.wait_for(hikari.MessageCreateEvent, timeout=timeout, predicate=predicate)
        except asyncio.TimeoutError:
            return None
        return HikariMessage(self.transport, event.message)

    async def missing_permissions(self, user_id: int, permissions: list[str]) -> list[str]:
        if self.guild_id is None:
            return []

        cache = self.transport.gateway.cache
        guild = cache.get_guild(self.guild_id)
        member = cache.get_member(self.guild_id, user_id)
        if guild is None or member is None:
            logger.debug(f"Guild {self.guild_id} or member {user_id} not cached, assuming permissions")
            return []

        effective = calculate_member_permissions(member, guild, cache.get_guild_channel(self.channel_id))
        missing = []
        for name in permissions:
            flag = getattr(hikari.Permissions, name, None)
            if flag is None:
                logger.warning(f"Unknown permission name: {name}")
                continue
            if (effective & flag) != flag:
                missing.append(name)
        return missing

    async def fetch_user(self, user_id: int) -> MessageAuthor | None:
        user = self.transport.gateway.cache.get_user(user_id)
        if user is None:
            try:
                user = await self.transport.rest.fetch_user(user_id)
            except hikari.NotFoundError:
                return None
        return to_author(user)

    async def search_users(self, query: str) -> list[MessageAuthor]:
        return [member.user for member in await self.search_members(query)]

    def _in_guild(self, entity: Any) -> bool:
        return entity is not None and self.guild_id is not None and int(entity.guild_id) == self.guild_id

    async def fetch_member(self, user_id: int) -> GuildMember | None:
        if self.guild_id is None:
            return None
        member = self.transport.gateway.cache.get_member(self.guild_id, user_id)
        if member is None:
            try:
                member = await self.transport.rest.fetch_member(self.guild_id, user_id)
            except hikari.NotFoundError:
                return None
        return to_member(member)

    async def search_members(self, query: str) -> list[GuildMember]:
        if self.guild_id is None:
            return []
        query = query.lower()
        members = self.transport.gateway.cache.get_members_view_for_guild(self.guild_id).values()
        return [
            to_member(member)
            for member in members
            if query in member.username.lower() or query in (member.nickname or "").lower()
        ]

    async def fetch_role(self, role_id: int) -> GuildRole | None:
        role = self.transport.gateway.cache.get_role(role_id)
        return to_role(role) if self._in_guild(role) else None

    async def search_roles(self, query: str) -> list[GuildRole]:
        if self.guild_id is None:
            return []
        query = query.lower()
        roles = self.transport.gateway.cache.get_roles_view_for_guild(self.guild_id).values()
        return [to_role(role) for role in roles if query in role.name.lower()]

    async def fetch_channel(self, channel_id: int) -> GuildChannel | None:
        channel = self.transport.gateway.cache.get_guild_channel(channel_id)
        return to_channel(channel) if self._in_guild(channel) else None

    async def search_channels(self, query: str) -> list[GuildChannel]:
        if self.guild_id is None:
            return []
        query = query.lower()
        channels = self.transport.gateway.cache.get_guild_channels_view_for_guild(self.guild_id).values()
        return [to_channel(channel) for channel in channels if query in (channel.name or "").lower()]


class HikariTransport:
    """Connects a :class:`~commando.core.bot.CommandoBot` to Discord through hikari."""

    def __init__(
        self,
        bot: Any,
        token: str | None = None,
        intents: hikari.Intents | None = None,
        gateway: hikari.GatewayBot | None = None,
    ) -> None:
        self.bot = bot
        if gateway is None:
            token = token or bot.settings.discord_token
            if not token:
                raise ValueError("A Discord token is required to connect")
            gateway = hikari.GatewayBot(token=token, intents=intents or DEFAULT_INTENTS)
        self.gateway = gateway
        self._setup_event_handlers()

    @property
    def rest(self) -> Any:
        return self.gateway.rest

    def _setup_event_handlers(self) -> None:
        self.gateway.subscribe(hikari.StartedEvent, self.on_started)
        self.gateway.subscribe(hikari.StoppingEvent, self.on_stopping)
        self.gateway.subscribe(hikari.MessageCreateEvent, self.on_message_create)
        self.gateway.subscribe(hikari.MessageUpdateEvent, self.on_message_update)

    def is_nsfw(self, channel_id: Any) -> bool:
        channel = self.gateway.cache.get_guild_channel(channel_id)
        return bool(getattr(channel, "is_nsfw", False))

    async def on_started(self, event: hikari.StartedEvent) -> None:
        me = self.gateway.get_me()
        if me is not None:
            self.bot.user = to_author(me)
            logger.info(f"Logged in as {me.username} ({me.id})")
        await self.bot.start()

    async def on_stopping(self, event: hikari.StoppingEvent) -> None:
        logger.info("Bot is stopping...")
        await self.bot.close()

    async def on_message_create(self, event: hikari.MessageCreateEvent) -> None:
        await self.bot.dispatcher.handle_message(HikariMessage(self, event.message))

    async def on_message_update(self, event: hikari.MessageUpdateEvent) -> None:
        message = event.message
        if message.content is hikari.UNDEFINED or message.author is hikari.UNDEFINED:
            return

        old = getattr(event, "old_message", None)
        if old is not None and old.content is not hikari.UNDEFINED and old.author is not hikari.UNDEFINED:
            previous = HikariMessage(self, old)
        else:
            # Unknown previous content still marks this as an edit
            previous = HikariMessage(self, message)
            previous.content = None

        await self.bot.dispatcher.handle_message(HikariMessage(self, message), previous)

    def run(self) -> None:
        try:
            self.gateway.run()
        except KeyboardInterrupt:
            logger.info("Bot stopped by user")
        except Exception as e:
            logger.error(f"Bot crashed: {e}")
            raise
