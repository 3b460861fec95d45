"""Tests for commando/transport/gateway.py"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import hikari
import pytest

from commando.transport.base import GuildChannel, GuildRole
from commando.transport.gateway import (
    HikariMessage,
    HikariSentMessage,
    HikariTransport,
    calculate_member_permissions,
    to_author,
)

GUILD_ID = 123456789
CHANNEL_ID = 444444444


def make_user(id=111, username="tester", is_bot=False, nickname=None):
    return MagicMock(id=id, username=username, is_bot=is_bot, nickname=nickname)


def make_hikari_message(content="!ping", guild_id=GUILD_ID, author=None, id=1):
    message = MagicMock()
    message.id = id
    message.content = content
    message.author = author or make_user()
    message.channel_id = CHANNEL_ID
    message.guild_id = guild_id
    return message


def make_entity(id, name, guild_id=GUILD_ID, **attrs):
    entity = MagicMock(id=id, guild_id=guild_id, **attrs)
    entity.name = name
    return entity


@pytest.fixture
def mock_bot():
    """Mock commando bot."""
    bot = MagicMock()
    bot.settings.discord_token = "token"
    bot.start = AsyncMock()
    bot.close = AsyncMock()
    bot.dispatcher.handle_message = AsyncMock()
    return bot


@pytest.fixture
def transport(mock_bot, mock_hikari_bot):
    return HikariTransport(mock_bot, gateway=mock_hikari_bot)


def test_to_author():
    """Test users become message authors."""
    author = to_author(make_user(id=5, username="someone", is_bot=True))

    assert author.id == 5
    assert author.username == "someone"
    assert author.is_bot is True


class TestCalculatePermissions:
    """Test effective permission calculation."""

    def setup_method(self):
        self.everyone = MagicMock(permissions=hikari.Permissions.SEND_MESSAGES)
        self.moderator = MagicMock(permissions=hikari.Permissions.MANAGE_MESSAGES)
        roles = {GUILD_ID: self.everyone, 10: self.moderator}
        self.guild = MagicMock(id=GUILD_ID, owner_id=1)
        self.guild.get_role = MagicMock(side_effect=roles.get)

    def test_owner_has_everything(self):
        """Test the guild owner has every permission."""
        member = MagicMock(id=1, role_ids=[])

        permissions = calculate_member_permissions(member, self.guild)

        assert permissions & hikari.Permissions.BAN_MEMBERS

    def test_role_permissions_combined(self):
        """Test the everyone role and member roles are combined."""
        member = MagicMock(id=2, role_ids=[10])

        permissions = calculate_member_permissions(member, self.guild)

        assert permissions & hikari.Permissions.SEND_MESSAGES
        assert permissions & hikari.Permissions.MANAGE_MESSAGES
        assert not permissions & hikari.Permissions.KICK_MEMBERS

    def test_administrator_has_everything(self):
        """Test administrators have every permission."""
        self.moderator.permissions = hikari.Permissions.ADMINISTRATOR
        member = MagicMock(id=2, role_ids=[10])

        permissions = calculate_member_permissions(member, self.guild)

        assert permissions & hikari.Permissions.KICK_MEMBERS

    def test_channel_overwrites(self):
        """Test channel overwrites deny and allow permissions."""
        member = MagicMock(id=2, role_ids=[10])
        channel = MagicMock()
        channel.permission_overwrites = {
            GUILD_ID: MagicMock(allow=hikari.Permissions.NONE, deny=hikari.Permissions.SEND_MESSAGES),
            2: MagicMock(allow=hikari.Permissions.EMBED_LINKS, deny=hikari.Permissions.NONE),
        }

        permissions = calculate_member_permissions(member, self.guild, channel)

        assert not permissions & hikari.Permissions.SEND_MESSAGES
        assert permissions & hikari.Permissions.EMBED_LINKS
        assert permissions & hikari.Permissions.MANAGE_MESSAGES


class TestHikariMessage:
    """Test the incoming message adapter."""

    def test_fields(self, transport):
        """Test identity fields are read from the hikari message."""
        message = HikariMessage(transport, make_hikari_message())

        assert message.id == 1
        assert message.content == "!ping"
        assert message.author.id == 111
        assert message.channel_id == CHANNEL_ID
        assert message.guild_id == GUILD_ID
        assert not message.is_direct
        assert message.nsfw is False

    def test_direct_message(self, transport):
        """Test messages without a guild are direct."""
        message = HikariMessage(transport, make_hikari_message(guild_id=None))

        assert message.is_direct

    def test_nsfw_channel(self, transport, mock_hikari_bot):
        """Test the nsfw flag comes from the cached channel."""
        mock_hikari_bot.cache.get_guild_channel.return_value = MagicMock(is_nsfw=True)

        message = HikariMessage(transport, make_hikari_message())

        assert message.nsfw is True

    @pytest.mark.asyncio
    async def test_send_and_reply(self, transport, mock_hikari_bot):
        """Test replies mention the author in servers."""
        mock_hikari_bot.rest.create_message = AsyncMock(return_value=MagicMock(id=7, channel_id=CHANNEL_ID))
        message = HikariMessage(transport, make_hikari_message())

        sent = await message.send("hello")
        await message.reply("hi")

        assert isinstance(sent, HikariSentMessage)
        assert sent.id == 7
        calls = mock_hikari_bot.rest.create_message.await_args_list
        assert calls[0].args == (CHANNEL_ID, "hello")
        assert calls[1].args == (CHANNEL_ID, "<@111>, hi")

    @pytest.mark.asyncio
    async def test_reply_in_direct_message(self, transport, mock_hikari_bot):
        """Test replies in direct messages don't mention anyone."""
        mock_hikari_bot.rest.create_message = AsyncMock(return_value=MagicMock(id=7, channel_id=CHANNEL_ID))
        message = HikariMessage(transport, make_hikari_message(guild_id=None))

        sent = await message.reply("hi")

        assert mock_hikari_bot.rest.create_message.await_args.args == (CHANNEL_ID, "hi")
        assert sent.is_direct

    @pytest.mark.asyncio
    async def test_send_direct(self, transport, mock_hikari_bot):
        """Test direct messages go through a DM channel."""
        mock_hikari_bot.rest.create_dm_channel = AsyncMock(return_value=MagicMock(id=555))
        mock_hikari_bot.rest.create_message = AsyncMock(return_value=MagicMock(id=8, channel_id=555))
        message = HikariMessage(transport, make_hikari_message())

        sent = await message.send_direct("psst")

        mock_hikari_bot.rest.create_dm_channel.assert_awaited_once_with(111)
        assert mock_hikari_bot.rest.create_message.await_args.args == (555, "psst")
        assert sent.is_direct

    @pytest.mark.asyncio
    async def test_sent_message_edit_and_delete(self, transport, mock_hikari_bot):
        """Test sent messages are edited and deleted through REST."""
        mock_hikari_bot.rest.edit_message = AsyncMock(return_value=MagicMock(id=7, channel_id=CHANNEL_ID))
        mock_hikari_bot.rest.delete_message = AsyncMock()
        sent = HikariSentMessage(transport, MagicMock(id=7, channel_id=CHANNEL_ID))

        edited = await sent.edit("changed")
        await sent.delete()

        mock_hikari_bot.rest.edit_message.assert_awaited_once_with(CHANNEL_ID, 7, "changed")
        mock_hikari_bot.rest.delete_message.assert_awaited_once_with(CHANNEL_ID, 7)
        assert edited.id == 7

    @pytest.mark.asyncio
    async def test_wait_for_reply(self, transport, mock_hikari_bot):
        """Test the next message from the author is returned."""
        reply = make_hikari_message(content="answer", id=2)
        mock_hikari_bot.wait_for = AsyncMock(return_value=MagicMock(message=reply))
        message = HikariMessage(transport, make_hikari_message())

        answer = await message.wait_for_reply(30)

        assert answer.content == "answer"
        kwargs = mock_hikari_bot.wait_for.await_args.kwargs
        assert kwargs["timeout"] == 30
        predicate = kwargs["predicate"]
        assert predicate(MagicMock(author_id=111, channel_id=CHANNEL_ID))
        assert not predicate(MagicMock(author_id=222, channel_id=CHANNEL_ID))
        assert not predicate(MagicMock(author_id=111, channel_id=1))

    @pytest.mark.asyncio
    async def test_wait_for_reply_timeout(self, transport, mock_hikari_bot):
        """Test a timeout returns None."""
        mock_hikari_bot.wait_for = AsyncMock(side_effect=asyncio.TimeoutError)
        message = HikariMessage(transport, make_hikari_message())

        assert await message.wait_for_reply(1) is None

    @pytest.mark.asyncio
    async def test_missing_permissions(self, transport, mock_hikari_bot):
        """Test missing permissions are named."""
        everyone = MagicMock(permissions=hikari.Permissions.SEND_MESSAGES)
        guild = MagicMock(id=GUILD_ID, owner_id=1)
        guild.get_role = MagicMock(side_effect={GUILD_ID: everyone}.get)
        mock_hikari_bot.cache.get_guild.return_value = guild
        mock_hikari_bot.cache.get_member.return_value = MagicMock(id=111, role_ids=[])
        message = HikariMessage(transport, make_hikari_message())

        missing = await message.missing_permissions(111, ["SEND_MESSAGES", "MANAGE_MESSAGES", "NOT_A_PERMISSION"])

        assert missing == ["MANAGE_MESSAGES"]

    @pytest.mark.asyncio
    async def test_missing_permissions_uncached(self, transport):
        """Test nothing is reported missing without cached data or in direct messages."""
        message = HikariMessage(transport, make_hikari_message())
        direct = HikariMessage(transport, make_hikari_message(guild_id=None))

        assert await message.missing_permissions(111, ["MANAGE_MESSAGES"]) == []
        assert await direct.missing_permissions(111, ["MANAGE_MESSAGES"]) == []

    @pytest.mark.asyncio
    async def test_fetch_user(self, transport, mock_hikari_bot):
        """Test users come from the cache, then REST."""
        mock_hikari_bot.cache.get_user.return_value = make_user(id=5, username="cached")
        message = HikariMessage(transport, make_hikari_message())

        assert (await message.fetch_user(5)).username == "cached"

        mock_hikari_bot.cache.get_user.return_value = None
        mock_hikari_bot.rest.fetch_user = AsyncMock(return_value=make_user(id=6, username="fetched"))
        assert (await message.fetch_user(6)).username == "fetched"

    @pytest.mark.asyncio
    async def test_fetch_unknown_user(self, transport, mock_hikari_bot):
        """Test unknown users are None."""
        mock_hikari_bot.rest.fetch_user = AsyncMock(
            side_effect=hikari.NotFoundError(url="", headers={}, raw_body="")
        )
        message = HikariMessage(transport, make_hikari_message())

        assert await message.fetch_user(7) is None

    @pytest.mark.asyncio
    async def test_search_users(self, transport, mock_hikari_bot):
        """Test members are searched by username and nickname."""
        mock_hikari_bot.cache.get_members_view_for_guild.return_value = {
            1: make_user(id=1, username="Alice"),
            2: make_user(id=2, username="bob", nickname="Alicorn"),
            3: make_user(id=3, username="carol"),
        }
        message = HikariMessage(transport, make_hikari_message())

        found = await message.search_users("ALI")

        assert [user.id for user in found] == [1, 2]

    @pytest.mark.asyncio
    async def test_fetch_member(self, transport, mock_hikari_bot):
        """Test members come from the cache, then REST."""
        mock_hikari_bot.cache.get_member.return_value = make_user(id=5, username="cached", nickname="Cache")
        message = HikariMessage(transport, make_hikari_message())

        member = await message.fetch_member(5)
        assert member.id == 5
        assert member.display_name == "Cache"
        mock_hikari_bot.cache.get_member.assert_called_once_with(GUILD_ID, 5)

        mock_hikari_bot.cache.get_member.return_value = None
        mock_hikari_bot.rest.fetch_member = AsyncMock(
            side_effect=hikari.NotFoundError(url="", headers={}, raw_body="")
        )
        assert await message.fetch_member(6) is None

    @pytest.mark.asyncio
    async def test_members_need_a_guild(self, transport, mock_hikari_bot):
        """Test direct messages have no members."""
        message = HikariMessage(transport, make_hikari_message(guild_id=None))

        assert await message.fetch_member(5) is None
        assert await message.search_members("a") == []
        mock_hikari_bot.cache.get_member.assert_not_called()

    @pytest.mark.asyncio
    async def test_roles(self, transport, mock_hikari_bot):
        """Test roles are looked up in the message's guild only."""
        mods = make_entity(10, "Moderators")
        other = make_entity(11, "Moderators", guild_id=1)
        mock_hikari_bot.cache.get_roles_view_for_guild.return_value = {10: mods, 12: make_entity(12, "Admins")}
        message = HikariMessage(transport, make_hikari_message())

        mock_hikari_bot.cache.get_role.return_value = mods
        assert await message.fetch_role(10) == GuildRole(10, "Moderators")
        mock_hikari_bot.cache.get_role.return_value = other
        assert await message.fetch_role(11) is None
        assert await message.search_roles("MOD") == [GuildRole(10, "Moderators")]

    @pytest.mark.asyncio
    async def test_channels(self, transport, mock_hikari_bot):
        """Test channels are looked up in the message's guild with their kind."""
        voice = make_entity(20, "lounge", type=hikari.ChannelType.GUILD_VOICE)
        text = make_entity(21, "general", type=hikari.ChannelType.GUILD_TEXT)
        mock_hikari_bot.cache.get_guild_channels_view_for_guild.return_value = {20: voice, 21: text}
        message = HikariMessage(transport, make_hikari_message())

        mock_hikari_bot.cache.get_guild_channel.return_value = voice
        assert await message.fetch_channel(20) == GuildChannel(20, "lounge", "voice")
        mock_hikari_bot.cache.get_guild_channel.return_value = make_entity(22, "elsewhere", guild_id=1)
        assert await message.fetch_channel(22) is None
        assert await message.search_channels("gen") == [GuildChannel(21, "general", "text")]


class TestHikariTransport:
    """Test the gateway transport."""

    def test_requires_token(self):
        """Test a token is required without a gateway."""
        bot = MagicMock()
        bot.settings.discord_token = None

        with pytest.raises(ValueError):
            HikariTransport(bot)

    def test_subscribes_to_events(self, transport, mock_hikari_bot):
        """Test event handlers are subscribed."""
        subscribed = [call.args[0] for call in mock_hikari_bot.subscribe.call_args_list]

        assert subscribed == [
            hikari.StartedEvent,
            hikari.StoppingEvent,
            hikari.MessageCreateEvent,
            hikari.MessageUpdateEvent,
        ]

    @pytest.mark.asyncio
    async def test_on_started(self, transport, mock_bot):
        """Test startup records the bot user and starts the bot."""
        await transport.on_started(MagicMock())

        assert mock_bot.user.id == 42
        assert mock_bot.user.is_bot is True
        mock_bot.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_on_stopping(self, transport, mock_bot):
        """Test stopping closes the bot."""
        await transport.on_stopping(MagicMock())

        mock_bot.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_on_message_create(self, transport, mock_bot):
        """Test new messages are dispatched."""
        await transport.on_message_create(MagicMock(message=make_hikari_message()))

        message = mock_bot.dispatcher.handle_message.await_args.args[0]
        assert isinstance(message, HikariMessage)
        assert message.content == "!ping"

    @pytest.mark.asyncio
    async def test_on_message_update(self, transport, mock_bot):
        """Test edits are dispatched with the previous message."""
        event = MagicMock(message=make_hikari_message(content="!ping 2"), old_message=make_hikari_message())

        await transport.on_message_update(event)

        message, previous = mock_bot.dispatcher.handle_message.await_args.args
        assert message.content == "!ping 2"
        assert previous.content == "!ping"

    @pytest.mark.asyncio
    async def test_on_message_update_without_old_message(self, transport, mock_bot):
        """Test an uncached previous message still counts as an edit."""
        event = MagicMock(message=make_hikari_message(content="!ping 2"), old_message=None)

        await transport.on_message_update(event)

        message, previous = mock_bot.dispatcher.handle_message.await_args.args
        assert previous.id == message.id
        assert previous.content is None

    @pytest.mark.asyncio
    async def test_on_message_update_partial(self, transport, mock_bot):
        """Test partial updates without content are ignored."""
        event = MagicMock(message=make_hikari_message(content=hikari.UNDEFINED))

        await transport.on_message_update(event)

        mock_bot.dispatcher.handle_message.assert_not_awaited()

    def test_run_stopped_by_user(self, transport, mock_hikari_bot):
        """Test a keyboard interrupt stops quietly."""
        mock_hikari_bot.run.side_effect = KeyboardInterrupt

        transport.run()

    def test_run_crash(self, transport, mock_hikari_bot):
        """Test other errors are re-raised."""
        mock_hikari_bot.run.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            transport.run()
