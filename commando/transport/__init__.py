from .base import GuildChannel, GuildMember, GuildRole, IncomingMessage, MessageAuthor, SentMessage

__all__ = ["IncomingMessage", "MessageAuthor", "SentMessage", "GuildMember", "GuildRole", "GuildChannel"]
