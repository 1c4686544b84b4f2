"""Cogs module - Discord command handlers."""

from .autoreply_cog import AutoReplyCog, DiscordDeliverySink, split_message
from .admin_cog import AdminCog

__all__ = [
    "AutoReplyCog",
    "DiscordDeliverySink",
    "split_message",
    "AdminCog",
]
