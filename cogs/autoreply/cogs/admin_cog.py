"""
Admin Commands Cog
===============================

Discord-specific implementation for auto-reply administration.
"""

import re
from typing import Optional

import discord
from discord.ext import commands

import logging

from ..core import ChatException

logger = logging.getLogger(__name__)


class ClearMemoryFlags(commands.FlagConverter, prefix="-", delimiter=" "):
    target: Optional[str] = None
    person: Optional[str] = None


def _user_id(value: str) -> str:
    """Accept a raw id or a ``<@id>`` mention."""
    match = re.fullmatch(r"<@!?(\d+)>", value.strip())
    return match.group(1) if match else value.strip()


class AdminCog(commands.Cog):
    """Admin command handler for the auto-reply system."""

    def __init__(self, bot: commands.Bot, autoreply_cog):
        self.bot = bot
        self.autoreply_cog = autoreply_cog

    @commands.command(name="clearmemory")
    @commands.is_owner()
    async def clear_memory(self, ctx: commands.Context, *, flags: ClearMemoryFlags) -> None:
        """Clear stored messages: -target <ids|all|private:all> or -person <user>."""
        current = f"private:{ctx.author.id}" if isinstance(ctx.channel, discord.DMChannel) else str(ctx.channel.id)
        summary = await self.autoreply_cog.service.clear_memory(
            target=flags.target,
            person=_user_id(flags.person) if flags.person else None,
            current_channel=current,
        )
        await ctx.send(summary)

    @commands.group(name="autoreply", invoke_without_command=True)
    @commands.is_owner()
    async def autoreply_admin(self, ctx: commands.Context) -> None:
        await ctx.send_help(ctx.command)

    @autoreply_admin.command(name="reload")
    @commands.is_owner()
    async def reload_config(self, ctx: commands.Context) -> None:
        try:
            self.autoreply_cog.reload_config()
        except ChatException as e:
            logger.error(f"❌ Reload failed: {e}")
            await ctx.send(f"❌ Reload failed: {e}")
            return
        await ctx.send("✅ Auto-reply configuration reloaded.")

    @autoreply_admin.command(name="status")
    @commands.is_owner()
    async def status(self, ctx: commands.Context) -> None:
        switcher = self.autoreply_cog.switcher
        roster = "\n".join(
            f"{'➡️' if i == switcher.current_index else '•'} {e.name} ({e.kind}, {e.model})"
            for i, e in enumerate(switcher.entries)
        ) or "No backends configured"
        embed = discord.Embed(title="🤖 Auto-Reply Status", color=discord.Color.blue())
        embed.add_field(name="Backends", value=roster, inline=False)
        embed.add_field(
            name="Slots",
            value=str(len(self.autoreply_cog.config.slots.slot_contains)),
            inline=True
        )
        embed.add_field(
            name="Tracked channels",
            value=str(len(self.autoreply_cog.scheduler.state)),
            inline=True
        )
        await ctx.send(embed=embed)
