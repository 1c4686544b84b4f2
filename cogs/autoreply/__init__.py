"""
Auto-Reply Module
===============================

Main module initialization with setup() function for Discord bot extension loading.
Coordinates all layers: cogs, core, models, services, adapters and storage.
"""

from discord.ext import commands

import logging

from .cogs import AutoReplyCog, AdminCog

logger = logging.getLogger(__name__)


async def setup(bot: commands.Bot) -> None:
    """
    Initialize the auto-reply module and register its cogs with the bot.

    Called by ``bot.load_extension("cogs.autoreply")`` in bot.py.

    Args:
        bot: The Discord bot instance
    """
    autoreply_cog = AutoReplyCog(bot)
    await bot.add_cog(autoreply_cog)
    logger.info("✅ AutoReplyCog loaded")

    admin_cog = AdminCog(bot, autoreply_cog)
    await bot.add_cog(admin_cog)
    logger.info("✅ AdminCog loaded")

    logger.info("=" * 50)
    logger.info("🤖 Auto-reply module fully initialized!")
    logger.info("=" * 50)
