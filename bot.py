import discord
from discord.ext import commands
import os
from dotenv import load_dotenv
import logging
import asyncio
from typing import List

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='[{asctime}] [{levelname:<8}] {name}: {message}',
    datefmt='%Y-%m-%d %H:%M:%S',
    style='{',
    handlers=[
        logging.FileHandler('bot.log', encoding='utf-8', mode='a'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger('discord')

# Reduce gateway verbosity
logging.getLogger('discord.gateway').setLevel(logging.WARNING)

load_dotenv()
TOKEN = os.getenv('DISCORD_TOKEN')
COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')

intents = discord.Intents.default()
intents.message_content = True
intents.guilds = True
intents.guild_messages = True
intents.dm_messages = True
intents.members = True  # Member directory for mention resolution

EXTENSIONS = ['cogs.autoreply']


class AutoReplyBot(commands.Bot):
    """Discord bot hosting the auto-reply extension"""

    def __init__(self):
        super().__init__(
            command_prefix=COMMAND_PREFIX,
            intents=intents,
            max_messages=1000,
            heartbeat_timeout=60,
        )
        self.loaded_extensions: List[str] = []

    async def setup_hook(self):
        """Called after the bot is initialized but before login"""
        logger.info("Setting up bot...")
        for extension in EXTENSIONS:
            try:
                await self.load_extension(extension)
                self.loaded_extensions.append(extension)
                logger.info(f"✅ Loaded extension: {extension}")
            except commands.ExtensionError as e:
                logger.error(f"❌ Failed to load extension {extension}: {e}")

    async def reload_extensions(self):
        """Reload every loaded extension"""
        for extension in self.loaded_extensions:
            await self.reload_extension(extension)
            logger.info(f"✅ Reloaded extension: {extension}")


bot = AutoReplyBot()


@bot.event
async def on_ready():
    logger.info(f'{bot.user} is online!')
    logger.info(f'Connected to {len(bot.guilds)} guilds')
    logger.info(f'Loaded extensions: {", ".join(bot.loaded_extensions)}')


@bot.event
async def on_disconnect():
    logger.warning("Bot disconnected from Discord Gateway")


@bot.command()
@commands.is_owner()
async def reload(ctx):
    """Reload the auto-reply extension (owner only)"""
    try:
        await bot.reload_extensions()
        await ctx.send(f"✅ Reloaded {len(bot.loaded_extensions)} extension(s)")
    except commands.ExtensionError as e:
        await ctx.send(f"❌ Error: {e}")


async def main():
    """Main function with reconnection handling"""
    max_retries = 5
    retry_count = 0

    while retry_count < max_retries:
        try:
            logger.info("Starting bot...")
            await bot.start(TOKEN)
            retry_count = 0
        except discord.LoginFailure:
            logger.error("Invalid token - cannot reconnect")
            break
        except (discord.GatewayNotFound, discord.ConnectionClosed, OSError) as e:
            retry_count += 1
            logger.error(f"Connection error (attempt {retry_count}/{max_retries}): {e}")
            if retry_count < max_retries:
                wait_time = min(5 * retry_count, 30)
                logger.info(f"Reconnecting in {wait_time}s...")
                await asyncio.sleep(wait_time)
            else:
                logger.error("Max retries reached. Exiting.")
                break


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by keyboard interrupt")
