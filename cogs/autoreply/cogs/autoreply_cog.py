"""
Auto-Reply Cog - Message Listener
=================================

Discord-specific implementation of the auto-reply flow.
Converts gateway messages into queue entries and delivers model replies.
"""

import copy
import logging
from typing import List, Optional

import discord
from discord.ext import commands

from ..core import AutoReplyConfig, ChannelGate, ChatException
from ..models import PRIVATE_PREFIX, ChatMessage, MarkType, Member, MentionInfo
from ..services import (
    AdapterSwitcher,
    AutoReplyService,
    ContextBuilder,
    EmojiManager,
    MemoryTools,
    QueueManager,
    ResponseInterpreter,
    SequenceMatcherSimilarity,
    TriggerScheduler,
)
from ..storage import MessageStorage

logger = logging.getLogger(__name__)

DISCORD_MESSAGE_LIMIT = 2000


def split_message(text: str, max_length: int = DISCORD_MESSAGE_LIMIT) -> List[str]:
    """Split a long message into Discord-compliant chunks."""
    if len(text) <= max_length:
        return [text]

    chunks = []
    remaining = text

    while remaining:
        if len(remaining) <= max_length:
            chunks.append(remaining)
            break

        # Prefer a paragraph, then a line, then a word boundary in the second half
        break_point = max_length
        for separator in ("\n\n", "\n", " "):
            position = remaining.rfind(separator, 0, max_length)
            if position > max_length // 2:
                break_point = position + len(separator)
                break

        chunks.append(remaining[:break_point])
        remaining = remaining[break_point:]

    return chunks


def channel_key(channel: discord.abc.Messageable, author: discord.abc.User) -> str:
    """Queue channel id: the channel id, or ``private:<user id>`` for DMs."""
    if isinstance(channel, discord.DMChannel):
        return f"{PRIVATE_PREFIX}{author.id}"
    return str(channel.id)


class DiscordDeliverySink:
    """Delivers replies, reports and commands for one triggering message."""

    def __init__(self, bot: commands.Bot, trigger: discord.Message):
        self.bot = bot
        self.trigger = trigger

    async def _resolve_channel(self, channel_id: str) -> discord.abc.Messageable:
        if channel_id.startswith(PRIVATE_PREFIX):
            user_id = int(channel_id[len(PRIVATE_PREFIX):])
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            return user.dm_channel or await user.create_dm()

        channel = self.bot.get_channel(int(channel_id))
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(int(channel_id))
            except discord.HTTPException as e:
                raise ChatException(f"Cannot resolve channel {channel_id}", e)
        return channel

    async def send(self, text: str, channel_id: str, quote_id: Optional[str] = None) -> List[str]:
        channel = await self._resolve_channel(channel_id)
        reference = None
        if quote_id:
            reference = discord.MessageReference(
                message_id=int(quote_id),
                channel_id=channel.id,
                fail_if_not_exists=False
            )

        sent_ids = []
        for index, chunk in enumerate(split_message(text)):
            sent = await channel.send(chunk, reference=reference if index == 0 else None)
            sent_ids.append(str(sent.id))
        return sent_ids

    async def _command_prefix(self) -> str:
        prefix = await self.bot.get_prefix(self.trigger)
        if isinstance(prefix, str):
            return prefix
        # when_mentioned_or puts the mention forms first
        return prefix[-1]

    async def execute(self, command: str, channel_id: str) -> None:
        """Invoke a bot command as if the bot had typed it in ``channel_id``."""
        text = command.strip()
        prefix = await self._command_prefix()
        if not text.startswith(prefix):
            text = f"{prefix}{text}"

        message = copy.copy(self.trigger)
        message.content = text
        channel = await self._resolve_channel(channel_id)
        message.channel = channel
        guild = getattr(channel, "guild", None)
        message.author = guild.me if guild else self.bot.user

        ctx = await self.bot.get_context(message)
        if ctx.command is None:
            raise ChatException(f"Unknown command: {text}")
        await self.bot.invoke(ctx)


class AutoReplyCog(commands.Cog):
    """Watches configured channels and replies when the trigger fires."""

    def __init__(self, bot: commands.Bot, config: Optional[AutoReplyConfig] = None):
        self.bot = bot
        self.config = config or AutoReplyConfig()
        logging.getLogger(__name__.rsplit(".", 2)[0]).setLevel(
            getattr(logging, self.config.logging.log_level.upper(), logging.INFO)
        )

        self.storage = MessageStorage(
            self.config.storage.directory,
            persist=self.config.storage.persist,
            max_messages_per_channel=self.config.storage.max_messages_per_channel,
        )
        self.gate = ChannelGate()
        self.queue_manager = QueueManager(self.storage, self.config.slots, self.config.settings, self.gate)
        self.scheduler = TriggerScheduler(self.queue_manager, self.config.slots, self.config.debug)
        self.switcher = AdapterSwitcher(
            self.config.get_enabled_backends(),
            self.config.parameters,
            debug=self.config.debug.debug_as_info,
        )
        self.emoji_manager = EmojiManager(
            self.config.emoji.table_file,
            fallback_id=self.config.emoji.fallback_id,
            similarity=SequenceMatcherSimilarity(self.config.emoji.similarity_cutoff),
        )
        self.tools = MemoryTools(self.storage, self.config.slots)
        self.context_builder = ContextBuilder(self.config.bot.system_prompt_file, self.tools)
        self.interpreter = ResponseInterpreter(
            self.config.settings,
            self.emoji_manager,
            self.tools,
            debug_as_info=self.config.debug.debug_as_info,
        )
        self.service = AutoReplyService(
            queue_manager=self.queue_manager,
            scheduler=self.scheduler,
            switcher=self.switcher,
            interpreter=self.interpreter,
            context_builder=self.context_builder,
            settings=self.config.settings,
        )

    def reload_config(self) -> None:
        """Re-read the INI file and push the new sections into every layer."""
        self.config.reload()
        self.queue_manager.slots = self.config.slots
        self.queue_manager.settings = self.config.settings
        self.scheduler.slots = self.config.slots
        self.tools.slots = self.config.slots
        self.scheduler.debug = self.config.debug
        self.interpreter.settings = self.config.settings
        self.service.settings = self.config.settings
        self.context_builder.system_prompt_file = self.config.bot.system_prompt_file
        self.context_builder.reload()
        self.switcher.update_config(self.config.get_enabled_backends(), self.config.parameters)

    # ==================== Conversion ====================

    def _sender_name(self, author: discord.abc.User) -> str:
        if self.config.bot.name_source == "name":
            return author.name
        return author.display_name

    def _to_chat_message(self, message: discord.Message) -> ChatMessage:
        return ChatMessage(
            message_id=str(message.id),
            channel_id=channel_key(message.channel, message.author),
            sender_id=str(message.author.id),
            content=message.content,
            timestamp=message.created_at,
            sender_name=self._sender_name(message.author),
        )

    def _mention_info(self, message: discord.Message) -> MentionInfo:
        return MentionInfo(
            self_mentioned=self.bot.user in message.mentions,
            everyone=message.mention_everyone and "@everyone" in message.content,
            here="@here" in message.content,
        )

    def _members(self, message: discord.Message) -> List[Member]:
        if message.guild is None:
            return [Member(display_name=self._sender_name(message.author), member_id=str(message.author.id))]
        return [
            Member(display_name=self._sender_name(m), member_id=str(m.id))
            for m in message.guild.members
        ]

    def _bot_online(self, message: discord.Message) -> bool:
        if message.guild is None:
            return True
        return message.guild.me.status is not discord.Status.offline

    # ==================== Listener ====================

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        """Queue every message in a configured channel and reply when due."""
        if message.author.bot and message.author.id != self.bot.user.id:
            return

        chat_message = self._to_chat_message(message)
        if not self.queue_manager.is_channel_allowed(chat_message.channel_id):
            return

        if message.author.id == self.bot.user.id:
            await self.service.ingest(chat_message)
            return

        ctx = await self.bot.get_context(message)
        if ctx.valid:
            self.queue_manager.set_mark(chat_message.message_id, MarkType.COMMAND)

        sink = DiscordDeliverySink(self.bot, message)
        try:
            await self.service.process(
                chat_message,
                mention=self._mention_info(message),
                members=self._members(message),
                sink=sink,
                bot_online=self._bot_online(message),
            )
        except ChatException as e:
            logger.error(f"❌ Auto-reply failed in {chat_message.channel_id}: {e}")

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        logger.info("=" * 50)
        logger.info("🤖 AutoReplyCog is READY!")
        logger.info(f"✅ Slots: {len(self.config.slots.slot_contains)}")
        logger.info(f"✅ Backends: {[b.name for b in self.config.get_enabled_backends()]}")
        logger.info(f"✅ Trigger count: {self.config.slots.min_trigger_count}-{self.config.slots.max_trigger_count}")
        logger.info(f"✅ Persistence: {'Enabled' if self.config.storage.persist else 'Disabled'}")
        logger.info("=" * 50)
